"""
Repository functions for vendor services, bookings and reviews.

Service statistics are recomputed by an explicit call after the write that
changes them:

    booking = create_booking(db, ...)          # commits the booking
    refresh_service_statistics(db, service_id)  # separate, best effort

A failed refresh is logged and rolled back; the booking or review that
triggered it stays committed and the admin recompute endpoint can repair
the aggregate later.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.core.timeutils import utcnow
from marketplace.models.review import Review, ReviewStatus, ReviewType
from marketplace.models.user import User
from marketplace.models.vendor_service import (
    BookingStatus, PaymentStatus, ServiceBooking, ServiceCategory, VendorService
)
from marketplace.schemas.vendor_service import BookingCreate, ReviewCreate, ServiceCreate

logger = logging.getLogger(__name__)


@dataclass
class ServiceStatistics:
    total_bookings: int = 0
    total_revenue: float = 0.0
    average_rating: float = 0.0
    completion_rate: float = 0.0


def compute_service_statistics(bookings, ratings) -> ServiceStatistics:
    """
    Aggregate over a service's bookings and review ratings.

    total_revenue sums every booking amount. completion_rate is the
    percentage of bookings completed; both it and average_rating are 0.0
    when there is nothing to divide by.
    """
    bookings = list(bookings)
    ratings = list(ratings)
    completed = [b for b in bookings if b.status == BookingStatus.COMPLETED]

    total = len(bookings)
    return ServiceStatistics(
        total_bookings=total,
        total_revenue=float(sum(b.amount or 0 for b in bookings)),
        average_rating=round(sum(ratings) / len(ratings), 2) if ratings else 0.0,
        completion_rate=(len(completed) / total * 100) if total else 0.0,
    )


def recompute_service_statistics(db: Session, service_id: UUID) -> Optional[VendorService]:
    """
    Rebuild a service's aggregate from its bookings and service reviews
    and commit it. Returns None for an unknown service.
    """
    service = get_service(db, service_id)
    if service is None:
        return None

    bookings = db.query(ServiceBooking).filter(ServiceBooking.service_id == service_id).all()
    ratings = [
        rating for (rating,) in db.query(Review.rating).filter(
            Review.service_id == service_id,
            Review.review_type == ReviewType.SERVICE
        ).all()
    ]
    stats = compute_service_statistics(bookings, ratings)

    service.total_bookings = stats.total_bookings
    service.total_revenue = stats.total_revenue
    service.average_rating = stats.average_rating
    service.completion_rate = stats.completion_rate
    service.statistics_updated_at = utcnow()
    db.commit()
    db.refresh(service)
    return service


def refresh_service_statistics(db: Session, service_id: UUID) -> bool:
    """
    Best-effort recompute after a booking or review write.

    Returns:
        bool: False when the recompute failed (logged and rolled back)
    """
    try:
        recompute_service_statistics(db, service_id)
        return True
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Failed to refresh statistics for service {service_id}")
        return False


# Services

def create_service(db: Session, vendor: User, data: ServiceCreate) -> VendorService:
    payload = data.model_dump()
    service = VendorService(vendor_id=vendor.id, **payload)
    db.add(service)
    db.commit()
    db.refresh(service)
    return service


def get_service(db: Session, service_id: UUID) -> Optional[VendorService]:
    return db.query(VendorService).filter(VendorService.id == service_id).first()


def search_services(
    db: Session,
    category: Optional[ServiceCategory] = None,
    city: Optional[str] = None,
    search: Optional[str] = None,
    vendor_id: Optional[UUID] = None,
    include_inactive: bool = False,
    skip: int = 0,
    limit: int = 20,
) -> Tuple[List[VendorService], int]:
    query = db.query(VendorService)
    if not include_inactive:
        query = query.filter(VendorService.is_active == True)  # noqa: E712
    if category:
        query = query.filter(VendorService.category == category)
    if vendor_id:
        query = query.filter(VendorService.vendor_id == vendor_id)
    if search:
        pattern = f"%{search}%"
        query = query.filter(VendorService.title.ilike(pattern) | VendorService.description.ilike(pattern))

    services = query.order_by(VendorService.is_promoted.desc(), VendorService.created_at.desc()).all()
    if city:
        # service_cities is a JSON list; filtered here to stay portable across databases
        wanted = city.strip().lower()
        services = [
            s for s in services
            if s.online_available or wanted in [c.lower() for c in (s.service_cities or [])]
        ]
    return services[skip:skip + limit], len(services)


def update_service(db: Session, service: VendorService, updates: dict) -> VendorService:
    for field, value in updates.items():
        setattr(service, field, value)
    db.commit()
    db.refresh(service)
    return service


# Bookings

def _timeline_entry(status: BookingStatus, note: Optional[str], actor_id: UUID, at: datetime) -> dict:
    return {"status": status.value, "note": note, "by": str(actor_id), "at": at.isoformat()}


def create_booking(db: Session, service: VendorService, client: User, data: BookingCreate) -> ServiceBooking:
    """
    Raises:
        ValueError: service inactive, or vendor booking their own service
    """
    if not service.is_active:
        raise ValueError("Service is not accepting bookings")
    if service.vendor_id == client.id:
        raise ValueError("You cannot book your own service")

    now = utcnow()
    booking = ServiceBooking(
        service_id=service.id,
        vendor_id=service.vendor_id,
        client_id=client.id,
        property_id=data.property_id,
        booking_date=now,
        service_date=data.service_date,
        duration_hours=data.duration_hours,
        amount=data.amount if data.amount is not None else service.price,
        currency=service.currency,
        status=BookingStatus.PENDING,
        payment_status=PaymentStatus.PENDING,
        client_notes=data.client_notes,
        timeline=[_timeline_entry(BookingStatus.PENDING, "Booking created", client.id, now)],
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    logger.info(f"Booking {booking.id} created for service {service.id} by {client.email}")
    return booking


def get_booking(db: Session, booking_id: UUID) -> Optional[ServiceBooking]:
    return db.query(ServiceBooking).filter(ServiceBooking.id == booking_id).first()


def list_bookings(db: Session, user: User, as_vendor: bool = False,
                  status: Optional[BookingStatus] = None) -> List[ServiceBooking]:
    query = db.query(ServiceBooking)
    if as_vendor:
        query = query.filter(ServiceBooking.vendor_id == user.id)
    else:
        query = query.filter(ServiceBooking.client_id == user.id)
    if status:
        query = query.filter(ServiceBooking.status == status)
    return query.order_by(ServiceBooking.service_date.desc()).all()


def update_booking_status(db: Session, booking: ServiceBooking, new_status: BookingStatus, actor: User,
                          note: Optional[str] = None,
                          payment_status: Optional[PaymentStatus] = None) -> ServiceBooking:
    """
    Move a booking along its lifecycle and append a timeline entry.

    Raises:
        ValueError: transition not allowed
    """
    if not booking.can_transition_to(new_status):
        raise ValueError(f"Cannot move booking from {booking.status.value} to {new_status.value}")

    booking.status = new_status
    if payment_status is not None:
        booking.payment_status = payment_status
    if note and actor.id == booking.vendor_id:
        booking.vendor_notes = note
    # JSON columns only persist on reassignment
    booking.timeline = list(booking.timeline or []) + [_timeline_entry(new_status, note, actor.id, utcnow())]
    db.commit()
    db.refresh(booking)
    return booking


# Reviews

def create_service_review(db: Session, service: VendorService, client: User, data: ReviewCreate) -> Review:
    """
    One review per client per service, only after a completed booking.

    Raises:
        PermissionError: no completed booking
        ValueError: already reviewed
    """
    completed = db.query(ServiceBooking).filter(
        ServiceBooking.service_id == service.id,
        ServiceBooking.client_id == client.id,
        ServiceBooking.status == BookingStatus.COMPLETED
    ).first()
    if completed is None:
        raise PermissionError("You can only review services you have completed a booking for")

    existing = db.query(Review).filter(
        Review.vendor_id == service.vendor_id,
        Review.client_id == client.id,
        Review.service_id == service.id
    ).first()
    if existing:
        raise ValueError("You have already reviewed this service")

    review = Review(
        vendor_id=service.vendor_id,
        client_id=client.id,
        service_id=service.id,
        property_id=data.property_id,
        rating=data.rating,
        title=data.title,
        comment=data.comment,
        review_type=ReviewType.SERVICE,
        is_public=data.is_public,
        status=ReviewStatus.APPROVED,
    )
    db.add(review)
    db.commit()
    db.refresh(review)
    return review


def get_review(db: Session, review_id: UUID) -> Optional[Review]:
    return db.query(Review).filter(Review.id == review_id).first()


def list_service_reviews(db: Session, service_id: UUID) -> List[Review]:
    return db.query(Review).filter(
        Review.service_id == service_id,
        Review.is_public == True,  # noqa: E712
        Review.status == ReviewStatus.APPROVED
    ).order_by(Review.created_at.desc()).all()


def respond_to_review(db: Session, review: Review, vendor: User, response: str) -> Review:
    """
    Raises:
        PermissionError: vendor does not own the review
        ValueError: already answered
    """
    if review.vendor_id != vendor.id:
        raise PermissionError("You can only respond to reviews of your own services")
    if review.vendor_response:
        raise ValueError("You have already responded to this review")
    review.vendor_response = response
    review.vendor_responded_at = utcnow()
    db.commit()
    db.refresh(review)
    return review
