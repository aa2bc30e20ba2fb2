"""
Vendor service endpoints: the service catalogue, bookings and reviews.

Service statistics (bookings, revenue, rating, completion rate) are
refreshed after the booking or review write has committed. A failed
refresh never fails the request; admins can force a recompute.
"""

import logging
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from marketplace.core.database import get_db
from marketplace.core.deps import get_admin_user, get_current_user, get_vendor_user, get_verified_user
from marketplace.crud import vendor_service as service_crud
from marketplace.crud.property import page_count
from marketplace.models.user import User
from marketplace.models.vendor_service import BookingStatus, ServiceBooking, ServiceCategory, VendorService
from marketplace.schemas.admin import RecomputeResponse
from marketplace.schemas.property import Page
from marketplace.schemas.vendor_service import (
    BookingCreate,
    BookingOut,
    BookingStatusUpdate,
    ReviewCreate,
    ReviewOut,
    ServiceCreate,
    ServiceOut,
    ServiceStatisticsOut,
    ServiceUpdate,
    VendorResponseCreate
)

router = APIRouter(prefix="/services", tags=["Vendor Services"])
logger = logging.getLogger(__name__)


def _service_or_404(db: Session, service_id: UUID) -> VendorService:
    service = service_crud.get_service(db, service_id)
    if not service:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
    return service


def _booking_for(db: Session, booking_id: UUID, user: User) -> ServiceBooking:
    booking = service_crud.get_booking(db, booking_id)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    if user.id not in (booking.client_id, booking.vendor_id) and not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to access this booking")
    return booking


# Catalogue

@router.get("", response_model=Page[ServiceOut])
def list_services(
    category: Optional[ServiceCategory] = None,
    city: Optional[str] = None,
    search: Optional[str] = None,
    vendor_id: Optional[UUID] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """Active services, promoted first. city also matches online services."""
    items, total = service_crud.search_services(
        db,
        category=category,
        city=city,
        search=search,
        vendor_id=vendor_id,
        skip=(page - 1) * limit,
        limit=limit,
    )
    return Page[ServiceOut](
        items=[ServiceOut.model_validate(item) for item in items],
        total=total,
        page=page,
        limit=limit,
        pages=page_count(total, limit),
    )


@router.get("/bookings/mine", response_model=List[BookingOut])
def list_my_bookings(
    as_vendor: bool = False,
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Bookings the user made, or with as_vendor=true, bookings of their services."""
    return service_crud.list_bookings(db, current_user, as_vendor=as_vendor, status=status_filter)


@router.get("/{service_id}", response_model=ServiceOut)
def get_service(service_id: UUID, db: Session = Depends(get_db)):
    return _service_or_404(db, service_id)


@router.post("", status_code=201, response_model=ServiceOut)
def create_service(
    data: ServiceCreate,
    current_user: User = Depends(get_vendor_user),
    db: Session = Depends(get_db)
):
    service = service_crud.create_service(db, current_user, data)
    logger.info(f"Service {service.id} ({service.category.value}) created by {current_user.email}")
    return service


@router.patch("/{service_id}", response_model=ServiceOut)
def update_service(
    service_id: UUID,
    updates: ServiceUpdate,
    current_user: User = Depends(get_vendor_user),
    db: Session = Depends(get_db)
):
    service = _service_or_404(db, service_id)
    if service.vendor_id != current_user.id and not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only modify your own services")
    return service_crud.update_service(db, service, updates.model_dump(exclude_unset=True))


@router.delete("/{service_id}", response_model=ServiceOut)
def deactivate_service(
    service_id: UUID,
    current_user: User = Depends(get_vendor_user),
    db: Session = Depends(get_db)
):
    """Stop taking bookings. Existing bookings and reviews are kept."""
    service = _service_or_404(db, service_id)
    if service.vendor_id != current_user.id and not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only modify your own services")
    return service_crud.update_service(db, service, {"is_active": False})


@router.get("/{service_id}/statistics", response_model=ServiceStatisticsOut)
def get_service_statistics(service_id: UUID, db: Session = Depends(get_db)):
    service = _service_or_404(db, service_id)
    return ServiceStatisticsOut(
        service_id=service.id,
        total_bookings=service.total_bookings,
        total_revenue=service.total_revenue,
        average_rating=service.average_rating,
        completion_rate=service.completion_rate,
        statistics_updated_at=service.statistics_updated_at,
    )


@router.post("/{service_id}/statistics/recompute", response_model=RecomputeResponse)
def recompute_service_statistics(
    service_id: UUID,
    admin_user: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Rebuild the aggregate from bookings and reviews. Errors surface as 500."""
    _service_or_404(db, service_id)
    service = service_crud.recompute_service_statistics(db, service_id)
    logger.info(f"Admin {admin_user.email} recomputed statistics for service {service_id}")
    return RecomputeResponse(
        service_id=service.id,
        total_bookings=service.total_bookings,
        total_revenue=service.total_revenue,
        average_rating=service.average_rating,
        completion_rate=service.completion_rate,
    )


# Bookings

@router.post("/{service_id}/bookings", status_code=201, response_model=BookingOut)
def book_service(
    service_id: UUID,
    data: BookingCreate,
    current_user: User = Depends(get_verified_user),
    db: Session = Depends(get_db)
):
    service = _service_or_404(db, service_id)
    try:
        booking = service_crud.create_booking(db, service, current_user, data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    service_crud.refresh_service_statistics(db, service.id)
    return booking


@router.get("/bookings/{booking_id}", response_model=BookingOut)
def get_booking(
    booking_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return _booking_for(db, booking_id, current_user)


@router.patch("/bookings/{booking_id}/status", response_model=BookingOut)
def update_booking_status(
    booking_id: UUID,
    update: BookingStatusUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Move a booking along its lifecycle.

    The vendor (or an admin) drives the booking; the client may only cancel.
    Each change appends an entry to the booking timeline.
    """
    booking = _booking_for(db, booking_id, current_user)
    is_vendor_side = current_user.id == booking.vendor_id or current_user.is_admin
    if not is_vendor_side and update.status != BookingStatus.CANCELLED:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Clients can only cancel a booking")

    try:
        booking = service_crud.update_booking_status(
            db, booking, update.status, current_user,
            note=update.note,
            payment_status=update.payment_status if is_vendor_side else None
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    service_crud.refresh_service_statistics(db, booking.service_id)
    return booking


# Reviews

@router.get("/{service_id}/reviews", response_model=List[ReviewOut])
def list_service_reviews(service_id: UUID, db: Session = Depends(get_db)):
    _service_or_404(db, service_id)
    return service_crud.list_service_reviews(db, service_id)


@router.post("/{service_id}/reviews", status_code=201, response_model=ReviewOut)
def create_service_review(
    service_id: UUID,
    data: ReviewCreate,
    current_user: User = Depends(get_verified_user),
    db: Session = Depends(get_db)
):
    """One review per client per service, after a completed booking."""
    service = _service_or_404(db, service_id)
    try:
        review = service_crud.create_service_review(db, service, current_user, data)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    service_crud.refresh_service_statistics(db, service.id)
    return review


@router.post("/reviews/{review_id}/response", response_model=ReviewOut)
def respond_to_review(
    review_id: UUID,
    data: VendorResponseCreate,
    current_user: User = Depends(get_vendor_user),
    db: Session = Depends(get_db)
):
    review = service_crud.get_review(db, review_id)
    if not review:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    try:
        return service_crud.respond_to_review(db, review, current_user, data.response)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
