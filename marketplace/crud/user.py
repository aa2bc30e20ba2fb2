"""
CRUD operations for user accounts and admin user management.
"""

import logging
from typing import Dict, List, Optional, Set, Tuple
from uuid import UUID
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from marketplace.core.lockout import get_locked_attempts
from marketplace.core.security import get_password_hash
from marketplace.models.favorite import Favorite
from marketplace.models.notification import Notification, NotificationRecipient, NotificationStatus
from marketplace.models.property import Property
from marketplace.models.review import Review
from marketplace.models.subscription import Subscription, SubscriptionStatus
from marketplace.models.support_ticket import SupportTicket, TicketStatus
from marketplace.models.user import User, UserRole, UserStatus
from marketplace.models.vendor_profile import VendorProfile
from marketplace.models.vendor_service import ServiceBooking, VendorService
from marketplace.schemas.user import UserRegisterRequest

logger = logging.getLogger(__name__)


def get_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.strip().lower()).first()


def get_by_id(db: Session, user_id: UUID) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def create(db: Session, data: UserRegisterRequest) -> User:
    """
    New self-service account. Starts pending until the email is verified.

    A guest record created by a support ticket is upgraded in place.
    """
    email = data.email.lower()
    user = get_by_email(db, email)
    if user is None:
        user = User(email=email)
        db.add(user)

    user.hashed_password = get_password_hash(data.password)
    user.first_name = data.first_name
    user.last_name = data.last_name
    user.phone = data.phone
    user.city = data.city
    user.role = data.role
    user.status = UserStatus.PENDING
    user.is_active = True
    user.is_verified = False
    user.is_guest = False

    db.commit()
    db.refresh(user)
    return user


def list_users(
    db: Session,
    role: Optional[UserRole] = None,
    status: Optional[UserStatus] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 50,
) -> Tuple[List[User], int]:
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    if status:
        query = query.filter(User.status == status)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            User.email.ilike(pattern),
            User.first_name.ilike(pattern),
            User.last_name.ilike(pattern),
        ))
    total = query.count()
    items = query.order_by(User.created_at.desc()).offset(skip).limit(limit).all()
    return items, total


def dashboard_stats(db: Session) -> Dict:
    users_by_role = {role.value: 0 for role in UserRole}
    for role, count in db.query(User.role, func.count(User.id)).filter(
        User.is_guest == False  # noqa: E712
    ).group_by(User.role).all():
        users_by_role[role.value] = count

    properties_by_status = {}
    for property_status, count in db.query(Property.status, func.count(Property.id)).group_by(Property.status).all():
        properties_by_status[property_status.value] = count

    active_subscriptions = sum(
        1 for s in db.query(Subscription).filter(Subscription.status == SubscriptionStatus.ACTIVE).all()
        if s.is_active
    )

    return {
        "total_users": sum(users_by_role.values()),
        "users_by_role": users_by_role,
        "total_properties": sum(properties_by_status.values()),
        "properties_by_status": properties_by_status,
        "active_subscriptions": active_subscriptions,
        "open_tickets": db.query(SupportTicket).filter(
            SupportTicket.status.in_([TicketStatus.OPEN, TicketStatus.IN_PROGRESS])
        ).count(),
        "notifications_sent": db.query(Notification).filter(Notification.status == NotificationStatus.SENT).count(),
        "locked_accounts": len(get_locked_attempts(db)),
    }


def delete_account(db: Session, user: User) -> Tuple[Set[UUID], Set[UUID]]:
    """
    Delete a user and keep every aggregate they contributed to consistent.

    Their notification recipient rows, bookings, reviews, favorites and
    vendor profile are removed through the session so the notification flush hook sees them. The
    services those bookings and reviews belonged to are then recomputed.
    Services the user owned go with the account.

    Returns:
        (notification ids, service ids) whose statistics were refreshed
    """
    from marketplace.crud.vendor_service import recompute_service_statistics

    recipients = db.query(NotificationRecipient).filter(NotificationRecipient.user_id == user.id).all()
    bookings = db.query(ServiceBooking).filter(ServiceBooking.client_id == user.id).all()
    reviews = db.query(Review).filter(Review.client_id == user.id).all()
    saved = db.query(Favorite).filter(Favorite.user_id == user.id).all()
    profiles = db.query(VendorProfile).filter(VendorProfile.user_id == user.id).all()

    notification_ids = {r.notification_id for r in recipients}
    service_ids = {b.service_id for b in bookings} | {r.service_id for r in reviews if r.service_id}
    owned = {service_id for (service_id,) in db.query(VendorService.id).filter(VendorService.vendor_id == user.id).all()}
    service_ids -= owned

    email = user.email
    for row in recipients + bookings + reviews + saved + profiles:
        db.delete(row)
    db.delete(user)
    db.commit()

    for service_id in service_ids:
        recompute_service_statistics(db, service_id)

    logger.info(
        f"Deleted account {email}: refreshed {len(notification_ids)} notifications, "
        f"{len(service_ids)} services"
    )
    return notification_ids, service_ids
