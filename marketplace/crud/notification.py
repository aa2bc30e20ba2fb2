"""
Repository functions for notification campaigns.

Statistics are never written here directly; recipient rows change and the
before_flush hook in marketplace.models.notification refreshes the
denormalized counters on the way to the database.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple
from uuid import UUID
from sqlalchemy import func
from sqlalchemy.orm import Session

from marketplace.core.timeutils import as_utc, utcnow
from marketplace.models.notification import (
    Notification, NotificationChannel, NotificationRecipient, NotificationStatus, TargetAudience,
    compute_notification_statistics,
)
from marketplace.models.subscription import Subscription, SubscriptionStatus
from marketplace.models.user import User, UserRole
from marketplace.schemas.notification import AudienceFilters, NotificationCreate

logger = logging.getLogger(__name__)

ACTIVE_USER_WINDOW_DAYS = 30

# Channels that count as delivered as soon as the recipient row exists
IMMEDIATE_CHANNELS = {NotificationChannel.IN_APP.value, NotificationChannel.PUSH.value}

EDITABLE_STATUSES = (NotificationStatus.DRAFT, NotificationStatus.SCHEDULED)


def _channel_values(notification: Notification) -> set:
    return {NotificationChannel(c).value for c in (notification.channels or [])}


def resolve_audience(db: Session, notification: Notification, now: Optional[datetime] = None) -> List[User]:
    """
    Users a notification goes to, according to its target audience.

    Guests and deactivated accounts are never included. city_filter and
    user_type_filter narrow any audience when present.
    """
    now = as_utc(now) if now else utcnow()
    filters = notification.audience_filters or {}
    audience = notification.target_audience

    query = db.query(User).filter(User.is_active == True, User.is_guest == False)  # noqa: E712

    if audience == TargetAudience.CUSTOMERS:
        query = query.filter(User.role == UserRole.CUSTOMER)
    elif audience == TargetAudience.VENDORS:
        query = query.filter(User.role.in_([UserRole.VENDOR, UserRole.AGENT]))
    elif audience == TargetAudience.ACTIVE_USERS:
        query = query.filter(User.last_login_at >= now - timedelta(days=ACTIVE_USER_WINDOW_DAYS))
    elif audience == TargetAudience.PREMIUM_USERS:
        subscriber_ids = db.query(Subscription.user_id).filter(
            Subscription.status == SubscriptionStatus.ACTIVE,
            Subscription.end_date > now
        )
        query = query.filter(User.id.in_(subscriber_ids))
    elif audience == TargetAudience.CUSTOM:
        user_ids = [UUID(str(user_id)) for user_id in filters.get("user_ids", [])]
        if not user_ids:
            return []
        query = query.filter(User.id.in_(user_ids))

    cities = [city.lower() for city in filters.get("city_filter", [])]
    if cities:
        query = query.filter(func.lower(User.city).in_(cities))
    elif audience == TargetAudience.CITY_SPECIFIC:
        return []

    roles = filters.get("user_type_filter", [])
    if roles:
        query = query.filter(User.role.in_([UserRole(role) for role in roles]))

    return query.order_by(User.created_at).all()


def _require_future(scheduled_date: datetime, now: datetime) -> None:
    if as_utc(scheduled_date) <= now:
        raise ValueError("Scheduled date must be in the future")


def create(db: Session, data: NotificationCreate, created_by: Optional[User] = None,
           now: Optional[datetime] = None) -> Notification:
    """
    Save a new campaign as a draft, or as scheduled when a date is given.

    Raises:
        ValueError: scheduled_date is not in the future
    """
    if data.scheduled_date is not None:
        _require_future(data.scheduled_date, as_utc(now) if now else utcnow())

    filters = data.audience_filters.model_dump(mode="json")
    notification = Notification(
        title=data.title,
        subject=data.subject,
        message=data.message,
        type=data.type,
        target_audience=data.target_audience,
        channels=[channel.value for channel in data.channels],
        status=NotificationStatus.DRAFT,
        audience_filters=filters,
        campaign_id=data.campaign_id,
        tags=data.tags,
        priority=data.priority,
        sent_by=created_by.id if created_by else None,
    )
    if data.scheduled_date is not None:
        notification.is_scheduled = True
        notification.scheduled_date = data.scheduled_date
        notification.transition_to(NotificationStatus.SCHEDULED)

    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def get_by_id(db: Session, notification_id: UUID) -> Optional[Notification]:
    return db.query(Notification).filter(Notification.id == notification_id).first()


def update(db: Session, notification: Notification, updates: dict) -> Notification:
    """
    Edit a campaign that has not started sending.

    Raises:
        ValueError: campaign already sent, sending or cancelled
    """
    if notification.status not in EDITABLE_STATUSES:
        raise ValueError(f"Cannot edit a notification in status {notification.status.value}")

    if updates.get("channels") is not None:
        updates["channels"] = [NotificationChannel(c).value for c in updates["channels"]]
    if updates.get("audience_filters") is not None:
        updates["audience_filters"] = AudienceFilters.model_validate(updates["audience_filters"]).model_dump(mode="json")

    for field, value in updates.items():
        if value is not None:
            setattr(notification, field, value)
    db.commit()
    db.refresh(notification)
    return notification


def schedule(db: Session, notification: Notification, scheduled_date: datetime, now: Optional[datetime] = None) -> Notification:
    """
    Raises:
        ValueError: date not in the future, or status does not allow scheduling
    """
    _require_future(scheduled_date, as_utc(now) if now else utcnow())

    if notification.status != NotificationStatus.SCHEDULED:
        notification.transition_to(NotificationStatus.SCHEDULED)
    notification.is_scheduled = True
    notification.scheduled_date = scheduled_date
    db.commit()
    db.refresh(notification)
    return notification


def cancel(db: Session, notification: Notification) -> Notification:
    """
    Raises:
        ValueError: already sending or finished
    """
    notification.transition_to(NotificationStatus.CANCELLED)
    db.commit()
    db.refresh(notification)
    logger.info(f"Notification {notification.id} cancelled")
    return notification


def send(db: Session, notification: Notification, sent_by: Optional[User] = None,
         now: Optional[datetime] = None) -> Notification:
    """
    Fan a campaign out to its audience.

    One recipient row is written per user. In-app and push deliveries count
    as delivered immediately; email-only recipients are delivered when the
    email task succeeds. An empty audience fails the campaign.

    Raises:
        ValueError: status does not allow sending
    """
    now = as_utc(now) if now else utcnow()
    notification.transition_to(NotificationStatus.SENDING)
    db.flush()

    users = resolve_audience(db, notification, now)
    if not users:
        notification.transition_to(NotificationStatus.FAILED)
        notification.failure_reason = "No recipients found"
        db.commit()
        db.refresh(notification)
        logger.warning(f"Notification {notification.id} has no recipients")
        return notification

    immediate = bool(_channel_values(notification) & IMMEDIATE_CHANNELS)
    existing = {r.user_id for r in notification.recipients}
    for user in users:
        if user.id in existing:
            continue
        notification.recipients.append(NotificationRecipient(
            user_id=user.id,
            delivered=immediate,
            delivered_at=now if immediate else None,
            created_at=now,
        ))

    notification.transition_to(NotificationStatus.SENT)
    notification.sent_at = now
    if sent_by is not None:
        notification.sent_by = sent_by.id
    db.commit()
    db.refresh(notification)

    logger.info(
        f"Notification {notification.id} sent to {notification.total_recipients} users "
        f"(delivered {notification.delivered_count})"
    )
    return notification


def email_recipients(db: Session, notification: Notification) -> List[Tuple[UUID, str]]:
    """(user_id, email) pairs still owed an email for this campaign."""
    if NotificationChannel.EMAIL.value not in _channel_values(notification):
        return []
    rows = db.query(User.id, User.email).join(
        NotificationRecipient, NotificationRecipient.user_id == User.id
    ).filter(NotificationRecipient.notification_id == notification.id).all()
    return [(row.id, row.email) for row in rows]


def get_recipient(db: Session, notification_id: UUID, user_id: UUID) -> Optional[NotificationRecipient]:
    return db.query(NotificationRecipient).filter(
        NotificationRecipient.notification_id == notification_id,
        NotificationRecipient.user_id == user_id
    ).first()


def _lock_campaign(db: Session, recipient: NotificationRecipient) -> Optional[Notification]:
    """
    Take a row lock on the recipient's campaign and reload its recipients.

    Delivery workers and tracking requests for the same campaign then
    recompute its statistics one at a time, each from committed rows.
    """
    notification = db.query(Notification).filter(
        Notification.id == recipient.notification_id
    ).with_for_update().populate_existing().first()
    if notification is not None:
        db.expire(notification, ["recipients"])
    return notification


def mark_delivered(db: Session, recipient: NotificationRecipient, now: Optional[datetime] = None) -> NotificationRecipient:
    _lock_campaign(db, recipient)
    if not recipient.delivered:
        recipient.delivered = True
        recipient.delivered_at = as_utc(now) if now else utcnow()
        db.commit()
    return recipient


def mark_opened(db: Session, recipient: NotificationRecipient, now: Optional[datetime] = None) -> NotificationRecipient:
    """Opening implies delivery."""
    now = as_utc(now) if now else utcnow()
    _lock_campaign(db, recipient)
    if not recipient.delivered:
        recipient.delivered = True
        recipient.delivered_at = now
    if not recipient.opened:
        recipient.opened = True
        recipient.opened_at = now
    db.commit()
    return recipient


def mark_clicked(db: Session, recipient: NotificationRecipient, now: Optional[datetime] = None) -> NotificationRecipient:
    """A click implies the notification was delivered and opened."""
    now = as_utc(now) if now else utcnow()
    if not recipient.opened:
        mark_opened(db, recipient, now)
    _lock_campaign(db, recipient)
    if not recipient.clicked:
        recipient.clicked = True
        recipient.clicked_at = now
    db.commit()
    return recipient


def inbox(db: Session, user_id: UUID, skip: int = 0, limit: int = 50) -> List[Tuple[Notification, NotificationRecipient]]:
    """Sent in-app notifications for a user, newest first."""
    rows = db.query(Notification, NotificationRecipient).join(
        NotificationRecipient, NotificationRecipient.notification_id == Notification.id
    ).filter(
        NotificationRecipient.user_id == user_id,
        Notification.status == NotificationStatus.SENT
    ).order_by(Notification.sent_at.desc()).all()

    in_app = [
        (notification, recipient) for notification, recipient in rows
        if NotificationChannel.IN_APP.value in _channel_values(notification)
    ]
    return in_app[skip:skip + limit]


def list_notifications(db: Session, status: Optional[NotificationStatus] = None,
                       skip: int = 0, limit: int = 50) -> Tuple[List[Notification], int]:
    query = db.query(Notification)
    if status:
        query = query.filter(Notification.status == status)
    total = query.count()
    items = query.order_by(Notification.created_at.desc()).offset(skip).limit(limit).all()
    return items, total


def overview(db: Session) -> dict:
    """Status counts plus funnel totals across every sent campaign."""
    status_counts = dict(
        db.query(Notification.status, func.count(Notification.id)).group_by(Notification.status).all()
    )
    recipients = db.query(NotificationRecipient).join(
        Notification, Notification.id == NotificationRecipient.notification_id
    ).filter(Notification.status == NotificationStatus.SENT).all()
    stats = compute_notification_statistics(recipients)

    return {
        "total_notifications": sum(status_counts.values()),
        "sent": status_counts.get(NotificationStatus.SENT, 0),
        "scheduled": status_counts.get(NotificationStatus.SCHEDULED, 0),
        "drafts": status_counts.get(NotificationStatus.DRAFT, 0),
        "total_recipients": stats.total_recipients,
        "delivered": stats.delivered,
        "opened": stats.opened,
        "clicked": stats.clicked,
        "delivery_rate": stats.delivery_rate,
        "open_rate": stats.open_rate,
        "click_rate": stats.click_rate,
    }


def get_due_scheduled(db: Session, now: Optional[datetime] = None) -> List[Notification]:
    """Scheduled campaigns whose time has come."""
    now = as_utc(now) if now else utcnow()
    scheduled = db.query(Notification).filter(
        Notification.status == NotificationStatus.SCHEDULED,
        Notification.is_scheduled == True  # noqa: E712
    ).all()
    return [n for n in scheduled if n.scheduled_date is not None and as_utc(n.scheduled_date) <= now]
