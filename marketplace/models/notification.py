"""
Notification campaigns and their per-user delivery records.

Notification.statistics_* columns are a denormalized snapshot of the
recipients rows. They are recomputed before every flush that touches a
notification or any of its recipients (see _recompute_before_flush).
"""

import enum
import uuid
from dataclasses import dataclass
from typing import Iterable, Optional
from sqlalchemy import (
    Column, String, Text, Boolean, DateTime, Integer, Float, Enum, ForeignKey, JSON, Index,
    UniqueConstraint, event, func
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Session, relationship
from marketplace.core.database import Base


class NotificationType(str, enum.Enum):
    PROMOTIONAL = "promotional"
    INFORMATIONAL = "informational"
    ALERT = "alert"
    SYSTEM = "system"
    REMINDER = "reminder"


class TargetAudience(str, enum.Enum):
    ALL_USERS = "all_users"
    CUSTOMERS = "customers"
    VENDORS = "vendors"
    ACTIVE_USERS = "active_users"
    PREMIUM_USERS = "premium_users"
    CITY_SPECIFIC = "city_specific"
    CUSTOM = "custom"


class NotificationChannel(str, enum.Enum):
    PUSH = "push"
    EMAIL = "email"
    SMS = "sms"
    IN_APP = "in_app"


class NotificationPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class NotificationStatus(str, enum.Enum):
    """
    Campaign lifecycle.

    DRAFT -> SCHEDULED | SENDING | CANCELLED
    SCHEDULED -> SENDING | CANCELLED
    SENDING -> SENT | FAILED
    """
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


ALLOWED_TRANSITIONS = {
    NotificationStatus.DRAFT: {NotificationStatus.SCHEDULED, NotificationStatus.SENDING, NotificationStatus.CANCELLED},
    NotificationStatus.SCHEDULED: {NotificationStatus.SENDING, NotificationStatus.CANCELLED},
    NotificationStatus.SENDING: {NotificationStatus.SENT, NotificationStatus.FAILED},
    NotificationStatus.SENT: set(),
    NotificationStatus.FAILED: set(),
    NotificationStatus.CANCELLED: set(),
}


@dataclass
class NotificationStatistics:
    total_recipients: int = 0
    delivered: int = 0
    opened: int = 0
    clicked: int = 0
    delivery_rate: float = 0.0
    open_rate: float = 0.0
    click_rate: float = 0.0


def _rate(numerator: int, denominator: int) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator * 100


def compute_notification_statistics(recipients: Iterable["NotificationRecipient"]) -> NotificationStatistics:
    """
    Funnel counts and rates over a recipient list.

    delivery_rate = delivered / total, open_rate = opened / delivered,
    click_rate = clicked / opened, each as a percentage. A zero denominator
    gives 0.0.
    """
    recipients = list(recipients)
    total = len(recipients)
    delivered = sum(1 for r in recipients if r.delivered)
    opened = sum(1 for r in recipients if r.opened)
    clicked = sum(1 for r in recipients if r.clicked)

    return NotificationStatistics(
        total_recipients=total,
        delivered=delivered,
        opened=opened,
        clicked=clicked,
        delivery_rate=_rate(delivered, total),
        open_rate=_rate(opened, delivered),
        click_rate=_rate(clicked, opened),
    )


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)

    title = Column(String, nullable=False)
    subject = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    type = Column(Enum(NotificationType), nullable=False, default=NotificationType.INFORMATIONAL)
    target_audience = Column(Enum(TargetAudience), nullable=False, index=True)
    channels = Column(JSON, nullable=False, default=list)

    status = Column(Enum(NotificationStatus), nullable=False, default=NotificationStatus.DRAFT)
    is_scheduled = Column(Boolean, nullable=False, default=False)
    scheduled_date = Column(DateTime(timezone=True), nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    sent_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    failure_reason = Column(String, nullable=True)

    # {"city_filter": [...], "user_type_filter": [...], "user_ids": [...]}
    audience_filters = Column(JSON, nullable=False, default=dict)

    campaign_id = Column(String, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    priority = Column(Enum(NotificationPriority), nullable=False, default=NotificationPriority.MEDIUM)

    # Denormalized statistics
    total_recipients = Column(Integer, nullable=False, default=0)
    delivered_count = Column(Integer, nullable=False, default=0)
    opened_count = Column(Integer, nullable=False, default=0)
    clicked_count = Column(Integer, nullable=False, default=0)
    delivery_rate = Column(Float, nullable=False, default=0.0)
    open_rate = Column(Float, nullable=False, default=0.0)
    click_rate = Column(Float, nullable=False, default=0.0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    recipients = relationship(
        "NotificationRecipient",
        back_populates="notification",
        cascade="all, delete-orphan",
        order_by="NotificationRecipient.created_at",
    )

    __table_args__ = (
        Index("ix_notifications_status_created", "status", "created_at"),
        Index("ix_notifications_scheduled", "scheduled_date", "status"),
    )

    @property
    def statistics(self) -> NotificationStatistics:
        return NotificationStatistics(
            total_recipients=self.total_recipients or 0,
            delivered=self.delivered_count or 0,
            opened=self.opened_count or 0,
            clicked=self.clicked_count or 0,
            delivery_rate=self.delivery_rate or 0.0,
            open_rate=self.open_rate or 0.0,
            click_rate=self.click_rate or 0.0,
        )

    def recompute_statistics(self, recipients: Optional[Iterable["NotificationRecipient"]] = None) -> NotificationStatistics:
        """Overwrite the statistics columns from `recipients` (defaults to the loaded relationship)."""
        stats = compute_notification_statistics(self.recipients if recipients is None else recipients)
        self.total_recipients = stats.total_recipients
        self.delivered_count = stats.delivered
        self.opened_count = stats.opened
        self.clicked_count = stats.clicked
        self.delivery_rate = stats.delivery_rate
        self.open_rate = stats.open_rate
        self.click_rate = stats.click_rate
        return stats

    def can_transition_to(self, new_status: NotificationStatus) -> bool:
        current = self.status or NotificationStatus.DRAFT
        return new_status in ALLOWED_TRANSITIONS[current]

    def transition_to(self, new_status: NotificationStatus) -> None:
        """
        Raises:
            ValueError: new_status is not reachable from the current status
        """
        if not self.can_transition_to(new_status):
            current = self.status or NotificationStatus.DRAFT
            raise ValueError(f"Cannot move notification from {current.value} to {new_status.value}")
        self.status = new_status

    def __repr__(self):
        return f"<Notification(id={self.id}, title='{self.title}', status={self.status})>"


class NotificationRecipient(Base):
    __tablename__ = "notification_recipients"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    notification_id = Column(UUID(as_uuid=True), ForeignKey("notifications.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    delivered = Column(Boolean, nullable=False, default=False)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    opened = Column(Boolean, nullable=False, default=False)
    opened_at = Column(DateTime(timezone=True), nullable=True)
    clicked = Column(Boolean, nullable=False, default=False)
    clicked_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    notification = relationship("Notification", back_populates="recipients")

    __table_args__ = (
        UniqueConstraint("notification_id", "user_id", name="uq_notification_recipient"),
    )


@event.listens_for(Session, "before_flush")
def _recompute_before_flush(session, flush_context, instances):
    """Refresh statistics on every notification touched by this flush."""
    touched = set()
    for obj in list(session.new) + list(session.dirty) + list(session.deleted):
        if isinstance(obj, Notification):
            if obj not in session.deleted:
                touched.add(obj)
        elif isinstance(obj, NotificationRecipient):
            parent = obj.notification
            if parent is None and obj.notification_id is not None:
                # Added by foreign key only; the relationship is not populated until after the flush
                parent = session.get(Notification, obj.notification_id)
            if parent is not None and parent not in session.deleted:
                touched.add(parent)

    for notification in touched:
        current = [r for r in notification.recipients if r not in session.deleted]
        attached = set(current)
        for obj in session.new:
            if (
                isinstance(obj, NotificationRecipient)
                and obj not in attached
                and notification.id is not None
                and obj.notification_id == notification.id
            ):
                current.append(obj)
        notification.recompute_statistics(current)
