"""
Paid promotion requests for property listings.
"""

import enum
import math
import uuid
from sqlalchemy import Column, String, Text, Integer, Float, DateTime, Enum, ForeignKey, JSON, event, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from marketplace.core.database import Base
from marketplace.core.timeutils import as_utc
from marketplace.models.vendor_service import PaymentStatus


class PromotionType(str, enum.Enum):
    FEATURED = "featured"
    PREMIUM = "premium"
    SPOTLIGHT = "spotlight"
    TOP_LISTING = "top_listing"
    BANNER = "banner"


class PromotionStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


MIN_DURATION_DAYS = 1
MAX_DURATION_DAYS = 365


class PromotionRequest(Base):
    __tablename__ = "promotion_requests"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    property_id = Column(UUID(as_uuid=True), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    vendor_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    promotion_type = Column(Enum(PromotionType), nullable=False)
    duration = Column(Integer, nullable=False)
    requested_start_date = Column(DateTime(timezone=True), nullable=False)
    requested_end_date = Column(DateTime(timezone=True), nullable=False)
    actual_start_date = Column(DateTime(timezone=True), nullable=True)
    actual_end_date = Column(DateTime(timezone=True), nullable=True)

    cost = Column(Float, nullable=False, default=0.0)
    payment_status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    status = Column(Enum(PromotionStatus), nullable=False, default=PromotionStatus.PENDING, index=True)

    approval_notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    reviewed_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    # {"impressions": 0, "clicks": 0, "inquiries": 0}
    metrics = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    property = relationship("Property")

    def __repr__(self):
        return f"<PromotionRequest(id={self.id}, type={self.promotion_type}, status={self.status})>"


def duration_in_days(start, end) -> int:
    return math.ceil((as_utc(end) - as_utc(start)).total_seconds() / 86400)


@event.listens_for(PromotionRequest, "before_insert")
@event.listens_for(PromotionRequest, "before_update")
def _validate_dates(mapper, connection, target):
    """Requested range must be forward; duration follows the range."""
    if as_utc(target.requested_end_date) <= as_utc(target.requested_start_date):
        raise ValueError("End date must be after start date")
    target.duration = duration_in_days(target.requested_start_date, target.requested_end_date)
