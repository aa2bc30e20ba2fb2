"""
Client reviews of vendors, their services and listings.
"""

import enum
import uuid
from sqlalchemy import Column, String, Text, Integer, Boolean, DateTime, Enum, ForeignKey, JSON, UniqueConstraint, CheckConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from marketplace.core.database import Base


class ReviewType(str, enum.Enum):
    PROPERTY = "property"
    SERVICE = "service"
    GENERAL = "general"


class ReviewStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Review(Base):
    __tablename__ = "reviews"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    vendor_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    property_id = Column(UUID(as_uuid=True), ForeignKey("properties.id", ondelete="SET NULL"), nullable=True)
    service_id = Column(UUID(as_uuid=True), ForeignKey("vendor_services.id", ondelete="CASCADE"), nullable=True, index=True)

    rating = Column(Integer, nullable=False)
    title = Column(String, nullable=True)
    comment = Column(Text, nullable=False)
    review_type = Column(Enum(ReviewType), nullable=False, default=ReviewType.GENERAL)
    is_public = Column(Boolean, nullable=False, default=True)
    status = Column(Enum(ReviewStatus), nullable=False, default=ReviewStatus.APPROVED)

    vendor_response = Column(Text, nullable=True)
    vendor_responded_at = Column(DateTime(timezone=True), nullable=True)

    # User ids that marked the review helpful
    helpful_votes = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    client = relationship("User", foreign_keys=[client_id])

    __table_args__ = (
        UniqueConstraint("vendor_id", "client_id", "service_id", name="uq_review_vendor_client_service"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_review_rating_range"),
    )

    @property
    def helpful_count(self) -> int:
        return len(self.helpful_votes or [])
