"""
Services offered by vendors (legal checks, interiors, movers, ...) and the
bookings placed against them.

VendorService.total_bookings / total_revenue / average_rating /
completion_rate are an aggregate over bookings and service reviews. They are
refreshed by marketplace.crud.vendor_service.refresh_service_statistics after
a booking or review is written, never by a database hook.
"""

import enum
import uuid
from sqlalchemy import (
    Column, String, Text, Integer, Float, Boolean, DateTime, Enum, ForeignKey, JSON, Index, func
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from marketplace.core.database import Base
from marketplace.models.subscription import Currency


class ServiceCategory(str, enum.Enum):
    LEGAL = "legal"
    HOME_LOANS = "home_loans"
    INTERIOR_DESIGN = "interior_design"
    PACKERS_MOVERS = "packers_movers"
    PROPERTY_MANAGEMENT = "property_management"
    CONSTRUCTION = "construction"
    CLEANING = "cleaning"
    OTHER = "other"


class PricingType(str, enum.Enum):
    FIXED = "fixed"
    HOURLY = "hourly"
    PER_SQFT = "per_sqft"
    CUSTOM = "custom"


class BookingStatus(str, enum.Enum):
    """
    PENDING -> CONFIRMED -> IN_PROGRESS -> COMPLETED
    Any non-final state can move to CANCELLED; COMPLETED can be REFUNDED.
    """
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


BOOKING_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.IN_PROGRESS: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.COMPLETED: {BookingStatus.REFUNDED},
    BookingStatus.CANCELLED: set(),
    BookingStatus.REFUNDED: set(),
}


class VendorService(Base):
    __tablename__ = "vendor_services"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    vendor_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    category = Column(Enum(ServiceCategory), nullable=False, index=True)

    pricing_type = Column(Enum(PricingType), nullable=False, default=PricingType.FIXED)
    price = Column(Float, nullable=False, default=0.0)
    currency = Column(Enum(Currency), nullable=False, default=Currency.INR)

    features = Column(JSON, nullable=False, default=list)
    # {"days": [...], "start_time": "09:00", "end_time": "18:00"}
    availability = Column(JSON, nullable=False, default=dict)
    service_cities = Column(JSON, nullable=False, default=list)
    online_available = Column(Boolean, nullable=False, default=False)
    tags = Column(JSON, nullable=False, default=list)

    is_active = Column(Boolean, nullable=False, default=True, index=True)
    is_promoted = Column(Boolean, nullable=False, default=False)

    # Aggregates
    total_bookings = Column(Integer, nullable=False, default=0)
    total_revenue = Column(Float, nullable=False, default=0.0)
    average_rating = Column(Float, nullable=False, default=0.0)
    completion_rate = Column(Float, nullable=False, default=0.0)
    statistics_updated_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    vendor = relationship("User")
    bookings = relationship("ServiceBooking", back_populates="service")

    def __repr__(self):
        return f"<VendorService(id={self.id}, title='{self.title}')>"


class ServiceBooking(Base):
    __tablename__ = "service_bookings"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    service_id = Column(UUID(as_uuid=True), ForeignKey("vendor_services.id", ondelete="CASCADE"), nullable=False, index=True)
    vendor_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    property_id = Column(UUID(as_uuid=True), ForeignKey("properties.id", ondelete="SET NULL"), nullable=True)

    booking_date = Column(DateTime(timezone=True), server_default=func.now())
    service_date = Column(DateTime(timezone=True), nullable=False)
    duration_hours = Column(Float, nullable=True)

    amount = Column(Float, nullable=False)
    currency = Column(Enum(Currency), nullable=False, default=Currency.INR)
    status = Column(Enum(BookingStatus), nullable=False, default=BookingStatus.PENDING, index=True)
    payment_status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)

    client_notes = Column(Text, nullable=True)
    vendor_notes = Column(Text, nullable=True)
    # [{"status", "note", "at", "by"}]
    timeline = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    service = relationship("VendorService", back_populates="bookings")
    client = relationship("User", foreign_keys=[client_id])

    __table_args__ = (
        Index("ix_service_bookings_service_status", "service_id", "status"),
    )

    def can_transition_to(self, new_status: BookingStatus) -> bool:
        return new_status in BOOKING_TRANSITIONS[self.status or BookingStatus.PENDING]
