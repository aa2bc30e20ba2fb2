"""
Property listing model.
"""

import enum
import uuid
from sqlalchemy import Column, String, Text, Boolean, DateTime, Integer, Float, Enum, ForeignKey, JSON, Index, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from marketplace.core.database import Base


class PropertyType(str, enum.Enum):
    APARTMENT = "apartment"
    HOUSE = "house"
    VILLA = "villa"
    PLOT = "plot"
    LAND = "land"
    COMMERCIAL = "commercial"
    OFFICE = "office"
    PG = "pg"


class PropertyStatus(str, enum.Enum):
    AVAILABLE = "available"
    SOLD = "sold"
    RENTED = "rented"
    PENDING = "pending"


class ListingType(str, enum.Enum):
    SALE = "sale"
    RENT = "rent"
    LEASE = "lease"


class AreaUnit(str, enum.Enum):
    SQFT = "sqft"
    SQM = "sqm"
    ACRE = "acre"


class Property(Base):
    """
    A listing published by a vendor, agent or admin.

    images is a JSON list of {"url", "caption", "is_primary"} objects.
    """
    __tablename__ = "properties"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)

    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    property_type = Column(Enum(PropertyType), nullable=False, index=True)
    status = Column(Enum(PropertyStatus), nullable=False, default=PropertyStatus.AVAILABLE, index=True)
    listing_type = Column(Enum(ListingType), nullable=False, index=True)
    price = Column(Float, nullable=False, index=True)

    # Area
    built_up_area = Column(Float, nullable=True)
    carpet_area = Column(Float, nullable=True)
    plot_area = Column(Float, nullable=True)
    area_unit = Column(Enum(AreaUnit), nullable=False, default=AreaUnit.SQFT)

    bedrooms = Column(Integer, nullable=False, default=0)
    bathrooms = Column(Integer, nullable=False, default=0)

    # Address
    street = Column(String, nullable=False)
    locality = Column(String, nullable=False)
    city = Column(String, nullable=False, index=True)
    state = Column(String, nullable=False)
    pincode = Column(String, nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    amenities = Column(JSON, nullable=False, default=list)
    images = Column(JSON, nullable=False, default=list)

    owner_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    agent_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    views = Column(Integer, nullable=False, default=0)
    featured = Column(Boolean, nullable=False, default=False, index=True)
    verified = Column(Boolean, nullable=False, default=False)

    # Free listings are archived FREE_LISTING_DAYS after an admin verifies them
    is_free_listing = Column(Boolean, nullable=False, default=False)
    free_listing_expires_at = Column(DateTime(timezone=True), nullable=True)
    archived = Column(Boolean, nullable=False, default=False, index=True)
    archived_at = Column(DateTime(timezone=True), nullable=True)
    archived_reason = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    owner = relationship("User", back_populates="properties", foreign_keys=[owner_id])
    agent = relationship("User", foreign_keys=[agent_id])
    favorites = relationship("Favorite", back_populates="property", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_properties_city_type_listing", "city", "property_type", "listing_type"),
    )

    @property
    def primary_image(self):
        images = self.images or []
        for image in images:
            if image.get("is_primary"):
                return image.get("url")
        return images[0].get("url") if images else None

    def __repr__(self):
        return f"<Property(id={self.id}, title='{self.title}', city='{self.city}')>"
