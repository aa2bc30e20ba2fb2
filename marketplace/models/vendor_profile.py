"""
Business profiles submitted by users applying to sell on the marketplace.

An application starts pending; an admin approves it (promoting a customer
account to vendor) or rejects it with a reason.
"""

import enum
import uuid
from sqlalchemy import Column, String, Text, Integer, DateTime, Enum, ForeignKey, JSON, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from marketplace.core.database import Base


class BusinessType(str, enum.Enum):
    REAL_ESTATE_AGENT = "real_estate_agent"
    PROPERTY_DEVELOPER = "property_developer"
    CONSTRUCTION_COMPANY = "construction_company"
    INTERIOR_DESIGNER = "interior_designer"
    LEGAL_SERVICES = "legal_services"
    HOME_LOAN_PROVIDER = "home_loan_provider"
    PACKERS_MOVERS = "packers_movers"
    PROPERTY_MANAGEMENT = "property_management"
    OTHER = "other"


class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class VendorProfile(Base):
    __tablename__ = "vendor_profiles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)

    # Business information
    company_name = Column(String, nullable=False)
    business_type = Column(Enum(BusinessType), nullable=False)
    business_description = Column(Text, nullable=True)
    license_number = Column(String, nullable=True)
    gst_number = Column(String, nullable=True)
    pan_number = Column(String, nullable=True)
    registration_number = Column(String, nullable=True)
    website = Column(String, nullable=True)

    # Professional information
    experience_years = Column(Integer, nullable=False, default=0)
    specializations = Column(JSON, nullable=False, default=list)
    service_areas = Column(JSON, nullable=False, default=list)
    languages = Column(JSON, nullable=False, default=list)

    # Contact information; office_address is {"street", "city", "state", "pincode"}
    office_address = Column(JSON, nullable=True)
    office_phone = Column(String, nullable=True)
    whatsapp_number = Column(String, nullable=True)
    social_media = Column(JSON, nullable=False, default=dict)

    # Review
    approval_status = Column(Enum(ApprovalStatus), nullable=False, default=ApprovalStatus.PENDING, index=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approval_notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    # [{"type", "name", "url"}]; file storage happens elsewhere
    submitted_documents = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", foreign_keys=[user_id])

    @property
    def application_id(self) -> str:
        """Short reference shown to applicants, e.g. VEN-1A2B3C4D."""
        return f"VEN-{self.id.hex[-8:].upper()}"

    def __repr__(self):
        return f"<VendorProfile(id={self.id}, company='{self.company_name}', status={self.approval_status})>"
