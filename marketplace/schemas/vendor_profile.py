"""
Pydantic schemas for vendor onboarding applications.
"""

import re
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, UUID4, field_validator

from marketplace.models.vendor_profile import ApprovalStatus, BusinessType

GST_PATTERN = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")
PAN_PATTERN = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")


class OfficeAddress(BaseModel):
    street: str
    city: str
    state: str
    pincode: str = Field(..., pattern=r"^\d{6}$")


class SubmittedDocument(BaseModel):
    type: str = Field(..., description="e.g. business_license, gst_certificate, pan_card")
    name: str
    url: Optional[str] = None


class VendorRegistration(BaseModel):
    company_name: str = Field(..., min_length=2, max_length=200)
    business_type: BusinessType
    business_description: Optional[str] = Field(None, max_length=2000)
    license_number: Optional[str] = None
    gst_number: Optional[str] = None
    pan_number: Optional[str] = None
    registration_number: Optional[str] = None
    website: Optional[str] = None

    experience_years: int = Field(0, ge=0, le=100)
    specializations: List[str] = []
    service_areas: List[str] = []
    languages: List[str] = []

    office_address: Optional[OfficeAddress] = None
    office_phone: Optional[str] = None
    whatsapp_number: Optional[str] = None
    social_media: dict = {}

    documents: List[SubmittedDocument] = []

    @field_validator('gst_number')
    @classmethod
    def validate_gst(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().upper()
        if not GST_PATTERN.match(v):
            raise ValueError('Invalid GST number')
        return v

    @field_validator('pan_number')
    @classmethod
    def validate_pan(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().upper()
        if not PAN_PATTERN.match(v):
            raise ValueError('Invalid PAN number')
        return v


class VendorApplicationApprove(BaseModel):
    approval_notes: Optional[str] = None


class VendorApplicationReject(BaseModel):
    rejection_reason: str = Field(..., min_length=3)


class VendorApplicationOut(BaseModel):
    id: UUID4
    application_id: str
    user_id: UUID4
    company_name: str
    business_type: BusinessType
    business_description: Optional[str]
    license_number: Optional[str]
    gst_number: Optional[str]
    pan_number: Optional[str]
    registration_number: Optional[str]
    website: Optional[str]
    experience_years: int
    specializations: List[str]
    service_areas: List[str]
    languages: List[str]
    office_address: Optional[dict]
    office_phone: Optional[str]
    whatsapp_number: Optional[str]
    social_media: dict
    submitted_documents: List[dict]
    approval_status: ApprovalStatus
    submitted_at: Optional[datetime]
    reviewed_at: Optional[datetime]
    reviewed_by: Optional[UUID4]
    approval_notes: Optional[str]
    rejection_reason: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class VendorApplicationStatus(BaseModel):
    """What an applicant sees about their own application."""
    has_application: bool
    application_id: Optional[str] = None
    company_name: Optional[str] = None
    status: Optional[ApprovalStatus] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    approval_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    submitted_documents: int = 0
