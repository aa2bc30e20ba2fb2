"""
Pydantic schemas for vendor services, bookings and reviews.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, UUID4

from marketplace.models.review import ReviewStatus, ReviewType
from marketplace.models.subscription import Currency
from marketplace.models.vendor_service import BookingStatus, PaymentStatus, PricingType, ServiceCategory


class ServiceAvailability(BaseModel):
    days: List[str] = []
    start_time: Optional[str] = None
    end_time: Optional[str] = None


class ServiceCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10)
    category: ServiceCategory
    pricing_type: PricingType = PricingType.FIXED
    price: float = Field(0.0, ge=0)
    currency: Currency = Currency.INR
    features: List[str] = []
    availability: ServiceAvailability = ServiceAvailability()
    service_cities: List[str] = []
    online_available: bool = False
    tags: List[str] = []


class ServiceUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, min_length=10)
    category: Optional[ServiceCategory] = None
    pricing_type: Optional[PricingType] = None
    price: Optional[float] = Field(None, ge=0)
    features: Optional[List[str]] = None
    availability: Optional[ServiceAvailability] = None
    service_cities: Optional[List[str]] = None
    online_available: Optional[bool] = None
    tags: Optional[List[str]] = None
    is_active: Optional[bool] = None


class ServiceOut(BaseModel):
    id: UUID4
    vendor_id: UUID4
    title: str
    description: str
    category: ServiceCategory
    pricing_type: PricingType
    price: float
    currency: Currency
    features: List[str]
    availability: dict
    service_cities: List[str]
    online_available: bool
    tags: List[str]
    is_active: bool
    is_promoted: bool
    total_bookings: int
    total_revenue: float
    average_rating: float
    completion_rate: float
    created_at: datetime

    class Config:
        from_attributes = True


class ServiceStatisticsOut(BaseModel):
    service_id: UUID4
    total_bookings: int
    total_revenue: float
    average_rating: float
    completion_rate: float
    statistics_updated_at: Optional[datetime]


class BookingCreate(BaseModel):
    service_date: datetime
    duration_hours: Optional[float] = Field(None, gt=0)
    property_id: Optional[UUID4] = None
    amount: Optional[float] = Field(None, ge=0, description="Defaults to the service price")
    client_notes: Optional[str] = None


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    note: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None


class BookingOut(BaseModel):
    id: UUID4
    service_id: UUID4
    vendor_id: UUID4
    client_id: UUID4
    property_id: Optional[UUID4]
    booking_date: Optional[datetime]
    service_date: datetime
    duration_hours: Optional[float]
    amount: float
    currency: Currency
    status: BookingStatus
    payment_status: PaymentStatus
    client_notes: Optional[str]
    vendor_notes: Optional[str]
    timeline: List[dict]

    class Config:
        from_attributes = True


class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    title: Optional[str] = Field(None, max_length=200)
    comment: str = Field(..., min_length=1, max_length=2000)
    property_id: Optional[UUID4] = None
    is_public: bool = True


class VendorResponseCreate(BaseModel):
    response: str = Field(..., min_length=1, max_length=2000)


class ReviewOut(BaseModel):
    id: UUID4
    vendor_id: UUID4
    client_id: UUID4
    service_id: Optional[UUID4]
    property_id: Optional[UUID4]
    rating: int
    title: Optional[str]
    comment: str
    review_type: ReviewType
    is_public: bool
    status: ReviewStatus
    vendor_response: Optional[str]
    vendor_responded_at: Optional[datetime]
    helpful_count: int
    created_at: datetime

    class Config:
        from_attributes = True
