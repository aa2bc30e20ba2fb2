"""
Pydantic schemas for listing promotion requests.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, UUID4, model_validator

from marketplace.models.promotion_request import (
    MAX_DURATION_DAYS, MIN_DURATION_DAYS, PromotionStatus, PromotionType
)
from marketplace.models.vendor_service import PaymentStatus


class PromotionCreate(BaseModel):
    property_id: UUID4
    promotion_type: PromotionType
    requested_start_date: datetime
    requested_end_date: datetime
    cost: float = Field(0.0, ge=0)

    @model_validator(mode='after')
    def check_range(self):
        if self.requested_end_date <= self.requested_start_date:
            raise ValueError('End date must be after start date')
        days = (self.requested_end_date - self.requested_start_date).total_seconds() / 86400
        if days > MAX_DURATION_DAYS:
            raise ValueError(f'Promotions can run at most {MAX_DURATION_DAYS} days')
        return self


class PromotionApprove(BaseModel):
    approval_notes: Optional[str] = None
    start_date: Optional[datetime] = Field(None, description="Defaults to the requested start date")


class PromotionReject(BaseModel):
    rejection_reason: str = Field(..., min_length=3)


class PromotionOut(BaseModel):
    id: UUID4
    property_id: UUID4
    vendor_id: UUID4
    promotion_type: PromotionType
    duration: int = Field(..., ge=MIN_DURATION_DAYS, le=MAX_DURATION_DAYS)
    requested_start_date: datetime
    requested_end_date: datetime
    actual_start_date: Optional[datetime]
    actual_end_date: Optional[datetime]
    cost: float
    payment_status: PaymentStatus
    status: PromotionStatus
    approval_notes: Optional[str]
    rejection_reason: Optional[str]
    reviewed_by: Optional[UUID4]
    reviewed_at: Optional[datetime]
    metrics: dict
    created_at: datetime

    class Config:
        from_attributes = True
