"""
Pydantic schemas for plans, add-on services and subscriptions.
"""

from pydantic import BaseModel, Field, UUID4, field_validator
from typing import List, Optional
from datetime import datetime

from marketplace.models.subscription import (
    BillingPeriod, Currency, PaymentMethod, PaymentType, SubscriptionStatus
)


class PlanFeature(BaseModel):
    name: str
    description: Optional[str] = None
    enabled: bool = True


class PlanCreate(BaseModel):
    identifier: str = Field(..., min_length=2, max_length=50)
    name: str
    description: str
    price: float = Field(..., ge=0)
    currency: Currency = Currency.INR
    billing_period: BillingPeriod = BillingPeriod.MONTHLY
    billing_cycle_months: int = Field(1, ge=1, le=120)
    features: List[PlanFeature] = []
    limits: dict = Field(default_factory=dict, description='e.g. {"properties": 10}; null means unlimited')
    is_popular: bool = False
    sort_order: int = 0

    @field_validator('identifier')
    @classmethod
    def normalize_identifier(cls, v: str) -> str:
        return v.strip().lower()


class PlanUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    billing_period: Optional[BillingPeriod] = None
    billing_cycle_months: Optional[int] = Field(None, ge=1, le=120)
    features: Optional[List[PlanFeature]] = None
    limits: Optional[dict] = None
    is_active: Optional[bool] = None
    is_popular: Optional[bool] = None
    sort_order: Optional[int] = None


class PlanResponse(BaseModel):
    id: UUID4
    identifier: str
    name: str
    description: str
    price: float
    currency: Currency
    billing_period: BillingPeriod
    billing_cycle_months: int
    features: List[PlanFeature]
    limits: dict
    is_active: bool
    is_popular: bool
    sort_order: int

    class Config:
        from_attributes = True


class AddonCreate(BaseModel):
    name: str
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    currency: Currency = Currency.INR
    category: Optional[str] = None
    sort_order: int = 0


class AddonUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None


class AddonResponse(BaseModel):
    id: UUID4
    name: str
    description: Optional[str]
    price: float
    currency: Currency
    category: Optional[str]
    is_active: bool

    class Config:
        from_attributes = True


class SubscribeRequest(BaseModel):
    plan_id: UUID4
    addon_ids: List[UUID4] = []
    payment_method: PaymentMethod
    transaction_id: Optional[str] = None
    auto_renew: bool = False


class RenewRequest(BaseModel):
    transaction_id: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class AddonPurchaseRequest(BaseModel):
    addon_ids: List[UUID4] = Field(..., min_length=1)
    transaction_id: Optional[str] = None


class PaymentRecord(BaseModel):
    payment_type: PaymentType
    amount: float
    addon_ids: List[str]
    payment_id: Optional[str]
    paid_at: datetime

    class Config:
        from_attributes = True


class SubscriptionResponse(BaseModel):
    id: UUID4
    user_id: UUID4
    plan: PlanResponse
    addons: List[AddonResponse]
    status: SubscriptionStatus
    start_date: datetime
    end_date: datetime
    amount: float
    currency: Currency
    payment_method: PaymentMethod
    transaction_id: Optional[str]
    auto_renew: bool
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    payments: List[PaymentRecord] = []
    is_active: bool
    days_remaining: int

    @classmethod
    def from_subscription(cls, subscription) -> "SubscriptionResponse":
        return cls.model_validate({
            **{column.name: getattr(subscription, column.name) for column in subscription.__table__.columns},
            "plan": subscription.plan,
            "addons": subscription.addons,
            "payments": subscription.payments,
            "is_active": subscription.is_active,
            "days_remaining": subscription.days_remaining(),
        }, from_attributes=True)

    class Config:
        from_attributes = True
