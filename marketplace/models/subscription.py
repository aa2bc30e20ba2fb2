"""
Subscription plans, add-on services and user subscriptions.

A subscription snapshots the amount and currency at purchase time so later
plan price edits do not rewrite history. Payment history rows record every
purchase, renewal and add-on.
"""

import enum
import math
import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import (
    Column, String, Text, Integer, Float, Boolean, DateTime, Enum, ForeignKey, JSON, Table, Index, func
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from marketplace.core.database import Base
from marketplace.core.timeutils import as_utc, utcnow


class Currency(str, enum.Enum):
    INR = "INR"
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"


class BillingPeriod(str, enum.Enum):
    """
    How long one payment buys.

    MONTHLY/YEARLY/CUSTOM use billing_cycle_months; LIFETIME and ONE_TIME
    do not expire in practice (100 years).
    """
    MONTHLY = "monthly"
    YEARLY = "yearly"
    LIFETIME = "lifetime"
    ONE_TIME = "one-time"
    CUSTOM = "custom"


class SubscriptionStatus(str, enum.Enum):
    """
    - PENDING: created, payment not confirmed
    - ACTIVE: paid and within its period
    - EXPIRED: period ended without renewal
    - CANCELLED: cancelled by the user or an admin
    """
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    PENDING = "pending"


class PaymentMethod(str, enum.Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    UPI = "upi"
    NET_BANKING = "net_banking"
    WALLET = "wallet"
    RAZORPAY = "razorpay"


class PaymentType(str, enum.Enum):
    SUBSCRIPTION_PURCHASE = "subscription_purchase"
    ADDON_PURCHASE = "addon_purchase"
    RENEWAL = "renewal"
    UPGRADE = "upgrade"


subscription_addons = Table(
    "subscription_addons",
    Base.metadata,
    Column("subscription_id", UUID(as_uuid=True), ForeignKey("subscriptions.id", ondelete="CASCADE"), primary_key=True),
    Column("addon_id", UUID(as_uuid=True), ForeignKey("addon_services.id", ondelete="CASCADE"), primary_key=True),
)


class Plan(Base):
    """
    A purchasable plan.

    limits is a JSON object; limits["properties"] of None (or a negative
    legacy value) means unlimited listings.
    """
    __tablename__ = "plans"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    identifier = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    price = Column(Float, nullable=False)
    currency = Column(Enum(Currency), nullable=False, default=Currency.INR)
    billing_period = Column(Enum(BillingPeriod), nullable=False, default=BillingPeriod.MONTHLY)
    billing_cycle_months = Column(Integer, nullable=False, default=1)

    # [{"name", "description", "enabled"}]
    features = Column(JSON, nullable=False, default=list)
    limits = Column(JSON, nullable=False, default=dict)

    is_active = Column(Boolean, nullable=False, default=True)
    is_popular = Column(Boolean, nullable=False, default=False)
    sort_order = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @property
    def property_limit(self) -> Optional[int]:
        """Listing allowance; None means unlimited."""
        limit = (self.limits or {}).get("properties")
        if limit is None or limit < 0:
            return None
        return int(limit)

    @property
    def duration_days(self) -> int:
        """Length of one billing period; a month counts as 30 days, a year as 365."""
        cycle = self.billing_cycle_months or 1
        if self.billing_period in (BillingPeriod.LIFETIME, BillingPeriod.ONE_TIME):
            return 36500
        if self.billing_period == BillingPeriod.YEARLY:
            return 365 * max(1, cycle // 12)
        return 30 * cycle

    def __repr__(self):
        return f"<Plan(identifier='{self.identifier}', price={self.price})>"


class AddonService(Base):
    """Paid extra bundled onto a subscription (photo shoot, legal check, ...)."""
    __tablename__ = "addon_services"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False)
    currency = Column(Enum(Currency), nullable=False, default=Currency.INR)
    category = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_id = Column(UUID(as_uuid=True), ForeignKey("plans.id"), nullable=False, index=True)

    status = Column(Enum(SubscriptionStatus), nullable=False, default=SubscriptionStatus.PENDING, index=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False, index=True)

    amount = Column(Float, nullable=False)
    currency = Column(Enum(Currency), nullable=False, default=Currency.INR)
    payment_method = Column(Enum(PaymentMethod), nullable=False)
    transaction_id = Column(String, unique=True, nullable=True)

    auto_renew = Column(Boolean, nullable=False, default=False)
    renewal_attempts = Column(Integer, nullable=False, default=0)
    last_payment_date = Column(DateTime(timezone=True), nullable=True)
    next_billing_date = Column(DateTime(timezone=True), nullable=True)

    cancellation_reason = Column(String, nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="subscriptions")
    plan = relationship("Plan")
    addons = relationship("AddonService", secondary=subscription_addons)
    payments = relationship(
        "SubscriptionPayment",
        back_populates="subscription",
        cascade="all, delete-orphan",
        order_by="SubscriptionPayment.paid_at",
    )

    __table_args__ = (
        Index("ix_subscriptions_user_status", "user_id", "status"),
    )

    def __repr__(self):
        return f"<Subscription(user_id={self.user_id}, plan_id={self.plan_id}, status={self.status})>"

    def is_active_at(self, now: Optional[datetime] = None) -> bool:
        now = as_utc(now) if now else utcnow()
        return self.status == SubscriptionStatus.ACTIVE and as_utc(self.end_date) > now

    def is_expired_at(self, now: Optional[datetime] = None) -> bool:
        now = as_utc(now) if now else utcnow()
        return as_utc(self.end_date) <= now or self.status == SubscriptionStatus.EXPIRED

    @property
    def is_active(self) -> bool:
        """Active status and the paid period has not ended."""
        return self.is_active_at()

    @property
    def is_expired(self) -> bool:
        return self.is_expired_at()

    def days_remaining(self, now: Optional[datetime] = None) -> int:
        """Whole days left, rounded up; 0 once expired."""
        now = as_utc(now) if now else utcnow()
        if self.is_expired_at(now):
            return 0
        seconds = (as_utc(self.end_date) - now).total_seconds()
        return max(0, math.ceil(seconds / 86400))

    def renew(self, new_end_date: datetime, transaction_id: Optional[str]) -> None:
        """Extend the period and reactivate. Caller commits."""
        self.end_date = new_end_date
        self.status = SubscriptionStatus.ACTIVE
        self.last_payment_date = utcnow()
        self.transaction_id = transaction_id
        self.renewal_attempts = 0
        if self.auto_renew:
            self.next_billing_date = new_end_date

    def cancel(self, reason: Optional[str]) -> None:
        """Caller commits."""
        self.status = SubscriptionStatus.CANCELLED
        self.auto_renew = False
        self.cancellation_reason = reason
        self.cancelled_at = utcnow()


class SubscriptionPayment(Base):
    """One entry in a subscription's payment history."""
    __tablename__ = "subscription_payments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    subscription_id = Column(UUID(as_uuid=True), ForeignKey("subscriptions.id", ondelete="CASCADE"), nullable=False, index=True)
    payment_type = Column(Enum(PaymentType), nullable=False)
    amount = Column(Float, nullable=False)
    addon_ids = Column(JSON, nullable=False, default=list)
    payment_id = Column(String, nullable=True)
    order_id = Column(String, nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    subscription = relationship("Subscription", back_populates="payments")
