"""
Repository functions for plans, add-on services and subscriptions.

No payment gateway is called here; purchases record the transaction id the
client supplies and write a payment history row.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple
from uuid import UUID
from sqlalchemy.orm import Session

from marketplace.core.timeutils import as_utc, utcnow
from marketplace.models.subscription import (
    AddonService, PaymentType, Plan, Subscription, SubscriptionPayment, SubscriptionStatus
)
from marketplace.models.user import User
from marketplace.schemas.subscription import AddonCreate, PlanCreate, SubscribeRequest

logger = logging.getLogger(__name__)


# Plans

def list_plans(db: Session, include_inactive: bool = False) -> List[Plan]:
    query = db.query(Plan)
    if not include_inactive:
        query = query.filter(Plan.is_active == True)  # noqa: E712
    return query.order_by(Plan.sort_order, Plan.price).all()


def get_plan(db: Session, plan_id: UUID) -> Optional[Plan]:
    return db.query(Plan).filter(Plan.id == plan_id).first()


def get_plan_by_identifier(db: Session, identifier: str) -> Optional[Plan]:
    return db.query(Plan).filter(Plan.identifier == identifier.strip().lower()).first()


def create_plan(db: Session, data: PlanCreate) -> Plan:
    """
    Raises:
        ValueError: identifier already taken
    """
    if get_plan_by_identifier(db, data.identifier):
        raise ValueError(f"Plan '{data.identifier}' already exists")

    plan = Plan(**data.model_dump())
    db.add(plan)
    db.commit()
    db.refresh(plan)
    logger.info(f"Plan created: {plan.identifier}")
    return plan


def update_plan(db: Session, plan: Plan, updates: dict) -> Plan:
    for field, value in updates.items():
        setattr(plan, field, value)
    db.commit()
    db.refresh(plan)
    return plan


# Add-ons

def list_addons(db: Session, include_inactive: bool = False) -> List[AddonService]:
    query = db.query(AddonService)
    if not include_inactive:
        query = query.filter(AddonService.is_active == True)  # noqa: E712
    return query.order_by(AddonService.sort_order, AddonService.name).all()


def get_addons(db: Session, addon_ids: Sequence[UUID]) -> List[AddonService]:
    """
    Active add-ons for the given ids.

    Raises:
        LookupError: any id is unknown or inactive
    """
    if not addon_ids:
        return []
    addons = db.query(AddonService).filter(
        AddonService.id.in_(list(addon_ids)),
        AddonService.is_active == True  # noqa: E712
    ).all()
    if len(addons) != len(set(addon_ids)):
        raise LookupError("One or more add-on services were not found")
    return addons


def create_addon(db: Session, data: AddonCreate) -> AddonService:
    addon = AddonService(**data.model_dump())
    db.add(addon)
    db.commit()
    db.refresh(addon)
    return addon


def update_addon(db: Session, addon: AddonService, updates: dict) -> AddonService:
    for field, value in updates.items():
        setattr(addon, field, value)
    db.commit()
    db.refresh(addon)
    return addon


# Subscriptions

def calculate_end_date(plan: Plan, start: datetime) -> datetime:
    return start + timedelta(days=plan.duration_days)


def get_active_subscription(db: Session, user_id: UUID, now: Optional[datetime] = None) -> Optional[Subscription]:
    """Latest subscription that is active and inside its period."""
    now = as_utc(now) if now else utcnow()
    candidates = db.query(Subscription).filter(
        Subscription.user_id == user_id,
        Subscription.status == SubscriptionStatus.ACTIVE
    ).order_by(Subscription.end_date.desc()).all()
    for subscription in candidates:
        if subscription.is_active_at(now):
            return subscription
    return None


def get_latest_subscription(db: Session, user_id: UUID) -> Optional[Subscription]:
    return db.query(Subscription).filter(
        Subscription.user_id == user_id
    ).order_by(Subscription.created_at.desc(), Subscription.start_date.desc()).first()


def subscribe(db: Session, user: User, data: SubscribeRequest, now: Optional[datetime] = None) -> Subscription:
    """
    Buy a plan, optionally with add-ons.

    Any subscription still active is cancelled first; one user holds at most
    one active subscription.

    Raises:
        LookupError: plan or add-on missing/inactive
        ValueError: transaction id already used
    """
    now = as_utc(now) if now else utcnow()

    plan = get_plan(db, data.plan_id)
    if plan is None or not plan.is_active:
        raise LookupError("Plan not found")
    addons = get_addons(db, data.addon_ids)

    if data.transaction_id and db.query(Subscription).filter(
        Subscription.transaction_id == data.transaction_id
    ).first():
        raise ValueError("Transaction has already been used")

    current = get_active_subscription(db, user.id, now)
    if current is not None:
        current.cancel("Replaced by a new subscription")

    amount = plan.price + sum(addon.price for addon in addons)
    end_date = calculate_end_date(plan, now)

    subscription = Subscription(
        user_id=user.id,
        plan_id=plan.id,
        status=SubscriptionStatus.ACTIVE,
        start_date=now,
        end_date=end_date,
        amount=amount,
        currency=plan.currency,
        payment_method=data.payment_method,
        transaction_id=data.transaction_id,
        auto_renew=data.auto_renew,
        last_payment_date=now,
        next_billing_date=end_date if data.auto_renew else None,
    )
    subscription.addons = addons
    subscription.payments.append(SubscriptionPayment(
        payment_type=PaymentType.SUBSCRIPTION_PURCHASE,
        amount=amount,
        addon_ids=[str(addon.id) for addon in addons],
        payment_id=data.transaction_id,
        paid_at=now,
    ))
    db.add(subscription)
    db.commit()
    db.refresh(subscription)

    logger.info(f"User {user.email} subscribed to {plan.identifier} ({amount} {plan.currency.value})")
    return subscription


def renew_subscription(db: Session, subscription: Subscription, transaction_id: Optional[str] = None,
                       now: Optional[datetime] = None) -> Subscription:
    """
    Extend by one billing period from the later of now and the current end.

    Raises:
        ValueError: cancelled subscriptions cannot be renewed
    """
    now = as_utc(now) if now else utcnow()
    if subscription.status == SubscriptionStatus.CANCELLED:
        raise ValueError("Cancelled subscriptions cannot be renewed. Please subscribe again.")

    base = max(as_utc(subscription.end_date), now)
    subscription.renew(calculate_end_date(subscription.plan, base), transaction_id)
    subscription.payments.append(SubscriptionPayment(
        payment_type=PaymentType.RENEWAL,
        amount=subscription.plan.price,
        addon_ids=[],
        payment_id=transaction_id,
        paid_at=now,
    ))
    db.commit()
    db.refresh(subscription)
    logger.info(f"Subscription {subscription.id} renewed until {subscription.end_date}")
    return subscription


def cancel_subscription(db: Session, subscription: Subscription, reason: Optional[str] = None) -> Subscription:
    """
    Raises:
        ValueError: already cancelled
    """
    if subscription.status == SubscriptionStatus.CANCELLED:
        raise ValueError("Subscription is already cancelled")
    subscription.cancel(reason)
    db.commit()
    db.refresh(subscription)
    logger.info(f"Subscription {subscription.id} cancelled: {reason}")
    return subscription


def purchase_addons(db: Session, subscription: Subscription, addon_ids: Sequence[UUID],
                    transaction_id: Optional[str] = None) -> Subscription:
    """
    Attach add-ons to an active subscription and record the payment.

    Raises:
        LookupError: unknown add-on
        ValueError: subscription not active, or every add-on already attached
    """
    if not subscription.is_active:
        raise ValueError("Add-ons can only be purchased on an active subscription")

    addons = get_addons(db, addon_ids)
    owned = {addon.id for addon in subscription.addons}
    new_addons = [addon for addon in addons if addon.id not in owned]
    if not new_addons:
        raise ValueError("Selected add-ons are already part of this subscription")

    subscription.addons.extend(new_addons)
    cost = sum(addon.price for addon in new_addons)
    subscription.amount = (subscription.amount or 0) + cost
    subscription.payments.append(SubscriptionPayment(
        payment_type=PaymentType.ADDON_PURCHASE,
        amount=cost,
        addon_ids=[str(addon.id) for addon in new_addons],
        payment_id=transaction_id,
        paid_at=utcnow(),
    ))
    db.commit()
    db.refresh(subscription)
    return subscription


def list_subscriptions(db: Session, status: Optional[SubscriptionStatus] = None,
                       skip: int = 0, limit: int = 50) -> Tuple[List[Subscription], int]:
    query = db.query(Subscription)
    if status:
        query = query.filter(Subscription.status == status)
    total = query.count()
    items = query.order_by(Subscription.created_at.desc()).offset(skip).limit(limit).all()
    return items, total


def expire_lapsed(db: Session, now: Optional[datetime] = None) -> int:
    """Mark active subscriptions whose period has ended as expired. Returns rows changed."""
    now = as_utc(now) if now else utcnow()
    expired = 0
    for subscription in db.query(Subscription).filter(Subscription.status == SubscriptionStatus.ACTIVE).all():
        if as_utc(subscription.end_date) <= now:
            subscription.status = SubscriptionStatus.EXPIRED
            expired += 1
    db.commit()
    return expired
