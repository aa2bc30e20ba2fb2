"""
API endpoints for plans, add-on services and subscriptions.

Plans and add-ons are listed publicly and managed by admins. A user holds at
most one active subscription; subscribing again replaces it.
"""

import logging
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from marketplace.core.database import get_db
from marketplace.core.deps import get_admin_user, get_current_user, get_verified_user
from marketplace.core.feature_gates import get_listing_limit
from marketplace.crud import property as property_crud
from marketplace.crud import subscription as subscription_crud
from marketplace.crud.property import page_count
from marketplace.models.subscription import AddonService, Plan, Subscription, SubscriptionStatus
from marketplace.models.user import User
from marketplace.schemas.property import Page
from marketplace.schemas.subscription import (
    AddonCreate,
    AddonPurchaseRequest,
    AddonResponse,
    AddonUpdate,
    CancelRequest,
    PlanCreate,
    PlanResponse,
    PlanUpdate,
    RenewRequest,
    SubscribeRequest,
    SubscriptionResponse
)

router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])
logger = logging.getLogger(__name__)


def _plan_or_404(db: Session, plan_id: UUID) -> Plan:
    plan = subscription_crud.get_plan(db, plan_id)
    if not plan:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Plan not found")
    return plan


def _addon_or_404(db: Session, addon_id: UUID) -> AddonService:
    addon = db.get(AddonService, addon_id)
    if not addon:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Add-on service not found")
    return addon


def _current_or_404(db: Session, user: User) -> Subscription:
    subscription = subscription_crud.get_latest_subscription(db, user.id)
    if not subscription:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No subscription found")
    return subscription


# Plans

@router.get("/plans", response_model=List[PlanResponse])
def list_plans(db: Session = Depends(get_db)):
    """Active plans, in display order."""
    return subscription_crud.list_plans(db)


@router.get("/plans/{plan_id}", response_model=PlanResponse)
def get_plan(plan_id: UUID, db: Session = Depends(get_db)):
    return _plan_or_404(db, plan_id)


@router.post("/plans", status_code=201, response_model=PlanResponse)
def create_plan(
    data: PlanCreate,
    db: Session = Depends(get_db),
    admin_user: User = Depends(get_admin_user)
):
    try:
        return subscription_crud.create_plan(db, data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.patch("/plans/{plan_id}", response_model=PlanResponse)
def update_plan(
    plan_id: UUID,
    updates: PlanUpdate,
    db: Session = Depends(get_db),
    admin_user: User = Depends(get_admin_user)
):
    plan = _plan_or_404(db, plan_id)
    return subscription_crud.update_plan(db, plan, updates.model_dump(exclude_unset=True))


@router.delete("/plans/{plan_id}", response_model=PlanResponse)
def deactivate_plan(
    plan_id: UUID,
    db: Session = Depends(get_db),
    admin_user: User = Depends(get_admin_user)
):
    """Hide a plan from new purchases. Existing subscriptions keep it."""
    plan = _plan_or_404(db, plan_id)
    logger.info(f"Admin {admin_user.email} deactivated plan {plan.identifier}")
    return subscription_crud.update_plan(db, plan, {"is_active": False})


# Add-ons

@router.get("/addons", response_model=List[AddonResponse])
def list_addons(db: Session = Depends(get_db)):
    return subscription_crud.list_addons(db)


@router.post("/addons", status_code=201, response_model=AddonResponse)
def create_addon(
    data: AddonCreate,
    db: Session = Depends(get_db),
    admin_user: User = Depends(get_admin_user)
):
    return subscription_crud.create_addon(db, data)


@router.patch("/addons/{addon_id}", response_model=AddonResponse)
def update_addon(
    addon_id: UUID,
    updates: AddonUpdate,
    db: Session = Depends(get_db),
    admin_user: User = Depends(get_admin_user)
):
    addon = _addon_or_404(db, addon_id)
    return subscription_crud.update_addon(db, addon, updates.model_dump(exclude_unset=True))


@router.delete("/addons/{addon_id}", response_model=AddonResponse)
def deactivate_addon(
    addon_id: UUID,
    db: Session = Depends(get_db),
    admin_user: User = Depends(get_admin_user)
):
    addon = _addon_or_404(db, addon_id)
    return subscription_crud.update_addon(db, addon, {"is_active": False})


# Subscriptions

@router.post("", status_code=201, response_model=SubscriptionResponse)
def subscribe(
    request: SubscribeRequest,
    current_user: User = Depends(get_verified_user),
    db: Session = Depends(get_db)
):
    """
    Purchase a plan with optional add-ons.

    amount = plan price + add-on prices. The end date is one billing period
    from now. A payment history row is written for the purchase. Free
    listings archived for expiry are restored.
    """
    try:
        subscription = subscription_crud.subscribe(db, current_user, request)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    property_crud.restore_free_listings(db, current_user.id)
    return SubscriptionResponse.from_subscription(subscription)


@router.get("/current", response_model=SubscriptionResponse)
def get_current_subscription(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Active subscription if there is one, otherwise the most recent."""
    subscription = subscription_crud.get_active_subscription(db, current_user.id) \
        or _current_or_404(db, current_user)
    return SubscriptionResponse.from_subscription(subscription)


@router.get("/usage")
def get_usage(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Listings used against the current plan allowance (limit null = unlimited)."""
    limit = get_listing_limit(db, current_user)
    used = len(current_user.properties)
    return {
        "listings_used": used,
        "listing_limit": limit,
        "remaining": None if limit is None else max(limit - used, 0),
    }


@router.post("/cancel", response_model=SubscriptionResponse)
def cancel_subscription(
    request: CancelRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    subscription = _current_or_404(db, current_user)
    try:
        subscription = subscription_crud.cancel_subscription(db, subscription, request.reason)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return SubscriptionResponse.from_subscription(subscription)


@router.post("/renew", response_model=SubscriptionResponse)
def renew_subscription(
    request: RenewRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Extend by one billing period from the later of now and the current end date."""
    subscription = _current_or_404(db, current_user)
    try:
        subscription = subscription_crud.renew_subscription(db, subscription, request.transaction_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return SubscriptionResponse.from_subscription(subscription)


@router.post("/addons/purchase", response_model=SubscriptionResponse)
def purchase_addons(
    request: AddonPurchaseRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    subscription = subscription_crud.get_active_subscription(db, current_user.id)
    if subscription is None:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail="An active subscription is required to purchase add-ons"
        )

    try:
        subscription = subscription_crud.purchase_addons(db, subscription, request.addon_ids, request.transaction_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return SubscriptionResponse.from_subscription(subscription)


@router.get("/admin/all", response_model=Page[SubscriptionResponse])
def admin_list_subscriptions(
    status_filter: Optional[SubscriptionStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    admin_user: User = Depends(get_admin_user)
):
    items, total = subscription_crud.list_subscriptions(db, status_filter, skip=(page - 1) * limit, limit=limit)
    return Page[SubscriptionResponse](
        items=[SubscriptionResponse.from_subscription(item) for item in items],
        total=total,
        page=page,
        limit=limit,
        pages=page_count(total, limit),
    )
