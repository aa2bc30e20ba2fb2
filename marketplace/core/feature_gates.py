"""
Feature gates for subscription-based access control.

Listing allowances come from the owner's active plan (limits["properties"]);
owners without an active subscription get FREE_LISTING_LIMIT listings, and
those listings are free listings that expire (see crud.property.moderate).
"""

from typing import Optional
from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from marketplace.core.config import settings
from marketplace.crud.subscription import get_active_subscription
from marketplace.models.property import Property
from marketplace.models.user import User


def get_listing_limit(db: Session, user: User) -> Optional[int]:
    """
    Number of listings the user may hold; None means unlimited.

    Admins are never limited.
    """
    if user.is_admin:
        return None

    subscription = get_active_subscription(db, user.id)
    if subscription is None:
        return settings.FREE_LISTING_LIMIT
    return subscription.plan.property_limit


def publishes_free_listings(db: Session, user: User) -> bool:
    """True when new listings from this user count as free listings."""
    if user.is_admin:
        return False
    return get_active_subscription(db, user.id) is None


def can_create_listing(db: Session, user: User) -> bool:
    limit = get_listing_limit(db, user)
    if limit is None:
        return True
    owned = db.query(Property).filter(Property.owner_id == user.id).count()
    return owned < limit


def require_listing_slot(db: Session, user: User) -> None:
    """
    Raise HTTPException if the user has used up their listing allowance.

    Raises:
        HTTPException: 402 Payment Required with the current limit
    """
    if not can_create_listing(db, user):
        limit = get_listing_limit(db, user)
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail=(
                f"Listing limit reached ({limit} listings on your current plan). "
                "Upgrade your subscription to publish more properties."
            )
        )
