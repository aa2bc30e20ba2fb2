"""
Property listing endpoints.

Browsing is public. Publishing needs a verified vendor, agent or admin
account and a free listing slot on the owner's plan. Owners edit their own
listings; admins can edit any and toggle verified/featured.

Listings published without an active subscription are free listings: they
are archived FREE_LISTING_DAYS after verification and hidden from browsing
until the owner subscribes.
"""

import logging
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, HTTPException, Depends, Query, status
from sqlalchemy.orm import Session

from marketplace.core.database import get_db
from marketplace.core.deps import get_admin_user, get_current_user, get_optional_user, get_vendor_user
from marketplace.core.feature_gates import publishes_free_listings, require_listing_slot
from marketplace.crud import property as property_crud
from marketplace.models.property import ListingType, Property, PropertyStatus, PropertyType
from marketplace.models.user import User
from marketplace.schemas.property import (
    Page,
    PropertyCreate,
    PropertyUpdate,
    PropertyResponse,
    PropertyFlagsUpdate
)
from marketplace.schemas.user import MessageResponse

router = APIRouter(prefix="/properties", tags=["Properties"])
logger = logging.getLogger(__name__)


def _get_property_or_404(db: Session, property_id: UUID) -> Property:
    db_property = property_crud.get_by_id(db, property_id)
    if not db_property:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Property not found"
        )
    return db_property


def _check_owner(db_property: Property, user: User) -> None:
    if db_property.owner_id != user.id and not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only modify your own listings"
        )


def _page(items, total: int, page: int, limit: int) -> Page[PropertyResponse]:
    return Page[PropertyResponse](
        items=[PropertyResponse.model_validate(item) for item in items],
        total=total,
        page=page,
        limit=limit,
        pages=property_crud.page_count(total, limit),
    )


@router.get("", response_model=Page[PropertyResponse])
def list_properties(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    city: Optional[str] = None,
    property_type: Optional[PropertyType] = None,
    listing_type: Optional[ListingType] = None,
    status_filter: Optional[PropertyStatus] = Query(None, alias="status"),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    bedrooms: Optional[int] = Query(None, ge=0),
    featured: Optional[bool] = None,
    db: Session = Depends(get_db)
):
    """
    Browse listings, newest first.

    Filters combine with AND; bedrooms means "at least".
    """
    items, total = property_crud.get_multi(
        db,
        page=page,
        limit=limit,
        city=city,
        property_type=property_type,
        listing_type=listing_type,
        status=status_filter,
        min_price=min_price,
        max_price=max_price,
        bedrooms=bedrooms,
        featured=featured,
    )
    return _page(items, total, page, limit)


@router.get("/mine", response_model=Page[PropertyResponse])
def list_my_properties(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """The caller's own listings, archived ones included."""
    items, total = property_crud.get_multi(
        db, page=page, limit=limit, owner_id=current_user.id, include_archived=True
    )
    return _page(items, total, page, limit)


@router.get("/{property_id}", response_model=PropertyResponse)
def get_property(
    property_id: UUID,
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    """
    Listing detail. Each fetch counts as a view.

    Archived listings are visible only to their owner and admins.
    """
    db_property = _get_property_or_404(db, property_id)
    if db_property.archived:
        if current_user is None or (db_property.owner_id != current_user.id and not current_user.is_admin):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Property not found"
            )
    return property_crud.increment_views(db, db_property)


@router.post("", status_code=201, response_model=PropertyResponse)
def create_property(
    data: PropertyCreate,
    current_user: User = Depends(get_vendor_user),
    db: Session = Depends(get_db)
):
    """
    Publish a listing.

    Raises:
        HTTPException 402: Listing limit of the current plan reached
    """
    require_listing_slot(db, current_user)

    is_free = publishes_free_listings(db, current_user)
    db_property = property_crud.create(db, current_user, data, is_free_listing=is_free)
    logger.info(
        f"Property {db_property.id} listed by {current_user.email} in {db_property.city}"
        f"{' (free listing)' if is_free else ''}"
    )
    return db_property


@router.patch("/{property_id}", response_model=PropertyResponse)
def update_property(
    property_id: UUID,
    updates: PropertyUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    db_property = _get_property_or_404(db, property_id)
    _check_owner(db_property, current_user)
    return property_crud.update(db, db_property, updates.model_dump(exclude_unset=True))


@router.delete("/{property_id}", response_model=MessageResponse)
def delete_property(
    property_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    db_property = _get_property_or_404(db, property_id)
    _check_owner(db_property, current_user)

    property_crud.delete(db, db_property)
    logger.info(f"Property {property_id} deleted by {current_user.email}")
    return MessageResponse(message="Property deleted successfully")


@router.patch("/{property_id}/flags", response_model=PropertyResponse)
def update_property_flags(
    property_id: UUID,
    flags: PropertyFlagsUpdate,
    admin_user: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """
    Admin moderation: mark a listing verified and/or featured.

    Verifying a free listing starts its visibility window.
    """
    db_property = _get_property_or_404(db, property_id)
    updates = flags.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Nothing to update"
        )

    logger.info(f"Admin {admin_user.email} set {updates} on property {property_id}")
    return property_crud.moderate(db, db_property, updates)
