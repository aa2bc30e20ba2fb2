"""
CRUD operations for property listings.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import List, Optional, Tuple
from uuid import UUID
from sqlalchemy.orm import Session

from marketplace.core.config import settings
from marketplace.core.timeutils import as_utc, utcnow
from marketplace.models.property import ListingType, Property, PropertyStatus, PropertyType
from marketplace.models.user import User
from marketplace.schemas.property import PropertyCreate

logger = logging.getLogger(__name__)

FREE_LISTING_EXPIRED_REASON = f"Free listing expired after {settings.FREE_LISTING_DAYS} days"


def create(db: Session, owner: User, data: PropertyCreate, is_free_listing: bool = False) -> Property:
    """
    is_free_listing marks a listing published without an active subscription;
    it is archived FREE_LISTING_DAYS after an admin verifies it.
    """
    payload = data.model_dump()
    payload["images"] = [image.model_dump() for image in data.images]

    db_property = Property(owner_id=owner.id, is_free_listing=is_free_listing, **payload)
    db.add(db_property)
    db.commit()
    db.refresh(db_property)
    return db_property


def get_by_id(db: Session, property_id: UUID) -> Optional[Property]:
    return db.query(Property).filter(Property.id == property_id).first()


def get_multi(
    db: Session,
    page: int = 1,
    limit: int = 20,
    city: Optional[str] = None,
    property_type: Optional[PropertyType] = None,
    listing_type: Optional[ListingType] = None,
    status: Optional[PropertyStatus] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    bedrooms: Optional[int] = None,
    featured: Optional[bool] = None,
    owner_id: Optional[UUID] = None,
    include_archived: bool = False,
) -> Tuple[List[Property], int]:
    """
    Filtered, paginated listings, newest first.

    Archived listings are left out unless include_archived is set.

    Returns:
        (items for the page, total matching rows)
    """
    query = db.query(Property)

    if city:
        query = query.filter(Property.city.ilike(city))
    if property_type:
        query = query.filter(Property.property_type == property_type)
    if listing_type:
        query = query.filter(Property.listing_type == listing_type)
    if status:
        query = query.filter(Property.status == status)
    if min_price is not None:
        query = query.filter(Property.price >= min_price)
    if max_price is not None:
        query = query.filter(Property.price <= max_price)
    if bedrooms is not None:
        query = query.filter(Property.bedrooms >= bedrooms)
    if featured is not None:
        query = query.filter(Property.featured == featured)
    if owner_id:
        query = query.filter(Property.owner_id == owner_id)
    if not include_archived:
        query = query.filter(Property.archived == False)  # noqa: E712

    total = query.count()
    items = query.order_by(Property.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return items, total


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


def update(db: Session, db_property: Property, updates: dict) -> Property:
    if "images" in updates and updates["images"] is not None:
        updates["images"] = [dict(image) for image in updates["images"]]
    for field, value in updates.items():
        setattr(db_property, field, value)
    db.commit()
    db.refresh(db_property)
    return db_property


def increment_views(db: Session, db_property: Property) -> Property:
    db_property.views = (db_property.views or 0) + 1
    db.commit()
    db.refresh(db_property)
    return db_property


def delete(db: Session, db_property: Property) -> None:
    db.delete(db_property)
    db.commit()


def moderate(db: Session, db_property: Property, updates: dict, now: Optional[datetime] = None) -> Property:
    """
    Apply admin verified/featured flags.

    Verifying a free listing starts its FREE_LISTING_DAYS visibility window;
    the window is set once and not extended by verifying again.
    """
    now = as_utc(now) if now else utcnow()
    for field, value in updates.items():
        setattr(db_property, field, value)

    if updates.get("verified") and db_property.is_free_listing and db_property.free_listing_expires_at is None:
        db_property.free_listing_expires_at = now + timedelta(days=settings.FREE_LISTING_DAYS)
        logger.info(f"Free listing {db_property.id} visible until {db_property.free_listing_expires_at.isoformat()}")

    db.commit()
    db.refresh(db_property)
    return db_property


def get_expired_free_listings(db: Session, now: Optional[datetime] = None) -> List[Property]:
    """Available, unarchived free listings whose visibility window has closed."""
    now = as_utc(now) if now else utcnow()
    return db.query(Property).filter(
        Property.is_free_listing == True,  # noqa: E712
        Property.archived == False,  # noqa: E712
        Property.status == PropertyStatus.AVAILABLE,
        Property.free_listing_expires_at <= now
    ).order_by(Property.free_listing_expires_at).all()


def archive(db: Session, db_property: Property, reason: str, now: Optional[datetime] = None) -> Property:
    db_property.archived = True
    db_property.archived_at = as_utc(now) if now else utcnow()
    db_property.archived_reason = reason
    db.commit()
    db.refresh(db_property)
    return db_property


def restore_free_listings(db: Session, owner_id: UUID) -> int:
    """
    Bring back an owner's expired free listings once they subscribe.

    Restored listings are no longer free listings, so they do not expire again.
    """
    listings = db.query(Property).filter(
        Property.owner_id == owner_id,
        Property.archived == True,  # noqa: E712
        Property.archived_reason == FREE_LISTING_EXPIRED_REASON
    ).all()
    for db_property in listings:
        db_property.archived = False
        db_property.archived_at = None
        db_property.archived_reason = None
        db_property.is_free_listing = False
        db_property.free_listing_expires_at = None
    db.commit()
    if listings:
        logger.info(f"Restored {len(listings)} archived free listings for owner {owner_id}")
    return len(listings)
