"""
CRUD operations for saved listings.
"""

import logging
from typing import List, Sequence, Tuple
from uuid import UUID
from sqlalchemy import func
from sqlalchemy.orm import Session

from marketplace.models.favorite import Favorite
from marketplace.models.property import Property, PropertyStatus
from marketplace.models.user import User

logger = logging.getLogger(__name__)


def get(db: Session, user_id: UUID, property_id: UUID):
    return db.query(Favorite).filter(
        Favorite.user_id == user_id,
        Favorite.property_id == property_id
    ).first()


def list_for_user(db: Session, user_id: UUID, page: int = 1, limit: int = 12) -> Tuple[List[Favorite], int]:
    """Most recently saved first."""
    query = db.query(Favorite).filter(Favorite.user_id == user_id)
    total = query.count()
    items = query.order_by(Favorite.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return items, total


def add(db: Session, user: User, db_property: Property) -> Favorite:
    """
    Raises:
        ValueError: the listing is already saved
    """
    if get(db, user.id, db_property.id):
        raise ValueError("Property already in favorites")

    favorite = Favorite(user_id=user.id, property_id=db_property.id)
    db.add(favorite)
    db.commit()
    db.refresh(favorite)
    return favorite


def remove(db: Session, user_id: UUID, property_id: UUID) -> bool:
    favorite = get(db, user_id, property_id)
    if favorite is None:
        return False
    db.delete(favorite)
    db.commit()
    return True


def bulk_remove(db: Session, user_id: UUID, property_ids: Sequence[UUID]) -> int:
    """Remove every listed favorite the user has; unknown ids are ignored."""
    favorites = db.query(Favorite).filter(
        Favorite.user_id == user_id,
        Favorite.property_id.in_(list(property_ids))
    ).all()
    for favorite in favorites:
        db.delete(favorite)
    db.commit()
    if favorites:
        logger.info(f"Removed {len(favorites)} favorites for user {user_id}")
    return len(favorites)


def stats(db: Session, user_id: UUID) -> dict:
    """
    total saved, how many are still on the market, and their average price.

    A listing counts as available when its status is available and it has
    not been archived. average_price is rounded to the nearest unit.
    """
    base = db.query(Property).join(Favorite, Favorite.property_id == Property.id).filter(Favorite.user_id == user_id)

    total = base.count()
    average = base.with_entities(func.avg(Property.price)).scalar()
    available = base.filter(
        Property.status == PropertyStatus.AVAILABLE,
        Property.archived == False  # noqa: E712
    ).count()

    return {
        "total": total,
        "available": available,
        "average_price": float(round(average or 0)),
    }
