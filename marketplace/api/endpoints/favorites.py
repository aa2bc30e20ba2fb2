"""
Saved listings (wishlist) endpoints. Every route needs a signed-in user.
"""

import logging
from uuid import UUID
from fastapi import APIRouter, HTTPException, Depends, Query, status
from sqlalchemy.orm import Session

from marketplace.core.database import get_db
from marketplace.core.deps import get_current_user
from marketplace.crud import favorite as favorite_crud
from marketplace.crud import property as property_crud
from marketplace.models.user import User
from marketplace.schemas.favorite import (
    FavoriteBulkRemove,
    FavoriteBulkResult,
    FavoriteCheck,
    FavoriteOut,
    FavoriteStats
)
from marketplace.schemas.property import Page
from marketplace.schemas.user import MessageResponse

router = APIRouter(prefix="/favorites", tags=["Favorites"])
logger = logging.getLogger(__name__)


@router.get("", response_model=Page[FavoriteOut])
def list_favorites(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Saved listings, most recently saved first."""
    items, total = favorite_crud.list_for_user(db, current_user.id, page=page, limit=limit)
    return Page[FavoriteOut](
        items=[FavoriteOut.model_validate(item) for item in items],
        total=total,
        page=page,
        limit=limit,
        pages=property_crud.page_count(total, limit),
    )


@router.get("/stats", response_model=FavoriteStats)
def get_favorite_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return favorite_crud.stats(db, current_user.id)


@router.get("/check/{property_id}", response_model=FavoriteCheck)
def check_favorite(
    property_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    favorite = favorite_crud.get(db, current_user.id, property_id)
    return FavoriteCheck(property_id=property_id, is_favorite=favorite is not None)


@router.delete("/bulk", response_model=FavoriteBulkResult)
def bulk_remove_favorites(
    request: FavoriteBulkRemove,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Remove several saved listings at once. Ids that are not saved are ignored."""
    removed = favorite_crud.bulk_remove(db, current_user.id, request.property_ids)
    return FavoriteBulkResult(removed=removed)


@router.post("/{property_id}", status_code=201, response_model=FavoriteOut)
def add_favorite(
    property_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Save a listing.

    Raises:
        HTTPException 404: Unknown or archived listing
        HTTPException 409: Already saved
    """
    db_property = property_crud.get_by_id(db, property_id)
    if not db_property or (db_property.archived and db_property.owner_id != current_user.id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Property not found"
        )

    try:
        favorite = favorite_crud.add(db, current_user, db_property)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    logger.info(f"{current_user.email} saved property {property_id}")
    return favorite


@router.delete("/{property_id}", response_model=MessageResponse)
def remove_favorite(
    property_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if not favorite_crud.remove(db, current_user.id, property_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Favorite not found"
        )
    return MessageResponse(message="Property removed from favorites")
