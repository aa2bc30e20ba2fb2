"""
Pydantic schemas for saved listings.
"""

from datetime import datetime
from typing import List
from pydantic import BaseModel, Field, UUID4

from marketplace.schemas.property import PropertyResponse


class FavoriteOut(BaseModel):
    id: UUID4
    property_id: UUID4
    created_at: datetime
    property: PropertyResponse

    class Config:
        from_attributes = True


class FavoriteCheck(BaseModel):
    property_id: UUID4
    is_favorite: bool


class FavoriteBulkRemove(BaseModel):
    property_ids: List[UUID4] = Field(..., min_length=1)


class FavoriteBulkResult(BaseModel):
    removed: int


class FavoriteStats(BaseModel):
    """Summary of a user's saved listings."""
    total: int
    available: int
    average_price: float
