"""
Pydantic schemas for property listings.
"""

from datetime import datetime
from typing import Generic, List, Optional, TypeVar
from pydantic import BaseModel, Field, UUID4, field_validator

from marketplace.models.property import PropertyType, PropertyStatus, ListingType, AreaUnit

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """Paginated list envelope."""
    items: List[T]
    total: int
    page: int
    limit: int
    pages: int


class PropertyImage(BaseModel):
    url: str
    caption: Optional[str] = None
    is_primary: bool = False


class PropertyBase(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10)
    property_type: PropertyType
    listing_type: ListingType
    price: float = Field(..., ge=0)

    built_up_area: Optional[float] = Field(None, ge=0)
    carpet_area: Optional[float] = Field(None, ge=0)
    plot_area: Optional[float] = Field(None, ge=0)
    area_unit: AreaUnit = AreaUnit.SQFT

    bedrooms: int = Field(0, ge=0)
    bathrooms: int = Field(0, ge=0)

    street: str
    locality: str
    city: str
    state: str
    pincode: str = Field(..., min_length=4, max_length=10)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    amenities: List[str] = []
    images: List[PropertyImage] = []

    @field_validator('images')
    @classmethod
    def single_primary_image(cls, v: List[PropertyImage]) -> List[PropertyImage]:
        if sum(1 for image in v if image.is_primary) > 1:
            raise ValueError('Only one image can be marked primary')
        return v


class PropertyCreate(PropertyBase):
    status: PropertyStatus = PropertyStatus.AVAILABLE
    agent_id: Optional[UUID4] = None


class PropertyUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, min_length=10)
    property_type: Optional[PropertyType] = None
    listing_type: Optional[ListingType] = None
    status: Optional[PropertyStatus] = None
    price: Optional[float] = Field(None, ge=0)
    built_up_area: Optional[float] = Field(None, ge=0)
    carpet_area: Optional[float] = Field(None, ge=0)
    plot_area: Optional[float] = Field(None, ge=0)
    area_unit: Optional[AreaUnit] = None
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=0)
    street: Optional[str] = None
    locality: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = Field(None, min_length=4, max_length=10)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    amenities: Optional[List[str]] = None
    images: Optional[List[PropertyImage]] = None
    agent_id: Optional[UUID4] = None


class PropertyResponse(PropertyBase):
    id: UUID4
    status: PropertyStatus
    owner_id: UUID4
    agent_id: Optional[UUID4] = None
    views: int
    featured: bool
    verified: bool
    is_free_listing: bool = False
    free_listing_expires_at: Optional[datetime] = None
    archived: bool = False
    archived_at: Optional[datetime] = None
    archived_reason: Optional[str] = None
    primary_image: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PropertyFlagsUpdate(BaseModel):
    """Admin moderation toggles."""
    verified: Optional[bool] = None
    featured: Optional[bool] = None
