from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from rentease.models.enums import PropertyStatus


class PropertyCreatePayload(BaseModel):
    """
    Schema for listing a new property. Listings start as drafts unless the
    owner publishes them straight away.
    """

    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    property_type: Optional[str] = Field(None, max_length=50)
    city: Optional[str] = Field(None, max_length=120)
    address: Optional[str] = Field(None, max_length=255)
    price: Decimal = Field(..., gt=0, description="Price per night")
    is_available: bool = True
    instant_booking: bool = False
    status: PropertyStatus = PropertyStatus.DRAFT


class PropertyUpdatePayload(BaseModel):
    """Schema for updating a property. All fields are optional."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    property_type: Optional[str] = Field(None, max_length=50)
    city: Optional[str] = Field(None, max_length=120)
    address: Optional[str] = Field(None, max_length=255)
    price: Optional[Decimal] = Field(None, gt=0)
    is_available: Optional[bool] = None
    instant_booking: Optional[bool] = None


class PropertyStatusPayload(BaseModel):
    status: PropertyStatus


class PropertyRecord(BaseModel):
    id: int
    owner_id: int
    title: str
    description: Optional[str] = None
    property_type: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    price: Decimal
    is_available: bool
    instant_booking: bool
    status: PropertyStatus
    avg_rating: Decimal = Decimal("0")
    total_reviews: int = 0
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PropertyFilters(BaseModel):
    """Bind to a FastAPI route via Depends(PropertyFilters)."""

    city: Optional[str] = None
    property_type: Optional[str] = None
    min_price: Optional[Decimal] = Field(None, ge=0)
    max_price: Optional[Decimal] = Field(None, ge=0)
    instant_booking: Optional[bool] = None
    is_available: Optional[bool] = None
    owner_id: Optional[int] = None
    sort_by: Literal["newest", "price_low", "price_high", "rating"] = "newest"
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class PropertyPage(BaseModel):
    properties: list[PropertyRecord]
    total: int
