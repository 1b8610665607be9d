from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from rentease.schemas.properties import PropertyRecord


class WishlistPayload(BaseModel):
    property_id: int


class WishlistEntry(BaseModel):
    property: PropertyRecord
    added_at: datetime


class ReviewCreatePayload(BaseModel):
    property_id: int
    booking_id: Optional[int] = Field(
        None, description="Completed booking being reviewed; picked automatically when omitted"
    )
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)
    cleanliness: Optional[int] = Field(None, ge=1, le=5)
    communication: Optional[int] = Field(None, ge=1, le=5)
    value_for_money: Optional[int] = Field(None, ge=1, le=5)


class ReviewUpdatePayload(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)
    cleanliness: Optional[int] = Field(None, ge=1, le=5)
    communication: Optional[int] = Field(None, ge=1, le=5)
    value_for_money: Optional[int] = Field(None, ge=1, le=5)


class ReviewRecord(BaseModel):
    id: int
    property_id: int
    user_id: int
    booking_id: Optional[int] = None
    rating: int
    comment: Optional[str] = None
    cleanliness: int
    communication: int
    value_for_money: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RatingSummary(BaseModel):
    overall: Decimal
    cleanliness: Decimal
    communication: Decimal
    value_for_money: Decimal
    total_reviews: int


class NotificationRecord(BaseModel):
    id: int
    user_id: int
    type: str
    title: str
    message: str
    related_id: Optional[int] = None
    related_type: Optional[str] = None
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OtpRequestPayload(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    name: Optional[str] = Field(None, max_length=120)


class OtpVerifyPayload(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    code: str = Field(..., min_length=6, max_length=6)
