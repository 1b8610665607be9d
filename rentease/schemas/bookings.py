from __future__ import annotations

import datetime as dt
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from rentease.models.enums import BookingPaymentStatus, BookingStatus


class BookingCreatePayload(BaseModel):
    property_id: int
    start_date: date = Field(..., description="First night of the stay")
    end_date: date = Field(..., description="Check-out day (exclusive)")
    message: Optional[str] = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def validate_date_range(self) -> BookingCreatePayload:
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class BookingStatusPayload(BaseModel):
    """
    Requested transition. status is kept as a plain string so an unknown value
    reaches the booking engine and is reported as a validation error.
    """

    status: str = Field(..., min_length=1)
    response_message: Optional[str] = Field(default=None, max_length=1000)


class BookingRecord(BaseModel):
    id: int
    property_id: int
    tenant_id: int
    owner_id: int
    start_date: date
    end_date: date
    nights: int
    total_price: Decimal
    status: BookingStatus
    payment_status: BookingPaymentStatus
    message: Optional[str] = None
    response_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BookedRange(BaseModel):
    """Occupied range for calendar rendering; reveals no tenant identity."""

    start_date: date
    end_date: date


class CalendarDay(BaseModel):
    date: dt.date
    is_available: bool
    booking_id: Optional[int] = None


class BookingFilters(BaseModel):
    """Bind to a FastAPI route via Depends(BookingFilters)."""

    status: Optional[BookingStatus] = None
    property_id: Optional[int] = None

    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


class AvailabilityResponse(BaseModel):
    property_id: int
    start_date: date
    end_date: date
    available: bool
