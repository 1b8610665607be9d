from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from rentease.models.enums import PaymentStatus


class PaymentCreatePayload(BaseModel):
    booking_id: int
    payment_method: Optional[str] = Field(None, max_length=30)


class PaymentProofPayload(BaseModel):
    transaction_reference: str = Field(..., min_length=1, max_length=120)
    proof_artifact: Optional[str] = Field(None, description="Screenshot URL or upload reference")


class PaymentVerifyPayload(BaseModel):
    decision: str = Field(..., description="verified or rejected")
    admin_notes: Optional[str] = Field(None, max_length=2000)


class PaymentRecord(BaseModel):
    id: int
    payment_id: str
    booking_id: int
    amount: Decimal
    payment_method: str
    status: PaymentStatus
    transaction_reference: Optional[str] = None
    proof_artifact: Optional[str] = None
    qr_code: Optional[str] = None
    admin_notes: Optional[str] = None
    expires_at: datetime
    verified_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaymentIntentResponse(BaseModel):
    """What the payer sees right after an intent is issued."""

    payment_id: str
    booking_id: int
    amount: Decimal
    status: PaymentStatus
    qr_code: str
    qr_payload: dict[str, Any]
    expires_at: datetime
    platform_account: str


class PaymentStatusResponse(BaseModel):
    payment_id: str
    status: PaymentStatus
    amount: Decimal
    expires_at: datetime
    verified_at: Optional[datetime] = None
    is_valid: bool


class PaymentFilters(BaseModel):
    """Bind to a FastAPI route via Depends(PaymentFilters)."""

    status: Optional[PaymentStatus] = None
    payment_method: Optional[str] = None
