from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.engine import Engine

from rentease.dependencies import get_actor, get_db_engine
from rentease.errors import RentalError
from rentease.schemas.actors import Actor
from rentease.schemas.payments import (
    PaymentCreatePayload,
    PaymentFilters,
    PaymentIntentResponse,
    PaymentProofPayload,
    PaymentRecord,
    PaymentStatusResponse,
    PaymentVerifyPayload,
)
from rentease.services import payments as payment_service

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post(
    "/payments", status_code=status.HTTP_201_CREATED, response_model=PaymentIntentResponse
)
def create_payment(
    payload: PaymentCreatePayload,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    """
    Issue a payment intent with a QR code for the caller's booking.

    Returns:
        PaymentIntentResponse: payment_id, QR data URL and the 10 minute expiry
    """
    try:
        return payment_service.create_payment(
            engine, actor, payload.booking_id, payload.payment_method
        )
    except (HTTPException, RentalError):
        raise
    except Exception as e:
        logger.exception("payment_creation_failed", booking_id=payload.booking_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/payments/{payment_id}/proof", response_model=PaymentRecord)
def submit_proof(
    payment_id: str,
    payload: PaymentProofPayload,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    """Attach the transfer reference; answers 410 once the intent has expired."""
    try:
        return payment_service.submit_proof(
            engine, actor, payment_id, payload.transaction_reference, payload.proof_artifact
        )
    except (HTTPException, RentalError):
        raise
    except Exception as e:
        logger.exception("payment_proof_failed", payment_id=payment_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/payments/{payment_id}/verify", response_model=PaymentRecord)
def verify_payment(
    payment_id: str,
    payload: PaymentVerifyPayload,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    """Admin decision on a submitted proof: verified or rejected."""
    try:
        return payment_service.verify(
            engine, actor, payment_id, payload.decision, payload.admin_notes
        )
    except (HTTPException, RentalError):
        raise
    except Exception as e:
        logger.exception("payment_verification_failed", payment_id=payment_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/payments/{payment_id}/status", response_model=PaymentStatusResponse)
def payment_status(
    payment_id: str,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    return payment_service.get_payment_status(engine, payment_id, actor)


@router.get("/payments/booking/{booking_id}", response_model=PaymentRecord)
def latest_payment_for_booking(
    booking_id: int,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    return payment_service.get_latest_for_booking(engine, booking_id, actor)


@router.get("/payments", response_model=list[PaymentRecord])
def list_payments(
    filters: PaymentFilters = Depends(),
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    return payment_service.list_payments(
        engine, actor, status=filters.status, payment_method=filters.payment_method
    )
