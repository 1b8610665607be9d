from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.engine import Engine

from rentease.dependencies import get_actor, get_db_engine
from rentease.errors import AuthorizationError, RentalError
from rentease.schemas.actors import Actor
from rentease.schemas.bookings import (
    BookingCreatePayload,
    BookingFilters,
    BookingRecord,
    BookingStatusPayload,
)
from rentease.services import bookings as booking_service
from rentease.utils.datetime import utc_now

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/bookings", status_code=status.HTTP_201_CREATED, response_model=BookingRecord)
def create_booking(
    payload: BookingCreatePayload,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    """
    Request a stay.

    Args:
        payload: property_id, start_date, end_date (exclusive) and optional message
        actor: Calling tenant
        engine: Database engine

    Returns:
        BookingRecord: pending booking, or confirmed for instant-booking properties
    """
    try:
        return booking_service.create_booking(
            engine,
            actor,
            payload.property_id,
            payload.start_date,
            payload.end_date,
            payload.message,
        )
    except (HTTPException, RentalError):
        raise
    except Exception as e:
        logger.exception("booking_creation_failed", property_id=payload.property_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/bookings", response_model=list[BookingRecord])
def list_bookings(
    filters: BookingFilters = Depends(),
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    """Tenants see their requests, owners the requests on their properties, admins all."""
    return booking_service.list_bookings(engine, actor, filters.model_dump())


@router.get("/bookings/{booking_id}", response_model=BookingRecord)
def get_booking(
    booking_id: int,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    return booking_service.get_booking(engine, booking_id, actor)


@router.patch("/bookings/{booking_id}/status", response_model=BookingRecord)
def update_booking_status(
    booking_id: int,
    payload: BookingStatusPayload,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    """
    Confirm, reject, cancel or complete a booking.

    'accepted' is taken as confirmed. Confirming re-checks the dates and
    answers 409 if another confirmed stay already covers them.
    """
    try:
        return booking_service.update_status(
            engine, booking_id, payload.status, actor, payload.response_message
        )
    except (HTTPException, RentalError):
        raise
    except Exception as e:
        logger.exception("booking_status_update_failed", booking_id=booking_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/bookings/complete-elapsed")
def complete_elapsed(
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, int]:
    """Run the completion sweep now (admin only); the cron job does the same."""
    if not actor.is_admin:
        raise AuthorizationError("Only admins can run the completion sweep")
    completed = booking_service.complete_elapsed_bookings(engine, utc_now().date())
    return {"completed": completed}
