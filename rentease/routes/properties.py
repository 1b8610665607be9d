from datetime import date
from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.engine import Engine

from rentease.dependencies import get_actor, get_db_engine, get_optional_actor
from rentease.errors import RentalError
from rentease.schemas.actors import Actor
from rentease.schemas.bookings import AvailabilityResponse, BookedRange, CalendarDay
from rentease.schemas.properties import (
    PropertyCreatePayload,
    PropertyFilters,
    PropertyPage,
    PropertyRecord,
    PropertyStatusPayload,
    PropertyUpdatePayload,
)
from rentease.services import bookings as booking_service
from rentease.services import catalog

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/properties", status_code=status.HTTP_201_CREATED, response_model=PropertyRecord)
def create_property(
    payload: PropertyCreatePayload,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    """
    List a new property for the calling owner.

    Args:
        payload: Listing details; status defaults to draft
        actor: Calling owner or admin
        engine: Database engine

    Returns:
        PropertyRecord: The stored property
    """
    try:
        return catalog.create_property(engine, actor, payload.model_dump())
    except (HTTPException, RentalError):
        raise
    except Exception as e:
        logger.exception("property_creation_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/properties", response_model=PropertyPage)
def list_properties(
    filters: PropertyFilters = Depends(),
    actor: Optional[Actor] = Depends(get_optional_actor),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    """Search published properties; admins also see drafts and deleted rows."""
    return catalog.list_properties(engine, filters.model_dump(), actor)


@router.get("/properties/{property_id}", response_model=PropertyRecord)
def get_property(
    property_id: int,
    actor: Optional[Actor] = Depends(get_optional_actor),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    return catalog.get_property(engine, property_id, actor)


@router.patch("/properties/{property_id}", response_model=PropertyRecord)
def update_property(
    property_id: int,
    payload: PropertyUpdatePayload,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    try:
        return catalog.update_property(
            engine, property_id, payload.model_dump(exclude_unset=True), actor
        )
    except (HTTPException, RentalError):
        raise
    except Exception as e:
        logger.exception("property_update_failed", property_id=property_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.patch("/properties/{property_id}/status", response_model=PropertyRecord)
def set_property_status(
    property_id: int,
    payload: PropertyStatusPayload,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    """Publish (1) or unpublish (0) a property."""
    return catalog.set_status(engine, property_id, payload.status, actor)


@router.delete("/properties/{property_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_property(
    property_id: int,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> Response:
    """Soft delete: the property disappears from non-admin views."""
    catalog.soft_delete_property(engine, property_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/properties/{property_id}/restore", response_model=PropertyRecord)
def restore_property(
    property_id: int,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    return catalog.restore_property(engine, property_id, actor)


@router.get("/properties/{property_id}/availability", response_model=AvailabilityResponse)
def check_availability(
    property_id: int,
    start_date: date = Query(..., description="First night"),
    end_date: date = Query(..., description="Check-out day (exclusive)"),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    """
    Advisory availability check for a date range.

    Returns:
        AvailabilityResponse: available is False when a pending, confirmed or
        completed booking overlaps the range
    """
    available = booking_service.check_availability(engine, property_id, start_date, end_date)
    return {
        "property_id": property_id,
        "start_date": start_date,
        "end_date": end_date,
        "available": available,
    }


@router.get("/properties/{property_id}/booked-dates", response_model=list[BookedRange])
def booked_dates(property_id: int, engine: Engine = Depends(get_db_engine)) -> Any:
    return booking_service.get_booked_dates(engine, property_id)


@router.get("/properties/{property_id}/calendar", response_model=list[CalendarDay])
def calendar(
    property_id: int,
    start_date: date = Query(...),
    end_date: date = Query(...),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    return booking_service.get_calendar(engine, property_id, start_date, end_date)


@router.post("/properties/{property_id}/calendar/rebuild")
def rebuild_calendar(
    property_id: int,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, int]:
    """Re-derive the calendar from bookings (admin only)."""
    try:
        rows = booking_service.rebuild_calendar(engine, property_id, actor)
        return {"property_id": property_id, "rows": rows}
    except (HTTPException, RentalError):
        raise
    except Exception as e:
        logger.exception("calendar_rebuild_failed", property_id=property_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
