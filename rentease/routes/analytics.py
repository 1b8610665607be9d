from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.engine import Engine

from rentease.dependencies import get_actor, get_db_engine
from rentease.schemas.actors import Actor
from rentease.services import analytics

router = APIRouter()

TimeRange = Literal["7d", "30d", "90d", "1y"]


@router.get("/analytics/platform")
def platform_analytics(
    time_range: TimeRange = Query("30d"),
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """Admin dashboard: property totals, booking counts, revenue and top properties."""
    return analytics.platform_analytics(engine, actor, time_range)


@router.get("/analytics/owner")
def owner_analytics(
    time_range: TimeRange = Query("30d"),
    owner_id: Optional[int] = Query(None, description="Admins only"),
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """Per-property bookings, revenue, rating and occupancy for an owner."""
    return analytics.owner_analytics(engine, actor, time_range, owner_id=owner_id)


@router.get("/analytics/tenant")
def tenant_analytics(
    time_range: TimeRange = Query("30d"),
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    return analytics.tenant_analytics(engine, actor, time_range)
