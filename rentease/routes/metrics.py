"""
Prometheus metrics endpoint.

Example:
    GET /metrics

    Response:
        # HELP rentease_bookings_created_total Total number of bookings created
        # TYPE rentease_bookings_created_total counter
        rentease_bookings_created_total{initial_status="pending"} 12.0
        ...
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics", response_class=Response)
async def metrics() -> Any:
    """Expose all registered metrics in the Prometheus text format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
