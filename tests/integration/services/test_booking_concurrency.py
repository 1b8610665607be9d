"""
Integration tests for racing confirmations.

Overlapping pending rows are written directly (the public create path would
refuse the second one), then confirmed from several threads at once. The
property lock must let exactly one confirmation through.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Any, Callable

import pytest
from sqlalchemy import func, select
from sqlalchemy.engine import Engine

from rentease.errors import ConflictError
from rentease.models.calendar import CalendarEntry
from rentease.models.enums import BookingStatus
from rentease.schemas.actors import Actor
from rentease.services import bookings


def _confirm(engine: Engine, booking_id: int, owner: Actor) -> str:
    try:
        bookings.update_status(engine, booking_id, BookingStatus.CONFIRMED, owner)
    except ConflictError:
        return "conflict"
    return "confirmed"


@pytest.mark.integration
def test_only_one_overlapping_confirmation_wins(
    engine: Engine,
    make_property: Callable[..., dict[str, Any]],
    insert_raw_booking: Callable[..., int],
    owner: Actor,
    tenant: Actor,
    other_tenant: Actor,
) -> None:
    """Test that concurrent confirmations of overlapping requests never double book."""
    prop = make_property()
    ids = [
        insert_raw_booking(prop, date(2024, 3, 1), date(2024, 3, 4), tenant=tenant),
        insert_raw_booking(prop, date(2024, 3, 2), date(2024, 3, 5), tenant=other_tenant),
        insert_raw_booking(prop, date(2024, 3, 3), date(2024, 3, 6), tenant=tenant),
        insert_raw_booking(prop, date(2024, 2, 28), date(2024, 3, 4), tenant=other_tenant),
    ]

    with ThreadPoolExecutor(max_workers=len(ids)) as pool:
        outcomes = list(pool.map(lambda bid: _confirm(engine, bid, owner), ids))

    assert outcomes.count("confirmed") == 1
    assert outcomes.count("conflict") == len(ids) - 1

    statuses = [bookings.get_booking(engine, bid, owner)["status"] for bid in ids]
    assert statuses.count(BookingStatus.CONFIRMED) == 1
    assert statuses.count(BookingStatus.PENDING) == len(ids) - 1

    winner = ids[outcomes.index("confirmed")]
    with engine.connect() as conn:
        owners = conn.execute(
            select(CalendarEntry.booking_id, func.count())
            .where(CalendarEntry.property_id == prop["id"])
            .group_by(CalendarEntry.booking_id)
        ).all()
    assert [row[0] for row in owners] == [winner]


@pytest.mark.integration
def test_disjoint_confirmations_all_succeed(
    engine: Engine,
    make_property: Callable[..., dict[str, Any]],
    insert_raw_booking: Callable[..., int],
    owner: Actor,
    tenant: Actor,
) -> None:
    """Test that the lock serializes without refusing non-overlapping stays."""
    prop = make_property()
    ids = [
        insert_raw_booking(prop, date(2024, 3, day), date(2024, 3, day + 2), tenant=tenant)
        for day in (1, 3, 5, 7)
    ]

    with ThreadPoolExecutor(max_workers=len(ids)) as pool:
        outcomes = list(pool.map(lambda bid: _confirm(engine, bid, owner), ids))

    assert outcomes == ["confirmed"] * len(ids)
    with engine.connect() as conn:
        nights = conn.execute(
            select(func.count()).select_from(CalendarEntry).where(
                CalendarEntry.property_id == prop["id"]
            )
        ).scalar_one()
    assert nights == 8
