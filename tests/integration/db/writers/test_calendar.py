"""
Integration tests for the availability calendar writer.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable

import pytest
from sqlalchemy import select
from sqlalchemy.engine import Engine

from rentease.db.writers.calendar import (
    rebuild_property_calendar,
    release_booking_nights,
    upsert_booking_nights,
)
from rentease.models.calendar import CalendarEntry
from rentease.models.enums import BookingStatus


def _rows(engine: Engine, property_id: int) -> list[Any]:
    with engine.connect() as conn:
        return conn.execute(
            select(CalendarEntry.date, CalendarEntry.booking_id, CalendarEntry.is_available)
            .where(CalendarEntry.property_id == property_id)
            .order_by(CalendarEntry.date)
        ).fetchall()


@pytest.fixture
def prop(make_property: Callable[..., dict[str, Any]]) -> dict[str, Any]:
    return make_property()


@pytest.mark.integration
def test_upsert_booking_nights_creates_one_row_per_night(
    engine: Engine, prop: dict[str, Any], insert_raw_booking: Callable[..., int]
) -> None:
    """Test that upsert_booking_nights writes every night but not the check-out day."""
    booking_id = insert_raw_booking(prop, date(2024, 3, 1), date(2024, 3, 4))

    with engine.begin() as conn:
        written = upsert_booking_nights(
            conn, prop["id"], booking_id, date(2024, 3, 1), date(2024, 3, 4)
        )

    rows = _rows(engine, prop["id"])
    assert written == 3
    assert [r.date for r in rows] == [date(2024, 3, 1), date(2024, 3, 2), date(2024, 3, 3)]
    assert all(r.booking_id == booking_id and r.is_available is False for r in rows)


@pytest.mark.integration
def test_upsert_booking_nights_repoints_existing_rows(
    engine: Engine, prop: dict[str, Any], insert_raw_booking: Callable[..., int]
) -> None:
    """Test that a (property, date) conflict moves the row to the new booking."""
    first = insert_raw_booking(prop, date(2024, 3, 1), date(2024, 3, 3))
    second = insert_raw_booking(prop, date(2024, 3, 2), date(2024, 3, 4))

    with engine.begin() as conn:
        upsert_booking_nights(conn, prop["id"], first, date(2024, 3, 1), date(2024, 3, 3))
        upsert_booking_nights(conn, prop["id"], second, date(2024, 3, 2), date(2024, 3, 4))

    rows = _rows(engine, prop["id"])
    assert [(r.date, r.booking_id) for r in rows] == [
        (date(2024, 3, 1), first),
        (date(2024, 3, 2), second),
        (date(2024, 3, 3), second),
    ]


@pytest.mark.integration
def test_upsert_booking_nights_is_idempotent(
    engine: Engine, prop: dict[str, Any], insert_raw_booking: Callable[..., int]
) -> None:
    """Test that writing the same nights twice leaves a single row per night."""
    booking_id = insert_raw_booking(prop, date(2024, 3, 1), date(2024, 3, 3))

    for _ in range(2):
        with engine.begin() as conn:
            upsert_booking_nights(conn, prop["id"], booking_id, date(2024, 3, 1), date(2024, 3, 3))

    assert len(_rows(engine, prop["id"])) == 2


@pytest.mark.integration
def test_release_booking_nights(
    engine: Engine, prop: dict[str, Any], insert_raw_booking: Callable[..., int]
) -> None:
    """Test that release removes only the booking's own rows."""
    keep = insert_raw_booking(prop, date(2024, 3, 1), date(2024, 3, 2))
    drop = insert_raw_booking(prop, date(2024, 3, 5), date(2024, 3, 7))
    with engine.begin() as conn:
        upsert_booking_nights(conn, prop["id"], keep, date(2024, 3, 1), date(2024, 3, 2))
        upsert_booking_nights(conn, prop["id"], drop, date(2024, 3, 5), date(2024, 3, 7))

    with engine.begin() as conn:
        removed = release_booking_nights(conn, drop)

    assert removed == 2
    assert [r.booking_id for r in _rows(engine, prop["id"])] == [keep]


@pytest.mark.integration
def test_rebuild_property_calendar_drops_stale_rows(
    engine: Engine, prop: dict[str, Any], insert_raw_booking: Callable[..., int]
) -> None:
    """Test that rebuild keeps confirmed and completed stays and nothing else."""
    confirmed = insert_raw_booking(
        prop, date(2024, 3, 1), date(2024, 3, 3), status=BookingStatus.CONFIRMED
    )
    completed = insert_raw_booking(
        prop, date(2024, 2, 1), date(2024, 2, 2), status=BookingStatus.COMPLETED
    )
    cancelled = insert_raw_booking(
        prop, date(2024, 4, 1), date(2024, 4, 3), status=BookingStatus.CANCELLED
    )
    with engine.begin() as conn:
        # Leftover rows from a cancellation that never released them.
        upsert_booking_nights(conn, prop["id"], cancelled, date(2024, 4, 1), date(2024, 4, 3))

    with engine.begin() as conn:
        total = rebuild_property_calendar(conn, prop["id"])

    rows = _rows(engine, prop["id"])
    assert total == 3
    assert [r.booking_id for r in rows] == [completed, confirmed, confirmed]
