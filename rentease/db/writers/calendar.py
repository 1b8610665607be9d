"""
Writers for the derived availability calendar.

Rows are only ever written from inside a booking transaction, never on their
own: the Booking table is authoritative and these rows follow it.
"""

from datetime import date

import structlog
from sqlalchemy import delete, select
from sqlalchemy.engine import Connection

from rentease.db.writers._upsert import upsert_with_distinct_check
from rentease.models.bookings import Booking
from rentease.models.calendar import CalendarEntry
from rentease.models.enums import BookingStatus
from rentease.utils.datetime import iter_nights

logger = structlog.get_logger(__name__)

OCCUPYING_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.COMPLETED)


def upsert_booking_nights(
    conn: Connection, property_id: int, booking_id: int, start_date: date, end_date: date
) -> int:
    """
    Point one calendar row per night of [start_date, end_date) at the booking.

    Args:
        conn: Active database connection (within transaction)
        property_id: Property the booking belongs to
        booking_id: Booking occupying the nights
        start_date: First night
        end_date: Check-out day (not written)

    Returns:
        int: Number of nights written
    """
    rows = [
        {
            "property_id": property_id,
            "date": night,
            "is_available": False,
            "booking_id": booking_id,
        }
        for night in iter_nights(start_date, end_date)
    ]

    upsert_with_distinct_check(
        conn=conn,
        table=CalendarEntry,
        rows=rows,
        conflict_columns=["property_id", "date"],
        update_columns=["is_available", "booking_id"],
    )

    logger.debug("calendar_nights_upserted", booking_id=booking_id, nights=len(rows))
    return len(rows)


def release_booking_nights(conn: Connection, booking_id: int) -> int:
    """Delete every calendar row owned by the booking. Returns rows removed."""
    result = conn.execute(delete(CalendarEntry).where(CalendarEntry.booking_id == booking_id))
    logger.debug("calendar_nights_released", booking_id=booking_id, rows=result.rowcount)
    return result.rowcount


def rebuild_property_calendar(conn: Connection, property_id: int) -> int:
    """
    Re-derive a property's calendar from its occupying bookings.

    Rows not owned by a confirmed or completed booking are removed, then every
    such booking's nights are upserted again.

    Returns:
        int: Calendar rows the property has afterwards
    """
    bookings = (
        conn.execute(
            select(Booking.id, Booking.start_date, Booking.end_date)
            .where(Booking.property_id == property_id, Booking.status.in_(OCCUPYING_STATUSES))
            .order_by(Booking.start_date.asc())
        )
        .mappings()
        .all()
    )
    owning_ids = [b["id"] for b in bookings]

    stale = delete(CalendarEntry).where(CalendarEntry.property_id == property_id)
    if owning_ids:
        stale = stale.where(
            CalendarEntry.booking_id.is_(None) | CalendarEntry.booking_id.not_in(owning_ids)
        )
    conn.execute(stale)

    total = 0
    for booking in bookings:
        total += upsert_booking_nights(
            conn, property_id, booking["id"], booking["start_date"], booking["end_date"]
        )
    return total
