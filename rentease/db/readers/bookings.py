from datetime import date
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from rentease.models.bookings import Booking
from rentease.models.calendar import CalendarEntry
from rentease.models.enums import BookingStatus


def get_booking(
    conn: Connection, booking_id: int, for_update: bool = False
) -> Optional[dict[str, Any]]:
    """
    Fetch a booking row by id.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        booking_id (int): Booking ID.
        for_update (bool): Lock the row until the surrounding transaction ends.

    Returns:
        Optional[dict[str, Any]]: Booking columns or None if not found.
    """
    stmt = select(Booking.__table__).where(Booking.id == booking_id)
    if for_update:
        stmt = stmt.with_for_update()
    row = conn.execute(stmt).mappings().fetchone()
    return dict(row) if row else None


def has_overlapping_booking(
    conn: Connection,
    property_id: int,
    start_date: date,
    end_date: date,
    statuses: Iterable[BookingStatus],
    exclude_booking_id: Optional[int] = None,
) -> bool:
    """
    Return True if a booking in one of ``statuses`` overlaps [start_date, end_date).

    Two half-open ranges overlap when each starts before the other ends, so
    back-to-back stays (check-out day == next check-in day) do not conflict.
    """
    stmt = select(Booking.id).where(
        Booking.property_id == property_id,
        Booking.status.in_(list(statuses)),
        Booking.start_date < end_date,
        Booking.end_date > start_date,
    )
    if exclude_booking_id is not None:
        stmt = stmt.where(Booking.id != exclude_booking_id)
    return conn.execute(stmt.limit(1)).fetchone() is not None


def list_booked_ranges(
    conn: Connection, property_id: int, statuses: Iterable[BookingStatus]
) -> list[dict[str, date]]:
    """Return (start_date, end_date) of bookings in ``statuses``, earliest first."""
    result = conn.execute(
        select(Booking.start_date, Booking.end_date)
        .where(Booking.property_id == property_id, Booking.status.in_(list(statuses)))
        .order_by(Booking.start_date.asc())
    )
    return [dict(r) for r in result.mappings()]


def list_bookings(
    conn: Connection,
    tenant_id: Optional[int] = None,
    owner_id: Optional[int] = None,
    property_id: Optional[int] = None,
    status: Optional[BookingStatus] = None,
    limit: int = 20,
    offset: int = 0,
) -> list[dict[str, Any]]:
    """List bookings newest first, narrowed by any of the given filters."""
    stmt = select(Booking.__table__)
    if tenant_id is not None:
        stmt = stmt.where(Booking.tenant_id == tenant_id)
    if owner_id is not None:
        stmt = stmt.where(Booking.owner_id == owner_id)
    if property_id is not None:
        stmt = stmt.where(Booking.property_id == property_id)
    if status is not None:
        stmt = stmt.where(Booking.status == status)
    stmt = stmt.order_by(Booking.created_at.desc(), Booking.id.desc()).limit(limit).offset(offset)
    return [dict(r) for r in conn.execute(stmt).mappings()]


def list_bookings_by_status(
    conn: Connection, property_id: int, statuses: Iterable[BookingStatus]
) -> list[dict[str, Any]]:
    result = conn.execute(
        select(Booking.__table__)
        .where(Booking.property_id == property_id, Booking.status.in_(list(statuses)))
        .order_by(Booking.start_date.asc())
    )
    return [dict(r) for r in result.mappings()]


def list_elapsed_confirmed(conn: Connection, today: date) -> list[dict[str, Any]]:
    """Confirmed bookings whose check-out day is today or earlier."""
    result = conn.execute(
        select(Booking.__table__)
        .where(Booking.status == BookingStatus.CONFIRMED, Booking.end_date <= today)
        .order_by(Booking.id.asc())
        .with_for_update()
    )
    return [dict(r) for r in result.mappings()]


def get_calendar(
    conn: Connection, property_id: int, start_date: date, end_date: date
) -> list[dict[str, Any]]:
    """Calendar rows for [start_date, end_date), ordered by date."""
    result = conn.execute(
        select(CalendarEntry.date, CalendarEntry.is_available, CalendarEntry.booking_id)
        .where(
            CalendarEntry.property_id == property_id,
            CalendarEntry.date >= start_date,
            CalendarEntry.date < end_date,
        )
        .order_by(CalendarEntry.date.asc())
    )
    return [dict(r) for r in result.mappings()]


def get_calendar_for_booking(conn: Connection, booking_id: int) -> list[dict[str, Any]]:
    result = conn.execute(
        select(CalendarEntry.property_id, CalendarEntry.date, CalendarEntry.booking_id)
        .where(CalendarEntry.booking_id == booking_id)
        .order_by(CalendarEntry.date.asc())
    )
    return [dict(r) for r in result.mappings()]
