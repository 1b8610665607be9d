from typing import Any, Optional

import structlog
from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from rentease.models.bookings import Booking
from rentease.models.enums import BookingPaymentStatus, BookingStatus
from rentease.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def insert_booking(conn: Connection, values: dict[str, Any]) -> int:
    """
    Insert a booking row and return its id.

    Args:
        conn: Active database connection (within transaction)
        values: Column values; timestamps and payment_status are filled in here

    Returns:
        int: New booking id
    """
    now = utc_now()
    row = {
        "payment_status": BookingPaymentStatus.PENDING,
        **values,
        "created_at": now,
        "updated_at": now,
    }
    result = conn.execute(insert(Booking).values(row))
    return result.inserted_primary_key[0]


def update_booking_status(
    conn: Connection,
    booking_id: int,
    status: BookingStatus,
    response_message: Optional[str] = None,
) -> None:
    """Write a new status; response_message is only overwritten when given."""
    values: dict[str, Any] = {"status": status, "updated_at": utc_now()}
    if response_message is not None:
        values["response_message"] = response_message
    conn.execute(update(Booking).where(Booking.id == booking_id).values(**values))


def update_payment_status(
    conn: Connection, booking_id: int, payment_status: BookingPaymentStatus
) -> None:
    conn.execute(
        update(Booking)
        .where(Booking.id == booking_id)
        .values(payment_status=payment_status, updated_at=utc_now())
    )
