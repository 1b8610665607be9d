from typing import Any

from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from rentease.models.payments import Payment
from rentease.utils.datetime import utc_now


def insert_payment(conn: Connection, values: dict[str, Any]) -> None:
    """Insert a payment intent row; payment_id is the caller-generated key."""
    now = utc_now()
    conn.execute(insert(Payment).values({**values, "created_at": now, "updated_at": now}))


def update_payment(conn: Connection, payment_id: str, values: dict[str, Any]) -> None:
    conn.execute(
        update(Payment)
        .where(Payment.payment_id == payment_id)
        .values(**values, updated_at=utc_now())
    )
