from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from rentease.models.enums import PaymentStatus
from rentease.models.payments import Payment


def get_payment(
    conn: Connection, payment_id: str, for_update: bool = False
) -> Optional[dict[str, Any]]:
    """
    Fetch a payment intent by its external payment_id.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        payment_id (str): Opaque external payment identifier.
        for_update (bool): Lock the row until the surrounding transaction ends.

    Returns:
        Optional[dict[str, Any]]: Payment columns or None if not found.
    """
    stmt = select(Payment.__table__).where(Payment.payment_id == payment_id)
    if for_update:
        stmt = stmt.with_for_update()
    row = conn.execute(stmt).mappings().fetchone()
    return dict(row) if row else None


def get_latest_for_booking(conn: Connection, booking_id: int) -> Optional[dict[str, Any]]:
    row = (
        conn.execute(
            select(Payment.__table__)
            .where(Payment.booking_id == booking_id)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .limit(1)
        )
        .mappings()
        .fetchone()
    )
    return dict(row) if row else None


def list_for_booking_in_status(
    conn: Connection, booking_id: int, statuses: Iterable[PaymentStatus]
) -> list[dict[str, Any]]:
    """Intents of a booking in any of ``statuses``, locked for the transaction."""
    result = conn.execute(
        select(Payment.__table__)
        .where(Payment.booking_id == booking_id, Payment.status.in_(list(statuses)))
        .order_by(Payment.id.asc())
        .with_for_update()
    )
    return [dict(r) for r in result.mappings()]


def list_payments(
    conn: Connection,
    status: Optional[PaymentStatus] = None,
    payment_method: Optional[str] = None,
) -> list[dict[str, Any]]:
    stmt = select(Payment.__table__)
    if status is not None:
        stmt = stmt.where(Payment.status == status)
    if payment_method:
        stmt = stmt.where(Payment.payment_method == payment_method)
    stmt = stmt.order_by(Payment.created_at.desc(), Payment.id.desc())
    return [dict(r) for r in conn.execute(stmt).mappings()]
