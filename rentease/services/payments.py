"""
Manual QR payment reconciliation.

An intent is issued for a booking with a short TTL and a QR payload. The payer
transfers money out of band, submits a proof, and an admin verifies it.
Expiry is lazy: a pending intent past its TTL is flipped to expired by whichever
call reads it next. There is no background sweep.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Connection, Engine

from rentease.config import DEFAULT_PAYMENT_METHOD, PAYMENT_TTL_MINUTES, PLATFORM_ACCOUNT
from rentease.db.readers import payments as payment_reader
from rentease.db.readers.bookings import get_booking
from rentease.db.writers.bookings import update_payment_status
from rentease.db.writers.payments import insert_payment, update_payment
from rentease.errors import (
    AuthorizationError,
    DuplicateIntentError,
    ExpiredError,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)
from rentease.metrics import payment_events
from rentease.models.enums import (
    BookingPaymentStatus,
    BookingStatus,
    NotificationType,
    PaymentStatus,
)
from rentease.schemas.actors import Actor
from rentease.services.notifications import DomainEvent, publish_events
from rentease.services.qr import build_payload, render_data_url
from rentease.utils.datetime import ensure_utc, utc_now

logger = structlog.get_logger(__name__)

ACTIVE_STATUSES = (PaymentStatus.PENDING, PaymentStatus.PENDING_VERIFICATION)
PROOF_SOURCE_STATUSES = (PaymentStatus.PENDING, PaymentStatus.REJECTED)
DECISIONS = (PaymentStatus.VERIFIED, PaymentStatus.REJECTED)


def generate_payment_id(now: Optional[datetime] = None) -> str:
    """Return an opaque id: PAY-<epoch millis>-<16 random hex chars>."""
    now = now or utc_now()
    return f"PAY-{int(now.timestamp() * 1000)}-{secrets.token_hex(8)}"


def _is_elapsed(payment: dict[str, Any], now: datetime) -> bool:
    return now > ensure_utc(payment["expires_at"])


def _expire(conn: Connection, payment: dict[str, Any]) -> None:
    update_payment(conn, payment["payment_id"], {"status": PaymentStatus.EXPIRED})
    payment_events.labels(event="expired").inc()
    logger.info(
        "payment_expired", payment_id=payment["payment_id"], booking_id=payment["booking_id"]
    )


def _load_payment(conn: Connection, payment_id: str, for_update: bool = False) -> dict[str, Any]:
    payment = payment_reader.get_payment(conn, payment_id, for_update=for_update)
    if payment is None:
        raise NotFoundError("Payment not found", payment_id=payment_id)
    return payment


def _lock_with_booking(
    conn: Connection, payment_id: str
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Lock the booking row, then the intent, in the same order as create_payment."""
    booking_id = _load_payment(conn, payment_id)["booking_id"]
    booking = get_booking(conn, booking_id, for_update=True)
    payment = _load_payment(conn, payment_id, for_update=True)
    return payment, booking


def _other_live_intent(
    conn: Connection, payment: dict[str, Any], now: datetime
) -> Optional[dict[str, Any]]:
    for intent in payment_reader.list_for_booking_in_status(
        conn, payment["booking_id"], ACTIVE_STATUSES
    ):
        if intent["payment_id"] == payment["payment_id"]:
            continue
        if intent["status"] == PaymentStatus.PENDING and _is_elapsed(intent, now):
            continue
        return intent
    return None


def _require_payer(booking: dict[str, Any], actor: Actor) -> None:
    if actor.is_admin:
        return
    if actor.id != booking["tenant_id"]:
        raise AuthorizationError("Not your booking", booking_id=booking["id"])


def _require_viewer(booking: dict[str, Any], actor: Actor) -> None:
    if actor.is_admin or actor.id in (booking["tenant_id"], booking["owner_id"]):
        return
    raise AuthorizationError("Not allowed to view this payment", booking_id=booking["id"])


def create_payment(
    engine: Engine,
    actor: Actor,
    booking_id: int,
    payment_method: Optional[str] = None,
) -> dict[str, Any]:
    """
    Issue a payment intent and QR code for a booking.

    An expired pending intent on the booking is superseded (marked expired);
    a live pending or pending_verification intent blocks a new one.

    Args:
        engine: SQLAlchemy engine
        actor: The booking's tenant
        booking_id: Booking being paid
        payment_method: Wallet name shown to the payer (defaults to esewa)

    Returns:
        dict: Fields of PaymentIntentResponse

    Raises:
        NotFoundError: Unknown booking
        AuthorizationError: Actor is not the booking's tenant
        ValidationError: Booking rejected, cancelled or already paid
        DuplicateIntentError: A live intent already exists
    """
    now = utc_now()
    method = payment_method or DEFAULT_PAYMENT_METHOD

    with engine.begin() as conn:
        booking = get_booking(conn, booking_id, for_update=True)
        if booking is None:
            raise NotFoundError("Booking not found", booking_id=booking_id)
        if actor.id != booking["tenant_id"]:
            raise AuthorizationError(
                "Only the booking's tenant can pay for it", booking_id=booking_id
            )
        if booking["status"] in (BookingStatus.REJECTED, BookingStatus.CANCELLED):
            raise ValidationError(
                f"A {booking['status']} booking cannot be paid", booking_id=booking_id
            )
        if booking["payment_status"] == BookingPaymentStatus.PAID:
            raise ValidationError("Booking is already paid", booking_id=booking_id)

        for intent in payment_reader.list_for_booking_in_status(conn, booking_id, ACTIVE_STATUSES):
            if intent["status"] == PaymentStatus.PENDING and _is_elapsed(intent, now):
                _expire(conn, intent)
                continue
            raise DuplicateIntentError(
                "An active payment already exists for this booking",
                booking_id=booking_id,
                payment_id=intent["payment_id"],
            )

        payment_id = generate_payment_id(now)
        expires_at = now + timedelta(minutes=PAYMENT_TTL_MINUTES)
        amount = booking["total_price"]
        payload = build_payload(payment_id, booking_id, amount, expires_at)
        qr_code = render_data_url(payload)

        insert_payment(
            conn,
            {
                "payment_id": payment_id,
                "booking_id": booking_id,
                "amount": amount,
                "payment_method": method,
                "status": PaymentStatus.PENDING,
                "qr_code": qr_code,
                "expires_at": expires_at,
            },
        )

    payment_events.labels(event="created").inc()
    logger.info(
        "payment_created",
        payment_id=payment_id,
        booking_id=booking_id,
        amount=str(amount),
        payment_method=method,
    )

    return {
        "payment_id": payment_id,
        "booking_id": booking_id,
        "amount": amount,
        "status": PaymentStatus.PENDING,
        "qr_code": qr_code,
        "qr_payload": payload,
        "expires_at": expires_at,
        "platform_account": PLATFORM_ACCOUNT,
    }


def check_expiry(engine: Engine, payment_id: str) -> bool:
    """
    Report whether an intent is still usable, expiring it if its TTL elapsed.

    A pending intent past expires_at is flipped to expired before returning
    False. Calling again on an expired intent returns False and writes nothing.
    Intents already proved or verified stay valid.

    Returns:
        bool: False for expired intents, or rejected ones past their TTL
    """
    now = utc_now()
    with engine.begin() as conn:
        payment = _load_payment(conn, payment_id, for_update=True)
        status = payment["status"]
        if status == PaymentStatus.EXPIRED:
            return False
        if status in PROOF_SOURCE_STATUSES and _is_elapsed(payment, now):
            if status == PaymentStatus.PENDING:
                _expire(conn, payment)
            return False
        return True


def submit_proof(
    engine: Engine,
    actor: Actor,
    payment_id: str,
    transaction_reference: str,
    proof_artifact: Optional[str] = None,
) -> dict[str, Any]:
    """
    Attach the payer's transfer reference and move the intent to pending_verification.

    Accepted from pending, or from rejected to resubmit, while the TTL lasts and
    no newer intent is live on the booking.
    The expiry check runs inside the same transaction as the write.

    Raises:
        NotFoundError: Unknown payment
        AuthorizationError: Actor is not the booking's tenant
        ExpiredError: TTL elapsed; a pending intent is marked expired first
        InvalidStateTransition: Proof already submitted, intent verified, or booking paid
        DuplicateIntentError: Resubmitting a rejected proof while a newer intent is live
    """
    if not transaction_reference or not transaction_reference.strip():
        raise ValidationError("transaction_reference is required", payment_id=payment_id)

    now = utc_now()
    expired = False

    with engine.begin() as conn:
        payment, booking = _lock_with_booking(conn, payment_id)
        _require_payer(booking, actor)

        status = payment["status"]
        if status == PaymentStatus.EXPIRED:
            expired = True
        elif status in PROOF_SOURCE_STATUSES and _is_elapsed(payment, now):
            if status == PaymentStatus.PENDING:
                _expire(conn, payment)
            expired = True
        elif status not in PROOF_SOURCE_STATUSES:
            raise InvalidStateTransition(
                f"Cannot submit proof for a payment in status {status}", payment_id=payment_id
            )
        else:
            if booking["payment_status"] == BookingPaymentStatus.PAID:
                raise InvalidStateTransition(
                    "Booking is already paid", payment_id=payment_id, booking_id=booking["id"]
                )
            if status == PaymentStatus.REJECTED:
                newer = _other_live_intent(conn, payment, now)
                if newer is not None:
                    raise DuplicateIntentError(
                        "Another payment intent is active for this booking",
                        payment_id=payment_id,
                        active_payment_id=newer["payment_id"],
                    )
            update_payment(
                conn,
                payment_id,
                {
                    "status": PaymentStatus.PENDING_VERIFICATION,
                    "transaction_reference": transaction_reference.strip(),
                    "proof_artifact": proof_artifact,
                },
            )
            updated = payment_reader.get_payment(conn, payment_id)

    # Raised after commit so the expired status is kept.
    if expired:
        raise ExpiredError("Payment has expired", payment_id=payment_id)

    payment_events.labels(event="proof_submitted").inc()
    logger.info("payment_proof_submitted", payment_id=payment_id, booking_id=payment["booking_id"])
    return updated


def verify(
    engine: Engine,
    actor: Actor,
    payment_id: str,
    decision: str,
    admin_notes: Optional[str] = None,
) -> dict[str, Any]:
    """
    Record an admin's decision on a submitted proof.

    verified also marks the booking paid in the same transaction. Repeating
    the decision an intent already carries is a no-op.

    Raises:
        AuthorizationError: Actor is not an admin
        ValidationError: Bad decision, or verifying for a rejected or cancelled booking
        NotFoundError: Unknown payment
        InvalidStateTransition: Intent is not pending_verification, or booking already paid
    """
    if not actor.is_admin:
        raise AuthorizationError("Only admins can verify payments")

    try:
        target = PaymentStatus((decision or "").strip().lower())
    except ValueError:
        target = None
    if target not in DECISIONS:
        raise ValidationError(f"Invalid decision: {decision!r}", payment_id=payment_id)

    with engine.begin() as conn:
        payment, booking = _lock_with_booking(conn, payment_id)
        current = payment["status"]

        if current == target:
            logger.info("payment_decision_repeated", payment_id=payment_id, status=str(target))
            return payment
        if current != PaymentStatus.PENDING_VERIFICATION:
            raise InvalidStateTransition(
                f"Cannot mark a {current} payment as {target}", payment_id=payment_id
            )

        if target == PaymentStatus.VERIFIED:
            if booking["status"] in (BookingStatus.REJECTED, BookingStatus.CANCELLED):
                raise ValidationError(
                    f"A {booking['status']} booking cannot be paid", payment_id=payment_id
                )
            if booking["payment_status"] == BookingPaymentStatus.PAID:
                raise InvalidStateTransition(
                    "Booking is already paid", payment_id=payment_id, booking_id=booking["id"]
                )

        values: dict[str, Any] = {"status": target, "admin_notes": admin_notes}
        if target == PaymentStatus.VERIFIED:
            values["verified_at"] = utc_now()
            update_payment_status(conn, payment["booking_id"], BookingPaymentStatus.PAID)
        update_payment(conn, payment_id, values)

        updated = payment_reader.get_payment(conn, payment_id)
        booking = get_booking(conn, payment["booking_id"])

    payment_events.labels(event=str(target)).inc()
    logger.info(
        "payment_decided",
        payment_id=payment_id,
        booking_id=payment["booking_id"],
        decision=str(target),
        admin_id=actor.id,
    )

    if target == PaymentStatus.VERIFIED:
        publish_events(
            engine,
            [
                DomainEvent(
                    name="payment.verified",
                    user_id=booking["tenant_id"],
                    title="Payment verified",
                    message=f"Payment {payment_id} for booking #{booking['id']} was verified.",
                    type=NotificationType.PAYMENT,
                    related_id=booking["id"],
                    related_type="booking",
                ),
                DomainEvent(
                    name="payment.verified",
                    user_id=booking["owner_id"],
                    title="Booking paid",
                    message=f"Booking #{booking['id']} has been paid.",
                    type=NotificationType.PAYMENT,
                    related_id=booking["id"],
                    related_type="booking",
                ),
            ],
        )
    return updated


def get_payment_status(engine: Engine, payment_id: str, actor: Actor) -> dict[str, Any]:
    """
    Read an intent's status, applying lazy expiry first.

    Returns:
        dict: Fields of PaymentStatusResponse
    """
    is_valid = check_expiry(engine, payment_id)
    with engine.connect() as conn:
        payment = _load_payment(conn, payment_id)
        booking = get_booking(conn, payment["booking_id"])
    _require_viewer(booking, actor)

    return {
        "payment_id": payment["payment_id"],
        "status": payment["status"],
        "amount": payment["amount"],
        "expires_at": payment["expires_at"],
        "verified_at": payment["verified_at"],
        "is_valid": is_valid,
    }


def get_latest_for_booking(engine: Engine, booking_id: int, actor: Actor) -> dict[str, Any]:
    """Most recent intent for a booking, with lazy expiry applied."""
    with engine.connect() as conn:
        booking = get_booking(conn, booking_id)
        if booking is None:
            raise NotFoundError("Booking not found", booking_id=booking_id)
        _require_viewer(booking, actor)
        payment = payment_reader.get_latest_for_booking(conn, booking_id)
    if payment is None:
        raise NotFoundError("No payment for this booking", booking_id=booking_id)

    check_expiry(engine, payment["payment_id"])
    with engine.connect() as conn:
        return payment_reader.get_payment(conn, payment["payment_id"])


def list_payments(
    engine: Engine,
    actor: Actor,
    status: Optional[PaymentStatus] = None,
    payment_method: Optional[str] = None,
) -> list[dict[str, Any]]:
    if not actor.is_admin:
        raise AuthorizationError("Only admins can list payments")
    with engine.connect() as conn:
        return payment_reader.list_payments(conn, status=status, payment_method=payment_method)
