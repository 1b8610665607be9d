"""
Availability and booking engine.

Date ranges are half-open: start_date is the first night and end_date the
check-out day, so a stay ending on the 4th and one starting on the 4th never
overlap. Every write locks the property row first, which serializes bookings
per property (BEGIN IMMEDIATE gives the same guarantee on SQLite).

Two blocking sets are used:
- ADVISORY_BLOCKING guards new requests: a pending request already holds its
  range, so a second tenant is turned away before anything is confirmed.
- COMMIT_BLOCKING is re-checked at pending -> confirmed. Only confirmed stays
  count there, so the first confirmation of two racing requests wins and the
  others fail with ConflictError while staying pending.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Optional, Union

import structlog
from sqlalchemy.engine import Connection, Engine

from rentease.config import PRICE_QUANTUM
from rentease.db.readers import bookings as booking_reader
from rentease.db.writers.bookings import insert_booking, update_booking_status
from rentease.db.writers.calendar import (
    rebuild_property_calendar,
    release_booking_nights,
    upsert_booking_nights,
)
from rentease.errors import (
    AuthorizationError,
    ConflictError,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)
from rentease.metrics import (
    booking_commit_duration,
    booking_conflicts,
    booking_transitions,
    bookings_created,
)
from rentease.models.enums import ActorRole, BookingStatus, NotificationType
from rentease.schemas.actors import SYSTEM_ACTOR, Actor
from rentease.services.catalog import PropertySnapshot, get_by_id
from rentease.services.notifications import DomainEvent, publish_events

logger = structlog.get_logger(__name__)

ADVISORY_BLOCKING = (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.COMPLETED)
COMMIT_BLOCKING = (BookingStatus.CONFIRMED, BookingStatus.COMPLETED)

_PARTIES = frozenset({ActorRole.TENANT, ActorRole.OWNER, ActorRole.ADMIN})

TRANSITIONS: dict[tuple[BookingStatus, BookingStatus], frozenset[ActorRole]] = {
    (BookingStatus.PENDING, BookingStatus.CONFIRMED): frozenset({ActorRole.OWNER, ActorRole.ADMIN}),
    (BookingStatus.PENDING, BookingStatus.REJECTED): frozenset({ActorRole.OWNER, ActorRole.ADMIN}),
    (BookingStatus.PENDING, BookingStatus.CANCELLED): _PARTIES,
    (BookingStatus.CONFIRMED, BookingStatus.CANCELLED): _PARTIES,
    (BookingStatus.CONFIRMED, BookingStatus.COMPLETED): frozenset(
        {ActorRole.SYSTEM, ActorRole.ADMIN}
    ),
}


def _validate_range(start_date: date, end_date: date) -> int:
    if end_date <= start_date:
        raise ValidationError(
            "end_date must be after start_date", start_date=start_date, end_date=end_date
        )
    return (end_date - start_date).days


def calculate_price(
    price_per_night: Decimal, start_date: date, end_date: date
) -> tuple[int, Decimal]:
    """
    Price a stay per night.

    Returns:
        tuple[int, Decimal]: (nights, total_price quantized to cents)
    """
    nights = _validate_range(start_date, end_date)
    total = (Decimal(price_per_night) * nights).quantize(PRICE_QUANTUM)
    return nights, total


def check_availability(
    engine: Engine,
    property_id: int,
    start_date: date,
    end_date: date,
    exclude_booking_id: Optional[int] = None,
) -> bool:
    """
    Return True if no pending, confirmed or completed booking overlaps the range.

    Advisory only: the answer may be stale by the time a booking is written.
    The guarantee against double booking is enforced when a booking is confirmed.

    Args:
        engine: SQLAlchemy engine
        property_id: Property ID
        start_date: First night
        end_date: Check-out day (exclusive)
        exclude_booking_id: Booking to ignore, used when re-checking an existing one
    """
    _validate_range(start_date, end_date)
    with engine.connect() as conn:
        return not booking_reader.has_overlapping_booking(
            conn,
            property_id,
            start_date,
            end_date,
            ADVISORY_BLOCKING,
            exclude_booking_id=exclude_booking_id,
        )


def _load_bookable_property(conn: Connection, property_id: int) -> PropertySnapshot:
    snapshot = get_by_id(conn, property_id, for_update=True)
    if snapshot is None or snapshot.is_deleted:
        raise NotFoundError("Property not found", property_id=property_id)
    if not snapshot.is_bookable:
        raise ValidationError(
            "Property is not accepting bookings",
            property_id=property_id,
            is_available=snapshot.is_available,
            status=int(snapshot.status),
        )
    return snapshot


def create_booking(
    engine: Engine,
    actor: Actor,
    property_id: int,
    start_date: date,
    end_date: date,
    message: Optional[str] = None,
) -> dict[str, Any]:
    """
    Request a stay for the actor.

    The booking starts pending, or confirmed straight away when the property
    allows instant booking; an instantly confirmed booking gets its calendar
    rows in the same transaction.

    Args:
        engine: SQLAlchemy engine
        actor: Requesting tenant
        property_id: Property to book
        start_date: First night
        end_date: Check-out day (exclusive)
        message: Optional note to the owner

    Returns:
        dict: The stored booking row

    Raises:
        NotFoundError: Property missing or soft-deleted
        ValidationError: Bad range, property unpublished/unavailable, or own property
        ConflictError: Range overlaps a pending, confirmed or completed booking
    """
    if actor.role not in (ActorRole.TENANT, ActorRole.OWNER):
        raise AuthorizationError("Only tenants and owners can request bookings")

    _validate_range(start_date, end_date)

    with engine.begin() as conn:
        prop = _load_bookable_property(conn, property_id)
        if prop.owner_id == actor.id:
            raise ValidationError("Owners cannot book their own property", property_id=property_id)

        if booking_reader.has_overlapping_booking(
            conn, property_id, start_date, end_date, ADVISORY_BLOCKING
        ):
            booking_conflicts.labels(stage="create").inc()
            logger.info(
                "booking_conflict",
                stage="create",
                property_id=property_id,
                start_date=str(start_date),
                end_date=str(end_date),
            )
            raise ConflictError(
                "Property is not available for the selected dates",
                property_id=property_id,
            )

        nights, total_price = calculate_price(prop.price, start_date, end_date)
        status = BookingStatus.CONFIRMED if prop.instant_booking else BookingStatus.PENDING

        booking_id = insert_booking(
            conn,
            {
                "property_id": property_id,
                "tenant_id": actor.id,
                "owner_id": prop.owner_id,
                "start_date": start_date,
                "end_date": end_date,
                "nights": nights,
                "total_price": total_price,
                "status": status,
                "message": message,
            },
        )
        if status == BookingStatus.CONFIRMED:
            upsert_booking_nights(conn, property_id, booking_id, start_date, end_date)

        booking = booking_reader.get_booking(conn, booking_id)

    bookings_created.labels(initial_status=str(status)).inc()
    logger.info(
        "booking_created",
        booking_id=booking_id,
        property_id=property_id,
        tenant_id=actor.id,
        status=str(status),
        nights=nights,
        total_price=str(total_price),
    )

    publish_events(engine, _creation_events(booking))
    return booking


def _authorize(booking: dict[str, Any], actor: Actor, allowed: frozenset[ActorRole]) -> None:
    if actor.role not in allowed:
        raise AuthorizationError(
            f"Role {actor.role} cannot move a booking to this status",
            booking_id=booking["id"],
        )
    if actor.role == ActorRole.TENANT and actor.id != booking["tenant_id"]:
        raise AuthorizationError("Not your booking", booking_id=booking["id"])
    if actor.role == ActorRole.OWNER and actor.id != booking["owner_id"]:
        # An owner may also be the guest on someone else's property.
        if not (actor.id == booking["tenant_id"] and ActorRole.TENANT in allowed):
            raise AuthorizationError("Not your property's booking", booking_id=booking["id"])


def parse_status(value: Union[str, BookingStatus]) -> BookingStatus:
    """Parse a requested status, accepting 'accepted' as confirmed."""
    if isinstance(value, BookingStatus):
        return value
    try:
        return BookingStatus.parse(value)
    except ValueError:
        raise ValidationError(f"Invalid booking status: {value!r}") from None


def update_status(
    engine: Engine,
    booking_id: int,
    new_status: Union[str, BookingStatus],
    actor: Actor,
    response_message: Optional[str] = None,
) -> dict[str, Any]:
    """
    Move a booking through its state machine.

    pending -> confirmed is the commit point: under the property lock the
    range is re-checked against confirmed stays, then the status and the
    calendar rows are written together. A conflict leaves the booking pending.
    Cancelling a confirmed booking frees its calendar rows in the same
    transaction.

    Args:
        engine: SQLAlchemy engine
        booking_id: Booking to transition
        new_status: Target status; 'accepted' is read as confirmed
        actor: Caller; checked against the transition table
        response_message: Optional note stored on the booking

    Returns:
        dict: The booking row after the transition

    Raises:
        NotFoundError: Unknown booking
        ValidationError: Unknown status value
        InvalidStateTransition: Transition not in TRANSITIONS
        AuthorizationError: Actor not allowed for this transition or booking
        ConflictError: Confirmed stay already overlaps the range
    """
    with engine.connect() as conn:
        existing = booking_reader.get_booking(conn, booking_id)
    if existing is None:
        raise NotFoundError("Booking not found", booking_id=booking_id)

    target = parse_status(new_status)

    with booking_commit_duration.labels(to_status=str(target)).time():
        with engine.begin() as conn:
            # Lock order: property row, then booking row.
            get_by_id(conn, existing["property_id"], for_update=True)
            booking = booking_reader.get_booking(conn, booking_id, for_update=True)
            current = BookingStatus(booking["status"])

            allowed = TRANSITIONS.get((current, target))
            if allowed is None:
                raise InvalidStateTransition(
                    f"Cannot change booking from {current} to {target}",
                    booking_id=booking_id,
                )
            _authorize(booking, actor, allowed)

            if target == BookingStatus.CONFIRMED:
                _confirm(conn, booking)
            elif target == BookingStatus.CANCELLED and current == BookingStatus.CONFIRMED:
                release_booking_nights(conn, booking_id)

            update_booking_status(conn, booking_id, target, response_message)
            updated = booking_reader.get_booking(conn, booking_id)

    booking_transitions.labels(from_status=str(current), to_status=str(target)).inc()
    logger.info(
        "booking_status_changed",
        booking_id=booking_id,
        from_status=str(current),
        to_status=str(target),
        actor_id=actor.id,
        actor_role=str(actor.role),
    )

    publish_events(engine, _transition_events(updated, target, actor))
    return updated


def _confirm(conn: Connection, booking: dict[str, Any]) -> None:
    if booking_reader.has_overlapping_booking(
        conn,
        booking["property_id"],
        booking["start_date"],
        booking["end_date"],
        COMMIT_BLOCKING,
        exclude_booking_id=booking["id"],
    ):
        booking_conflicts.labels(stage="confirm").inc()
        logger.info("booking_conflict", stage="confirm", booking_id=booking["id"])
        raise ConflictError(
            "Another confirmed booking already covers these dates",
            booking_id=booking["id"],
        )
    upsert_booking_nights(
        conn, booking["property_id"], booking["id"], booking["start_date"], booking["end_date"]
    )


def get_booked_dates(engine: Engine, property_id: int) -> list[dict[str, date]]:
    """Ranges held by pending, confirmed or completed bookings, earliest first."""
    with engine.connect() as conn:
        snapshot = get_by_id(conn, property_id)
        if snapshot is None or snapshot.is_deleted:
            raise NotFoundError("Property not found", property_id=property_id)
        return booking_reader.list_booked_ranges(conn, property_id, ADVISORY_BLOCKING)


def get_booking(engine: Engine, booking_id: int, actor: Actor) -> dict[str, Any]:
    """Fetch a booking visible to its tenant, its owner or an admin."""
    with engine.connect() as conn:
        booking = booking_reader.get_booking(conn, booking_id)
    if booking is None:
        raise NotFoundError("Booking not found", booking_id=booking_id)
    if not (actor.is_admin or actor.id in (booking["tenant_id"], booking["owner_id"])):
        raise AuthorizationError("Not allowed to view this booking", booking_id=booking_id)
    return booking


def list_bookings(engine: Engine, actor: Actor, filters: dict[str, Any]) -> list[dict[str, Any]]:
    """
    List bookings scoped to the actor: tenants see their own requests, owners
    the requests on their properties, admins everything.
    """
    page = filters.get("page", 1)
    page_size = filters.get("page_size", 20)
    scope: dict[str, Any] = {}
    if actor.role == ActorRole.TENANT:
        scope["tenant_id"] = actor.id
    elif actor.role == ActorRole.OWNER:
        scope["owner_id"] = actor.id
    elif not actor.is_admin:
        raise AuthorizationError("Not allowed to list bookings")

    with engine.connect() as conn:
        return booking_reader.list_bookings(
            conn,
            property_id=filters.get("property_id"),
            status=filters.get("status"),
            limit=page_size,
            offset=(page - 1) * page_size,
            **scope,
        )


def get_calendar(
    engine: Engine, property_id: int, start_date: date, end_date: date
) -> list[dict[str, Any]]:
    _validate_range(start_date, end_date)
    with engine.connect() as conn:
        return booking_reader.get_calendar(conn, property_id, start_date, end_date)


def rebuild_calendar(engine: Engine, property_id: int, actor: Actor) -> int:
    """
    Re-derive a property's calendar rows from its bookings (admin only).

    Returns:
        int: Number of calendar rows after the rebuild
    """
    if not actor.is_admin:
        raise AuthorizationError("Only admins can rebuild calendars")

    with engine.begin() as conn:
        if get_by_id(conn, property_id, for_update=True) is None:
            raise NotFoundError("Property not found", property_id=property_id)
        rows = rebuild_property_calendar(conn, property_id)

    logger.info("calendar_rebuilt", property_id=property_id, rows=rows)
    return rows


def complete_elapsed_bookings(engine: Engine, today: date) -> int:
    """
    Mark every confirmed booking whose check-out day has arrived as completed.

    Runs as the system actor from scripts/complete_stays.py. Calendar rows are
    kept: a completed stay still occupies its nights.

    Returns:
        int: Number of bookings completed
    """
    allowed = TRANSITIONS[(BookingStatus.CONFIRMED, BookingStatus.COMPLETED)]
    with engine.begin() as conn:
        elapsed = booking_reader.list_elapsed_confirmed(conn, today)
        for booking in elapsed:
            _authorize(booking, SYSTEM_ACTOR, allowed)
            update_booking_status(conn, booking["id"], BookingStatus.COMPLETED)

    if elapsed:
        booking_transitions.labels(
            from_status=str(BookingStatus.CONFIRMED), to_status=str(BookingStatus.COMPLETED)
        ).inc(len(elapsed))
    logger.info("bookings_completed", count=len(elapsed), today=str(today))
    return len(elapsed)


def _creation_events(booking: dict[str, Any]) -> list[DomainEvent]:
    booking_id = booking["id"]
    if booking["status"] == BookingStatus.CONFIRMED:
        return [
            DomainEvent(
                name="booking.confirmed",
                user_id=booking["tenant_id"],
                title="Booking confirmed",
                message=f"Your booking #{booking_id} was confirmed instantly.",
                related_id=booking_id,
                related_type="booking",
            ),
            DomainEvent(
                name="booking.confirmed",
                user_id=booking["owner_id"],
                title="New instant booking",
                message=f"Booking #{booking_id} was confirmed for your property.",
                related_id=booking_id,
                related_type="booking",
            ),
        ]
    return [
        DomainEvent(
            name="booking.requested",
            user_id=booking["owner_id"],
            title="New booking request",
            message=f"Booking #{booking_id} is waiting for your decision.",
            related_id=booking_id,
            related_type="booking",
        )
    ]


def _transition_events(
    booking: dict[str, Any], target: BookingStatus, actor: Actor
) -> list[DomainEvent]:
    booking_id = booking["id"]
    if target == BookingStatus.CONFIRMED:
        return [
            DomainEvent(
                name="booking.confirmed",
                user_id=booking["tenant_id"],
                title="Booking confirmed",
                message=f"Your booking #{booking_id} was confirmed.",
                related_id=booking_id,
                related_type="booking",
            )
        ]
    if target == BookingStatus.REJECTED:
        return [
            DomainEvent(
                name="booking.rejected",
                user_id=booking["tenant_id"],
                title="Booking declined",
                message=booking.get("response_message")
                or f"Your booking #{booking_id} was declined.",
                related_id=booking_id,
                related_type="booking",
            )
        ]
    if target == BookingStatus.CANCELLED:
        recipients = {booking["tenant_id"], booking["owner_id"]} - {actor.id}
        return [
            DomainEvent(
                name="booking.cancelled",
                user_id=user_id,
                title="Booking cancelled",
                message=f"Booking #{booking_id} was cancelled.",
                type=NotificationType.WARNING,
                related_id=booking_id,
                related_type="booking",
            )
            for user_id in sorted(recipients)
        ]
    return []
