"""
Unit tests for the pure parts of the booking engine: pricing, status parsing,
the transition table and per-booking authorization.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from rentease.errors import AuthorizationError, ValidationError
from rentease.models.enums import ActorRole, BookingStatus
from rentease.schemas.actors import SYSTEM_ACTOR, Actor
from rentease.services.bookings import (
    ADVISORY_BLOCKING,
    COMMIT_BLOCKING,
    TRANSITIONS,
    _authorize,
    calculate_price,
    parse_status,
)

BOOKING = {"id": 7, "tenant_id": 10, "owner_id": 1}


@pytest.mark.unit
def test_calculate_price_counts_nights() -> None:
    """Test that a 3-night stay costs three times the nightly price."""
    nights, total = calculate_price(Decimal("3000"), date(2025, 1, 1), date(2025, 1, 4))

    assert nights == 3
    assert total == Decimal("9000.00")


@pytest.mark.unit
def test_calculate_price_quantizes_to_cents() -> None:
    """Test that totals are rounded to two decimal places."""
    _, total = calculate_price(Decimal("33.333"), date(2025, 1, 1), date(2025, 1, 3))

    assert total == Decimal("66.67")


@pytest.mark.unit
@pytest.mark.parametrize(
    "start, end",
    [
        (date(2025, 1, 4), date(2025, 1, 4)),
        (date(2025, 1, 4), date(2025, 1, 1)),
    ],
)
def test_calculate_price_rejects_empty_or_reversed_range(start: date, end: date) -> None:
    """Test that end_date must be strictly after start_date."""
    with pytest.raises(ValidationError):
        calculate_price(Decimal("3000"), start, end)


@pytest.mark.unit
def test_parse_status_reads_accepted_as_confirmed() -> None:
    """Test that the legacy 'accepted' value maps to confirmed."""
    assert parse_status("accepted") == BookingStatus.CONFIRMED
    assert parse_status(" Accepted ") == BookingStatus.CONFIRMED
    assert parse_status("cancelled") == BookingStatus.CANCELLED


@pytest.mark.unit
def test_parse_status_rejects_unknown_value() -> None:
    """Test that an unknown status is a validation error, not a KeyError."""
    with pytest.raises(ValidationError):
        parse_status("approved")


@pytest.mark.unit
def test_blocking_sets() -> None:
    """Test that pending only blocks at request time, never at commit time."""
    assert BookingStatus.PENDING in ADVISORY_BLOCKING
    assert BookingStatus.PENDING not in COMMIT_BLOCKING
    assert set(COMMIT_BLOCKING) < set(ADVISORY_BLOCKING)


@pytest.mark.unit
def test_terminal_states_have_no_outgoing_transitions() -> None:
    """Test that rejected, cancelled and completed are final."""
    terminal = {BookingStatus.REJECTED, BookingStatus.CANCELLED, BookingStatus.COMPLETED}

    assert not [pair for pair in TRANSITIONS if pair[0] in terminal]


@pytest.mark.unit
def test_only_system_or_admin_complete_a_stay() -> None:
    """Test that completion is reserved for the sweep and admins."""
    allowed = TRANSITIONS[(BookingStatus.CONFIRMED, BookingStatus.COMPLETED)]

    assert allowed == {ActorRole.SYSTEM, ActorRole.ADMIN}


@pytest.mark.unit
def test_authorize_allows_owner_of_booking() -> None:
    """Test that the property's owner may confirm."""
    allowed = TRANSITIONS[(BookingStatus.PENDING, BookingStatus.CONFIRMED)]

    _authorize(BOOKING, Actor(id=1, role=ActorRole.OWNER), allowed)


@pytest.mark.unit
def test_authorize_rejects_tenant_confirming() -> None:
    """Test that a tenant cannot confirm their own request."""
    allowed = TRANSITIONS[(BookingStatus.PENDING, BookingStatus.CONFIRMED)]

    with pytest.raises(AuthorizationError):
        _authorize(BOOKING, Actor(id=10, role=ActorRole.TENANT), allowed)


@pytest.mark.unit
def test_authorize_rejects_other_owner() -> None:
    """Test that an owner cannot act on another owner's booking."""
    allowed = TRANSITIONS[(BookingStatus.PENDING, BookingStatus.REJECTED)]

    with pytest.raises(AuthorizationError):
        _authorize(BOOKING, Actor(id=2, role=ActorRole.OWNER), allowed)


@pytest.mark.unit
def test_authorize_rejects_other_tenant_cancelling() -> None:
    """Test that only the booking's own tenant may cancel as tenant."""
    allowed = TRANSITIONS[(BookingStatus.PENDING, BookingStatus.CANCELLED)]

    with pytest.raises(AuthorizationError):
        _authorize(BOOKING, Actor(id=11, role=ActorRole.TENANT), allowed)


@pytest.mark.unit
def test_authorize_lets_owner_cancel_own_stay_as_guest() -> None:
    """Test that an owner who booked someone else's property may cancel it."""
    booking = {"id": 8, "tenant_id": 2, "owner_id": 1}
    allowed = TRANSITIONS[(BookingStatus.CONFIRMED, BookingStatus.CANCELLED)]

    _authorize(booking, Actor(id=2, role=ActorRole.OWNER), allowed)


@pytest.mark.unit
def test_authorize_admin_always_allowed_when_listed() -> None:
    """Test that admins pass for any transition that lists them."""
    admin = Actor(id=99, role=ActorRole.ADMIN)

    for allowed in TRANSITIONS.values():
        _authorize(BOOKING, admin, allowed)


@pytest.mark.unit
def test_authorize_system_actor_cannot_cancel() -> None:
    """Test that the sweep actor is limited to completion."""
    allowed = TRANSITIONS[(BookingStatus.CONFIRMED, BookingStatus.CANCELLED)]

    with pytest.raises(AuthorizationError):
        _authorize(BOOKING, SYSTEM_ACTOR, allowed)
