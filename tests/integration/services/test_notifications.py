"""
Integration tests for stored notifications and post-commit delivery.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any, Callable
from unittest.mock import patch

import pytest
from sqlalchemy.engine import Engine

from rentease.db.engine import build_engine
from rentease.errors import NotFoundError
from rentease.models.enums import BookingStatus, NotificationType
from rentease.schemas.actors import Actor
from rentease.services import bookings, notifications
from rentease.services.notifications import DomainEvent, NotificationBroker


def _event(user_id: int, name: str = "booking.requested") -> DomainEvent:
    return DomainEvent(
        name=name,
        user_id=user_id,
        title="New booking request",
        message="Booking #1 is waiting for your decision.",
        related_id=1,
        related_type="booking",
    )


@pytest.mark.integration
def test_publish_events_stores_rows(engine: Engine) -> None:
    """Test that every event becomes a notification for its recipient."""
    notifications.publish_events(engine, [_event(1), _event(1), _event(2)])

    assert notifications.unread_count(engine, 1) == 2
    assert notifications.unread_count(engine, 2) == 1
    rows = notifications.list_notifications(engine, 1)
    assert rows[0]["type"] == NotificationType.BOOKING
    assert rows[0]["related_type"] == "booking"


@pytest.mark.integration
def test_publish_events_swallows_failures(engine: Engine) -> None:
    """Test that a broken broker never surfaces to the caller and rows survive."""

    class BrokenBroker(NotificationBroker):
        def publish(self, user_id: int, message: dict) -> int:
            raise RuntimeError("socket closed")

    notifications.publish_events(engine, [_event(1), _event(1)], target=BrokenBroker())

    assert notifications.unread_count(engine, 1) == 2


@pytest.mark.integration
def test_publish_events_survives_database_failure(tmp_path: Path) -> None:
    """Test that an unreachable store is logged, not raised."""
    broken = build_engine(f"sqlite:///{tmp_path}/no-tables.db")
    try:
        notifications.publish_events(broken, [_event(1)])
    finally:
        broken.dispose()


@pytest.mark.integration
def test_publish_events_log_calls_keep_event_positional(engine: Engine) -> None:
    """Test that delivery logs never pass a second 'event' to structlog."""

    class BrokenBroker(NotificationBroker):
        def publish(self, user_id: int, message: dict) -> int:
            raise RuntimeError("socket closed")

    with patch("rentease.services.notifications.logger") as mock_logger:
        notifications.publish_events(engine, [_event(1)])
        notifications.publish_events(engine, [_event(1)], target=BrokenBroker())

    mock_logger.info.assert_called_once_with(
        "notification_emitted", event_name="booking.requested", user_id=1
    )
    failed = mock_logger.exception.call_args
    assert failed.args == ("notification_delivery_failed",)
    assert failed.kwargs["event_name"] == "booking.requested"
    assert "event" not in failed.kwargs


@pytest.mark.integration
def test_booking_request_returns_after_notifying_owner(
    engine: Engine, make_property: Callable[..., dict[str, Any]], tenant: Actor
) -> None:
    """Test that the post-commit notification does not surface in create_booking."""
    prop = make_property()

    created = bookings.create_booking(
        engine, tenant, prop["id"], date(2024, 3, 1), date(2024, 3, 4)
    )

    assert created["status"] == BookingStatus.PENDING
    assert notifications.unread_count(engine, prop["owner_id"]) == 1


@pytest.mark.integration
def test_mark_read_and_read_all(engine: Engine) -> None:
    """Test that read flags are per notification and per user."""
    notifications.publish_events(engine, [_event(1), _event(1), _event(1), _event(2)])
    first = notifications.list_notifications(engine, 1)[0]

    notifications.mark_read(engine, first["id"], 1)
    assert notifications.unread_count(engine, 1) == 2
    assert len(notifications.list_notifications(engine, 1, unread_only=True)) == 2

    assert notifications.mark_all_read(engine, 1) == 2
    assert notifications.unread_count(engine, 1) == 0
    assert notifications.unread_count(engine, 2) == 1


@pytest.mark.integration
def test_cannot_touch_someone_elses_notification(engine: Engine) -> None:
    """Test that foreign ids behave like unknown ids."""
    notifications.publish_events(engine, [_event(2)])
    theirs = notifications.list_notifications(engine, 2)[0]

    with pytest.raises(NotFoundError):
        notifications.mark_read(engine, theirs["id"], 1)
    with pytest.raises(NotFoundError):
        notifications.delete_notification(engine, theirs["id"], 1)


@pytest.mark.integration
def test_delete_notification(engine: Engine) -> None:
    """Test that a user can delete their own notification."""
    notifications.publish_events(engine, [_event(1)])
    note = notifications.list_notifications(engine, 1)[0]

    notifications.delete_notification(engine, note["id"], 1)

    assert notifications.list_notifications(engine, 1) == []


@pytest.mark.integration
def test_list_notifications_limit_and_window(engine: Engine) -> None:
    """Test that limit caps the page and a day window keeps fresh rows."""
    notifications.publish_events(engine, [_event(1) for _ in range(5)])

    assert len(notifications.list_notifications(engine, 1, limit=3)) == 3
    assert len(notifications.list_notifications(engine, 1, days=1)) == 5
