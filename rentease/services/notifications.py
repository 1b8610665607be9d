"""
Notification collaborator.

Domain events are stored as notification rows and then fanned out to live
subscribers through NotificationBroker, an in-process pub/sub keyed by user id.
Services only call publish_events() after their own transaction has committed;
a failing delivery is logged and counted, never raised back into the caller.
"""

from __future__ import annotations

import asyncio
import json
import threading
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, AsyncIterator, Iterable, Optional

import structlog
from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.engine import Connection, Engine

from rentease.errors import NotFoundError
from rentease.metrics import notification_failures, notifications_emitted
from rentease.models.enums import NotificationType
from rentease.models.satellites import Notification
from rentease.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

HEARTBEAT_SECONDS = 25


@dataclass(frozen=True)
class DomainEvent:
    """A post-commit fact addressed to one user."""

    name: str
    user_id: int
    title: str
    message: str
    type: NotificationType = NotificationType.BOOKING
    related_id: Optional[int] = None
    related_type: Optional[str] = None


@dataclass(eq=False)
class Subscription:
    user_id: int
    loop: asyncio.AbstractEventLoop
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)


class NotificationBroker:
    """
    Topic-per-user pub/sub between request threads and SSE connections.

    publish() may run on any thread (sync route handlers execute in the
    threadpool); messages are handed to each subscriber's event loop with
    call_soon_threadsafe so the asyncio queue is only touched on its own loop.

    Example:
        >>> sub = broker.subscribe(user_id=7)
        >>> broker.publish(7, {"event": "booking.confirmed"})
        >>> message = await sub.queue.get()
        >>> broker.unsubscribe(sub)
    """

    def __init__(self) -> None:
        self._subscribers: dict[int, set[Subscription]] = {}
        self._lock = threading.Lock()

    def subscribe(self, user_id: int) -> Subscription:
        """Register a subscriber on the running event loop."""
        subscription = Subscription(user_id=user_id, loop=asyncio.get_running_loop())
        with self._lock:
            self._subscribers.setdefault(user_id, set()).add(subscription)
        logger.debug("notification_subscribed", user_id=user_id)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            subs = self._subscribers.get(subscription.user_id)
            if subs is None:
                return
            subs.discard(subscription)
            if not subs:
                del self._subscribers[subscription.user_id]
        logger.debug("notification_unsubscribed", user_id=subscription.user_id)

    def publish(self, user_id: int, message: dict[str, Any]) -> int:
        """
        Hand a message to every live subscriber of user_id.

        Returns:
            int: Number of subscribers the message was queued for
        """
        with self._lock:
            subs = list(self._subscribers.get(user_id, ()))

        delivered = 0
        for sub in subs:
            try:
                sub.loop.call_soon_threadsafe(sub.queue.put_nowait, message)
                delivered += 1
            except RuntimeError:
                # Loop already closed: the connection went away without unsubscribing.
                self.unsubscribe(sub)
        return delivered

    def subscriber_count(self, user_id: int) -> int:
        with self._lock:
            return len(self._subscribers.get(user_id, ()))


# Global broker instance
broker = NotificationBroker()


def create_notification(conn: Connection, event: DomainEvent) -> int:
    """Store a notification row for the event and return its id."""
    result = conn.execute(
        insert(Notification).values(
            user_id=event.user_id,
            type=str(event.type),
            title=event.title,
            message=event.message,
            related_id=event.related_id,
            related_type=event.related_type,
            is_read=False,
            created_at=utc_now(),
        )
    )
    return result.inserted_primary_key[0]


def publish_events(
    engine: Engine,
    events: Iterable[DomainEvent],
    target: Optional[NotificationBroker] = None,
) -> None:
    """
    Deliver committed domain events; never raises.

    Each event is stored in its own transaction and then pushed to live
    subscribers. A failure on one event does not stop the others.

    Args:
        engine: SQLAlchemy engine
        events: Events produced by a committed transaction
        target: Broker to publish on (defaults to the module broker)
    """
    target = target or broker
    for event in events:
        try:
            with engine.begin() as conn:
                notification_id = create_notification(conn, event)
            target.publish(
                event.user_id,
                {
                    "id": notification_id,
                    "event": event.name,
                    "type": str(event.type),
                    "title": event.title,
                    "message": event.message,
                    "related_id": event.related_id,
                    "related_type": event.related_type,
                },
            )
            notifications_emitted.labels(event=event.name).inc()
            logger.info("notification_emitted", event_name=event.name, user_id=event.user_id)
        except Exception as e:
            notification_failures.labels(event=event.name).inc()
            logger.exception(
                "notification_delivery_failed",
                event_name=event.name,
                user_id=event.user_id,
                error=str(e),
            )


def list_notifications(
    engine: Engine,
    user_id: int,
    days: Optional[int] = None,
    unread_only: bool = False,
    limit: int = 50,
) -> list[dict[str, Any]]:
    """
    List a user's notifications, newest first.

    Args:
        engine: SQLAlchemy engine
        user_id: Recipient
        days: Only include notifications from the last N days
        unread_only: Skip notifications already read
        limit: Maximum rows returned
    """
    stmt = select(Notification.__table__).where(Notification.user_id == user_id)
    if days is not None:
        stmt = stmt.where(Notification.created_at >= utc_now() - timedelta(days=days))
    if unread_only:
        stmt = stmt.where(Notification.is_read.is_(False))
    stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)

    with engine.connect() as conn:
        return [dict(r) for r in conn.execute(stmt).mappings()]


def unread_count(engine: Engine, user_id: int) -> int:
    with engine.connect() as conn:
        return conn.execute(
            select(func.count())
            .select_from(Notification.__table__)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        ).scalar_one()


def mark_read(engine: Engine, notification_id: int, user_id: int) -> None:
    """Mark one of the user's notifications read. Unknown or foreign ids are NotFound."""
    with engine.begin() as conn:
        result = conn.execute(
            update(Notification)
            .where(Notification.id == notification_id, Notification.user_id == user_id)
            .values(is_read=True)
        )
    if result.rowcount == 0:
        raise NotFoundError("Notification not found", notification_id=notification_id)


def mark_all_read(engine: Engine, user_id: int) -> int:
    with engine.begin() as conn:
        result = conn.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
    return result.rowcount


def delete_notification(engine: Engine, notification_id: int, user_id: int) -> None:
    with engine.begin() as conn:
        result = conn.execute(
            delete(Notification).where(
                Notification.id == notification_id, Notification.user_id == user_id
            )
        )
    if result.rowcount == 0:
        raise NotFoundError("Notification not found", notification_id=notification_id)


async def stream_events(
    user_id: int,
    target: Optional[NotificationBroker] = None,
    heartbeat_seconds: float = HEARTBEAT_SECONDS,
) -> AsyncIterator[str]:
    """
    Yield Server-Sent Events frames for a user until the consumer stops iterating.

    A comment frame is sent whenever nothing arrived within heartbeat_seconds
    so proxies keep the connection open.
    """
    target = target or broker
    subscription = target.subscribe(user_id)
    try:
        yield f"data: {json.dumps({'event': 'connected', 'user_id': user_id})}\n\n"
        while True:
            try:
                message = await asyncio.wait_for(
                    subscription.queue.get(), timeout=heartbeat_seconds
                )
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
                continue
            yield f"data: {json.dumps(message, default=str)}\n\n"
    finally:
        target.unsubscribe(subscription)
