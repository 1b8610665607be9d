"""
Shared fixtures: a fresh SQLite file database per test, actors and factories.
"""

from __future__ import annotations

import os

# rentease.config refuses to import without a database URL.
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from rentease.db.engine import build_engine
from rentease.db.writers.bookings import insert_booking
from rentease.dependencies import get_db_engine
from rentease.main import app
from rentease.models.base import Base
from rentease.models.bookings import Booking  # noqa: F401
from rentease.models.calendar import CalendarEntry  # noqa: F401
from rentease.models.enums import ActorRole, BookingStatus, PropertyStatus
from rentease.models.payments import Payment  # noqa: F401
from rentease.models.properties import Property  # noqa: F401
from rentease.models.satellites import Notification, Review, WishlistItem  # noqa: F401
from rentease.schemas.actors import Actor
from rentease.services.catalog import create_property

OWNER = Actor(id=1, role=ActorRole.OWNER)
TENANT = Actor(id=10, role=ActorRole.TENANT)


@pytest.fixture
def owner() -> Actor:
    return OWNER


@pytest.fixture
def other_owner() -> Actor:
    return Actor(id=2, role=ActorRole.OWNER)


@pytest.fixture
def tenant() -> Actor:
    return TENANT


@pytest.fixture
def other_tenant() -> Actor:
    return Actor(id=11, role=ActorRole.TENANT)


@pytest.fixture
def admin() -> Actor:
    return Actor(id=99, role=ActorRole.ADMIN)


@pytest.fixture
def headers_for() -> Callable[[Actor], dict[str, str]]:
    """Build the gateway headers identifying a caller."""

    def _headers(actor: Actor) -> dict[str, str]:
        return {"X-User-Id": str(actor.id), "X-User-Role": str(actor.role)}

    return _headers


@pytest.fixture
def engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """Engine on an empty SQLite file with every table created."""
    test_engine = build_engine(f"sqlite:///{tmp_path}/test.db")
    Base.metadata.create_all(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def make_property(engine: Engine) -> Callable[..., dict[str, Any]]:
    """Factory creating a published property owned by OWNER unless overridden."""

    def _make(owner: Actor = OWNER, **overrides: Any) -> dict[str, Any]:
        data = {
            "title": "Lakeside apartment",
            "city": "Pokhara",
            "property_type": "apartment",
            "price": Decimal("3000"),
            "is_available": True,
            "instant_booking": False,
            "status": PropertyStatus.PUBLISHED,
        }
        data.update(overrides)
        return create_property(engine, owner, data)

    return _make


@pytest.fixture
def insert_raw_booking(engine: Engine) -> Callable[..., int]:
    """
    Factory writing a booking row directly, bypassing the create-time checks.

    Used to set up states the public API refuses to produce, such as two
    overlapping pending requests.
    """

    def _insert(
        prop: dict[str, Any],
        start_date: date,
        end_date: date,
        tenant: Actor = TENANT,
        status: BookingStatus = BookingStatus.PENDING,
    ) -> int:
        nights = (end_date - start_date).days
        with engine.begin() as conn:
            return insert_booking(
                conn,
                {
                    "property_id": prop["id"],
                    "tenant_id": tenant.id,
                    "owner_id": prop["owner_id"],
                    "start_date": start_date,
                    "end_date": end_date,
                    "nights": nights,
                    "total_price": Decimal(prop["price"]) * nights,
                    "status": status,
                },
            )

    return _insert


@pytest.fixture
def client(engine: Engine) -> Generator[TestClient, None, None]:
    """FastAPI test client bound to the per-test database."""
    app.dependency_overrides[get_db_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()
