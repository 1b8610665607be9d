"""
Property catalog.

Owns property rows: listing, publishing, soft delete. The booking engine only
reads from here, through get_by_id().
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Connection, Engine

from rentease.config import PRICE_QUANTUM
from rentease.db.readers.properties import get_property as read_property
from rentease.db.readers.properties import search_properties
from rentease.db.writers.properties import insert_property, update_property as write_property
from rentease.errors import AuthorizationError, NotFoundError, ValidationError
from rentease.models.enums import ActorRole, PropertyStatus
from rentease.schemas.actors import Actor
from rentease.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

EDITABLE_FIELDS = (
    "title",
    "description",
    "property_type",
    "city",
    "address",
    "price",
    "is_available",
    "instant_booking",
)


@dataclass(frozen=True)
class PropertySnapshot:
    """The slice of a property the booking engine is allowed to see."""

    id: int
    owner_id: int
    price: Decimal
    is_available: bool
    instant_booking: bool
    status: PropertyStatus
    deleted_at: Optional[datetime]

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_bookable(self) -> bool:
        return self.is_available and self.status == PropertyStatus.PUBLISHED


def get_by_id(
    conn: Connection, property_id: int, for_update: bool = False
) -> Optional[PropertySnapshot]:
    """
    Read the booking-relevant fields of a property.

    Args:
        conn: Active connection; pass for_update inside a write transaction to
            serialize bookings on the same property
        property_id: Property ID
        for_update: Lock the property row

    Returns:
        Optional[PropertySnapshot]: None if the row does not exist
    """
    row = read_property(conn, property_id, for_update=for_update)
    if row is None:
        return None
    return PropertySnapshot(
        id=row["id"],
        owner_id=row["owner_id"],
        price=Decimal(row["price"]),
        is_available=bool(row["is_available"]),
        instant_booking=bool(row["instant_booking"]),
        status=PropertyStatus(row["status"]),
        deleted_at=row["deleted_at"],
    )


def _load_visible(conn: Connection, property_id: int, actor: Optional[Actor]) -> dict[str, Any]:
    row = read_property(conn, property_id)
    if row is None:
        raise NotFoundError("Property not found", property_id=property_id)

    is_admin = actor is not None and actor.is_admin
    is_owner = actor is not None and actor.id == row["owner_id"]

    if row["deleted_at"] is not None and not is_admin:
        raise NotFoundError("Property not found", property_id=property_id)
    if row["status"] == PropertyStatus.DRAFT and not (is_admin or is_owner):
        raise NotFoundError("Property not found", property_id=property_id)
    return row


def _require_manager(row: dict[str, Any], actor: Actor) -> None:
    if actor.is_admin:
        return
    if actor.role != ActorRole.OWNER or actor.id != row["owner_id"]:
        raise AuthorizationError("Only the property owner or an admin can change this property")


def create_property(engine: Engine, actor: Actor, data: dict[str, Any]) -> dict[str, Any]:
    """
    List a new property owned by the actor.

    Args:
        engine: SQLAlchemy engine
        actor: Owner (or admin listing on their own behalf)
        data: PropertyCreatePayload fields

    Returns:
        dict: The stored property row
    """
    if actor.role not in (ActorRole.OWNER, ActorRole.ADMIN):
        raise AuthorizationError("Only owners can list properties")

    values = {field: data.get(field) for field in EDITABLE_FIELDS}
    values["price"] = Decimal(data["price"]).quantize(PRICE_QUANTUM)
    values["is_available"] = data.get("is_available", True)
    values["instant_booking"] = data.get("instant_booking", False)
    values["status"] = int(data.get("status", PropertyStatus.DRAFT))
    values["owner_id"] = actor.id
    values["avg_rating"] = Decimal("0")
    values["total_reviews"] = 0

    with engine.begin() as conn:
        property_id = insert_property(conn, values)
        row = read_property(conn, property_id)

    logger.info("property_created", property_id=property_id, owner_id=actor.id)
    return row


def get_property(
    engine: Engine, property_id: int, actor: Optional[Actor] = None
) -> dict[str, Any]:
    """Fetch a property, hiding deleted rows from non-admins and drafts from strangers."""
    with engine.connect() as conn:
        return _load_visible(conn, property_id, actor)


def list_properties(
    engine: Engine, filters: dict[str, Any], actor: Optional[Actor] = None
) -> dict[str, Any]:
    """
    Search the catalog.

    Admins see every row, deleted and draft included. An owner filtering on
    their own owner_id also sees their drafts.

    Returns:
        dict: {"properties": [...], "total": int}
    """
    is_admin = actor is not None and actor.is_admin
    own_drafts = None
    if actor is not None and filters.get("owner_id") == actor.id:
        own_drafts = actor.id

    with engine.connect() as conn:
        rows, total = search_properties(
            conn,
            filters,
            visible_only=not is_admin,
            include_drafts_for_owner=own_drafts,
        )
    return {"properties": rows, "total": total}


def update_property(
    engine: Engine, property_id: int, data: dict[str, Any], actor: Actor
) -> dict[str, Any]:
    """Apply the non-null fields of data. Owner of the row or admin only."""
    values = {k: v for k, v in data.items() if k in EDITABLE_FIELDS and v is not None}
    if "price" in values:
        values["price"] = Decimal(values["price"]).quantize(PRICE_QUANTUM)

    with engine.begin() as conn:
        row = _load_visible(conn, property_id, actor)
        _require_manager(row, actor)
        if values:
            write_property(conn, property_id, values)
        row = read_property(conn, property_id)

    logger.info("property_updated", property_id=property_id, fields=sorted(values))
    return row


def set_status(
    engine: Engine, property_id: int, status: PropertyStatus, actor: Actor
) -> dict[str, Any]:
    """Publish or unpublish a property."""
    with engine.begin() as conn:
        row = _load_visible(conn, property_id, actor)
        _require_manager(row, actor)
        write_property(conn, property_id, {"status": int(status)})
        row = read_property(conn, property_id)

    logger.info("property_status_changed", property_id=property_id, status=status.name.lower())
    return row


def soft_delete_property(engine: Engine, property_id: int, actor: Actor) -> None:
    """Hide a property from every non-admin view. Its bookings are left untouched."""
    with engine.begin() as conn:
        row = _load_visible(conn, property_id, actor)
        _require_manager(row, actor)
        write_property(conn, property_id, {"deleted_at": utc_now()})

    logger.info("property_deleted", property_id=property_id, actor_id=actor.id)


def restore_property(engine: Engine, property_id: int, actor: Actor) -> dict[str, Any]:
    if not actor.is_admin:
        raise AuthorizationError("Only admins can restore deleted properties")

    with engine.begin() as conn:
        row = read_property(conn, property_id)
        if row is None:
            raise NotFoundError("Property not found", property_id=property_id)
        if row["deleted_at"] is None:
            raise ValidationError("Property is not deleted", property_id=property_id)
        write_property(conn, property_id, {"deleted_at": None})
        row = read_property(conn, property_id)

    logger.info("property_restored", property_id=property_id)
    return row
