"""Per-user saved properties."""

from typing import Any

import structlog
from sqlalchemy import delete, insert, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from rentease.errors import ConflictError, NotFoundError
from rentease.models.properties import Property
from rentease.models.satellites import WishlistItem
from rentease.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def _require_property(conn: Connection, property_id: int) -> None:
    found = conn.execute(
        select(Property.id).where(Property.id == property_id, Property.deleted_at.is_(None))
    ).fetchone()
    if found is None:
        raise NotFoundError("Property not found", property_id=property_id)


def _exists(conn: Connection, user_id: int, property_id: int) -> bool:
    return (
        conn.execute(
            select(WishlistItem.id).where(
                WishlistItem.user_id == user_id, WishlistItem.property_id == property_id
            )
        ).fetchone()
        is not None
    )


def add_to_wishlist(engine: Engine, user_id: int, property_id: int) -> None:
    """
    Save a property for the user.

    Raises:
        NotFoundError: Property missing or deleted
        ConflictError: Already in the wishlist
    """
    try:
        with engine.begin() as conn:
            _require_property(conn, property_id)
            if _exists(conn, user_id, property_id):
                raise ConflictError("Property already in wishlist", property_id=property_id)
            conn.execute(
                insert(WishlistItem).values(
                    user_id=user_id, property_id=property_id, created_at=utc_now()
                )
            )
    except IntegrityError:
        # Lost a race against the same insert; the unique constraint settled it.
        raise ConflictError("Property already in wishlist", property_id=property_id) from None

    logger.info("wishlist_added", user_id=user_id, property_id=property_id)


def remove_from_wishlist(engine: Engine, user_id: int, property_id: int) -> None:
    with engine.begin() as conn:
        result = conn.execute(
            delete(WishlistItem).where(
                WishlistItem.user_id == user_id, WishlistItem.property_id == property_id
            )
        )
    if result.rowcount == 0:
        raise NotFoundError("Property not in wishlist", property_id=property_id)
    logger.info("wishlist_removed", user_id=user_id, property_id=property_id)


def toggle_wishlist(engine: Engine, user_id: int, property_id: int) -> bool:
    """
    Add the property if absent, remove it if present.

    Returns:
        bool: True if the property is in the wishlist afterwards
    """
    with engine.connect() as conn:
        present = _exists(conn, user_id, property_id)
    if present:
        remove_from_wishlist(engine, user_id, property_id)
        return False
    add_to_wishlist(engine, user_id, property_id)
    return True


def is_in_wishlist(engine: Engine, user_id: int, property_id: int) -> bool:
    with engine.connect() as conn:
        return _exists(conn, user_id, property_id)


def list_wishlist(engine: Engine, user_id: int) -> list[dict[str, Any]]:
    """
    Saved properties, most recently added first. Deleted properties are hidden.

    Returns:
        list[dict]: {"property": <property row>, "added_at": datetime}
    """
    stmt = (
        select(Property.__table__, WishlistItem.created_at.label("added_at"))
        .select_from(Property)
        .join(WishlistItem, WishlistItem.property_id == Property.id)
        .where(WishlistItem.user_id == user_id, Property.deleted_at.is_(None))
        .order_by(WishlistItem.created_at.desc(), WishlistItem.id.desc())
    )
    with engine.connect() as conn:
        rows = conn.execute(stmt).mappings().all()

    entries = []
    for row in rows:
        data = dict(row)
        added_at = data.pop("added_at")
        entries.append({"property": data, "added_at": added_at})
    return entries
