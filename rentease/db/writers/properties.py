from typing import Any

import structlog
from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from rentease.models.properties import Property
from rentease.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def insert_property(conn: Connection, values: dict[str, Any]) -> int:
    """
    Insert a property row and return its id.

    Args:
        conn: Active database connection (within transaction)
        values: Column values; timestamps are filled in here

    Returns:
        int: New property id
    """
    now = utc_now()
    row = {**values, "created_at": now, "updated_at": now}
    result = conn.execute(insert(Property).values(row))
    property_id = result.inserted_primary_key[0]
    logger.info("property_inserted", property_id=property_id, owner_id=values.get("owner_id"))
    return property_id


def update_property(conn: Connection, property_id: int, values: dict[str, Any]) -> None:
    """Overwrite the given columns and bump updated_at."""
    conn.execute(
        update(Property)
        .where(Property.id == property_id)
        .values(**values, updated_at=utc_now())
    )
