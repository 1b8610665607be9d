from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Connection

from rentease.models.enums import PropertyStatus
from rentease.models.properties import Property

_SORT_ORDERS = {
    "newest": [Property.created_at.desc(), Property.id.desc()],
    "price_low": [Property.price.asc(), Property.id.asc()],
    "price_high": [Property.price.desc(), Property.id.desc()],
    "rating": [Property.avg_rating.desc(), Property.id.desc()],
}


def get_property(
    conn: Connection, property_id: int, for_update: bool = False
) -> Optional[dict[str, Any]]:
    """
    Fetch a property row by id, including soft-deleted rows.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        property_id (int): Property ID.
        for_update (bool): Lock the row until the surrounding transaction ends.

    Returns:
        Optional[dict[str, Any]]: Property columns or None if not found.
    """
    stmt = select(Property.__table__).where(Property.id == property_id)
    if for_update:
        stmt = stmt.with_for_update()
    row = conn.execute(stmt).mappings().fetchone()
    return dict(row) if row else None


def search_properties(
    conn: Connection,
    filters: dict[str, Any],
    visible_only: bool = True,
    include_drafts_for_owner: Optional[int] = None,
) -> tuple[list[dict[str, Any]], int]:
    """
    Filter, sort and page properties.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        filters (dict): Keys of PropertyFilters; None values are ignored.
        visible_only (bool): Hide soft-deleted rows and drafts.
        include_drafts_for_owner (Optional[int]): Owner whose own drafts stay visible.

    Returns:
        tuple: (rows, total) where total ignores limit/offset.
    """
    conditions = []

    if visible_only:
        conditions.append(Property.deleted_at.is_(None))
        published = Property.status == int(PropertyStatus.PUBLISHED)
        if include_drafts_for_owner is not None:
            published = published | (Property.owner_id == include_drafts_for_owner)
        conditions.append(published)

    if filters.get("city"):
        conditions.append(func.lower(Property.city).contains(filters["city"].lower()))
    if filters.get("property_type"):
        conditions.append(Property.property_type == filters["property_type"])
    if filters.get("min_price") is not None:
        conditions.append(Property.price >= filters["min_price"])
    if filters.get("max_price") is not None:
        conditions.append(Property.price <= filters["max_price"])
    if filters.get("instant_booking") is not None:
        conditions.append(Property.instant_booking == filters["instant_booking"])
    if filters.get("is_available") is not None:
        conditions.append(Property.is_available == filters["is_available"])
    if filters.get("owner_id") is not None:
        conditions.append(Property.owner_id == filters["owner_id"])

    total = conn.execute(
        select(func.count()).select_from(Property.__table__).where(*conditions)
    ).scalar_one()

    stmt = (
        select(Property.__table__)
        .where(*conditions)
        .order_by(*_SORT_ORDERS.get(filters.get("sort_by") or "newest", _SORT_ORDERS["newest"]))
        .limit(filters.get("limit", 20))
        .offset(filters.get("offset", 0))
    )
    rows = [dict(r) for r in conn.execute(stmt).mappings()]
    return rows, total
