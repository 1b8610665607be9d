"""
Dialect-aware upsert helper.

PostgreSQL and SQLite both implement INSERT ... ON CONFLICT DO UPDATE with the
same SQLAlchemy API; this picks the right insert construct for the connection.
"""

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection


def dialect_insert(conn: Connection, table: Any) -> Any:
    """Return the dialect-specific insert() for the connection's database."""
    if conn.dialect.name == "sqlite":
        return sqlite.insert(table)
    return postgresql.insert(table)


def upsert_with_distinct_check(
    conn: Connection,
    table: Any,
    rows: list[dict[str, Any]],
    conflict_columns: list[str],
    update_columns: list[str],
) -> None:
    """
    Perform upsert, only touching rows whose update columns actually changed.

    Args:
        conn: Active database connection (within transaction)
        table: SQLAlchemy ORM table class (e.g., CalendarEntry)
        rows: List of row dicts to upsert
        conflict_columns: Columns of the unique constraint used for ON CONFLICT
        update_columns: Columns overwritten from the incoming row on conflict

    Example:
        >>> with engine.begin() as conn:
        ...     upsert_with_distinct_check(
        ...         conn=conn,
        ...         table=CalendarEntry,
        ...         rows=[{"property_id": 1, "date": date(2024, 3, 1), ...}],
        ...         conflict_columns=["property_id", "date"],
        ...         update_columns=["is_available", "booking_id"],
        ...     )
    """
    if not rows:
        return

    stmt = dialect_insert(conn, table).values(rows)

    set_dict = {col: getattr(stmt.excluded, col) for col in update_columns}

    distinct_check = None
    for col in update_columns:
        clause = getattr(table, col).is_distinct_from(getattr(stmt.excluded, col))
        distinct_check = clause if distinct_check is None else distinct_check | clause

    stmt = stmt.on_conflict_do_update(
        index_elements=conflict_columns,
        set_=set_dict,
        where=distinct_check,
    )

    conn.execute(stmt)
