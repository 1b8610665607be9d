"""
SQLAlchemy engine singleton with production-ready connection pooling.

PostgreSQL is the production target. SQLite is accepted for local runs and the
test-suite; for SQLite every transaction opens with BEGIN IMMEDIATE so writers
are serialized the same way row locks serialize them on PostgreSQL.
"""

from typing import Any

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine

from rentease.config import DATABASE_URL

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set.")


def _enable_sqlite_immediate_transactions(sqlite_engine: Engine) -> None:
    @event.listens_for(sqlite_engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        # Hand transaction control to SQLAlchemy instead of pysqlite.
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the given URL with dialect-appropriate settings.

    Args:
        url: SQLAlchemy database URL
        echo: Log emitted SQL (development only)

    Returns:
        Engine: configured SQLAlchemy engine
    """
    if url.startswith("sqlite"):
        sqlite_engine = create_engine(
            url,
            future=True,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        _enable_sqlite_immediate_transactions(sqlite_engine)
        return sqlite_engine

    return create_engine(
        url,
        future=True,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=echo,
    )


engine: Engine = build_engine(DATABASE_URL)


def check_engine_health(target: Engine | None = None) -> bool:
    """
    Check if database engine is healthy and connections are working.

    Used by the /ready endpoint before allowing traffic to the service.

    Args:
        target: Engine to probe (defaults to the module engine)

    Returns:
        bool: True if database is reachable and healthy, False otherwise
    """
    try:
        with (target or engine).connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
