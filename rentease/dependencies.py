"""
FastAPI dependency injection providers.

This module contains dependency providers for FastAPI routes, enabling better
testability through dependency injection and following FastAPI best practices.

Dependencies can be overridden in tests using app.dependency_overrides, making
it easy to inject a test database engine, a fixed actor or a fake OTP sender.
"""

from __future__ import annotations

from typing import Generator, Optional

from fastapi import Header, HTTPException, status
from sqlalchemy.engine import Engine

from rentease.db.engine import engine
from rentease.models.enums import ActorRole
from rentease.schemas.actors import Actor
from rentease.services.notifications import NotificationBroker, broker
from rentease.services.otp import OtpService, otp_service


def get_db_engine() -> Generator[Engine, None, None]:
    """
    Provide database engine for dependency injection.

    Yields:
        Engine: SQLAlchemy database engine

    Testing Example:
        >>> test_engine = build_engine(f"sqlite:///{tmp_path}/test.db")
        >>> app.dependency_overrides[get_db_engine] = lambda: test_engine
        >>> client = TestClient(app)
    """
    yield engine


def _build_actor(user_id: int, role: str) -> Actor:
    try:
        actor_role = ActorRole(role.strip().lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Unknown role: {role}"
        ) from None
    if actor_role == ActorRole.SYSTEM:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="System role is internal only"
        )
    return Actor(id=user_id, role=actor_role)


def get_actor(
    x_user_id: Optional[int] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Actor:
    """
    Read the caller identity the gateway attached after authenticating it.

    Headers:
        X-User-Id: Numeric user id
        X-User-Role: tenant, owner or admin

    Raises:
        HTTPException: 401 when either header is missing or the role is unknown
    """
    if x_user_id is None or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing caller identity"
        )
    return _build_actor(x_user_id, x_user_role)


def get_optional_actor(
    x_user_id: Optional[int] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Optional[Actor]:
    """Same as get_actor, but anonymous callers get None instead of a 401."""
    if x_user_id is None or not x_user_role:
        return None
    return _build_actor(x_user_id, x_user_role)


def get_broker() -> NotificationBroker:
    return broker


def get_otp_service() -> OtpService:
    return otp_service
