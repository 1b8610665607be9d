from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import StreamingResponse
from sqlalchemy.engine import Engine

from rentease.dependencies import get_actor, get_broker, get_db_engine
from rentease.schemas.actors import Actor
from rentease.schemas.satellites import NotificationRecord
from rentease.services import notifications
from rentease.services.notifications import NotificationBroker

router = APIRouter()


@router.get("/notifications", response_model=list[NotificationRecord])
def list_notifications(
    days: Optional[int] = Query(None, ge=1, le=365, description="Only the last N days"),
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    return notifications.list_notifications(
        engine, actor.id, days=days, unread_only=unread_only, limit=limit
    )


@router.get("/notifications/unread-count")
def unread_count(
    actor: Actor = Depends(get_actor), engine: Engine = Depends(get_db_engine)
) -> dict[str, int]:
    return {"unread": notifications.unread_count(engine, actor.id)}


@router.patch("/notifications/read-all")
def mark_all_read(
    actor: Actor = Depends(get_actor), engine: Engine = Depends(get_db_engine)
) -> dict[str, int]:
    return {"updated": notifications.mark_all_read(engine, actor.id)}


@router.patch("/notifications/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT)
def mark_read(
    notification_id: int,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> Response:
    notifications.mark_read(engine, notification_id, actor.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/notifications/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: int,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> Response:
    notifications.delete_notification(engine, notification_id, actor.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/notifications/stream")
async def stream(
    actor: Actor = Depends(get_actor),
    target: NotificationBroker = Depends(get_broker),
) -> StreamingResponse:
    """
    Server-Sent Events feed of the caller's notifications.

    The first frame confirms the subscription; a keepalive comment follows
    whenever the feed is idle.
    """
    return StreamingResponse(
        notifications.stream_events(actor.id, target),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
