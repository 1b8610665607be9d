from typing import Any

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.engine import Engine

from rentease.dependencies import get_actor, get_db_engine
from rentease.schemas.actors import Actor
from rentease.schemas.satellites import WishlistEntry, WishlistPayload
from rentease.services import wishlist

router = APIRouter()


@router.get("/wishlist", response_model=list[WishlistEntry])
def list_wishlist(
    actor: Actor = Depends(get_actor), engine: Engine = Depends(get_db_engine)
) -> Any:
    return wishlist.list_wishlist(engine, actor.id)


@router.post("/wishlist", status_code=status.HTTP_201_CREATED)
def add_to_wishlist(
    payload: WishlistPayload,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    wishlist.add_to_wishlist(engine, actor.id, payload.property_id)
    return {"property_id": payload.property_id, "in_wishlist": True}


@router.delete("/wishlist/{property_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_from_wishlist(
    property_id: int,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> Response:
    wishlist.remove_from_wishlist(engine, actor.id, property_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/wishlist/{property_id}/toggle")
def toggle_wishlist(
    property_id: int,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    in_wishlist = wishlist.toggle_wishlist(engine, actor.id, property_id)
    return {"property_id": property_id, "in_wishlist": in_wishlist}


@router.get("/wishlist/{property_id}/check")
def check_wishlist(
    property_id: int,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    return {
        "property_id": property_id,
        "in_wishlist": wishlist.is_in_wishlist(engine, actor.id, property_id),
    }
