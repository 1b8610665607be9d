from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.engine import Engine

from rentease.dependencies import get_actor, get_db_engine
from rentease.errors import RentalError
from rentease.schemas.actors import Actor
from rentease.schemas.satellites import (
    RatingSummary,
    ReviewCreatePayload,
    ReviewRecord,
    ReviewUpdatePayload,
)
from rentease.services import reviews

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/properties/{property_id}/reviews", response_model=list[ReviewRecord])
def property_reviews(
    property_id: int,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    return reviews.list_reviews(engine, property_id=property_id, limit=limit, offset=offset)


@router.get("/properties/{property_id}/ratings", response_model=RatingSummary)
def property_ratings(property_id: int, engine: Engine = Depends(get_db_engine)) -> Any:
    return reviews.average_ratings(engine, property_id)


@router.get("/properties/{property_id}/can-review")
def can_review(
    property_id: int,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    eligible = reviews.can_review(engine, actor.id, property_id)
    return {"property_id": property_id, "can_review": eligible}


@router.get("/reviews/mine", response_model=list[ReviewRecord])
def my_reviews(actor: Actor = Depends(get_actor), engine: Engine = Depends(get_db_engine)) -> Any:
    return reviews.list_reviews(engine, user_id=actor.id)


@router.post("/reviews", status_code=status.HTTP_201_CREATED, response_model=ReviewRecord)
def create_review(
    payload: ReviewCreatePayload,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    """
    Review a completed stay.

    Returns 400 unless the caller has a completed, unreviewed booking on the
    property.
    """
    try:
        return reviews.create_review(engine, actor, payload.model_dump())
    except (HTTPException, RentalError):
        raise
    except Exception as e:
        logger.exception("review_creation_failed", property_id=payload.property_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.patch("/reviews/{review_id}", response_model=ReviewRecord)
def update_review(
    review_id: int,
    payload: ReviewUpdatePayload,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    return reviews.update_review(engine, review_id, payload.model_dump(exclude_unset=True), actor)


@router.delete("/reviews/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_review(
    review_id: int,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> Response:
    reviews.delete_review(engine, review_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
