"""
Tenant reviews.

A review is tied to one completed booking of its author. Every review write
recomputes the property's avg_rating and total_reviews in the same
transaction, so the catalog never shows a stale rating.
"""

from decimal import Decimal
from typing import Any, Optional

import structlog
from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.engine import Connection, Engine

from rentease.db.readers.properties import get_property
from rentease.db.writers.properties import update_property
from rentease.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from rentease.models.bookings import Booking
from rentease.models.enums import BookingStatus
from rentease.models.satellites import Review
from rentease.schemas.actors import Actor
from rentease.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

RATING_QUANTUM = Decimal("0.01")
SUB_RATINGS = ("cleanliness", "communication", "value_for_money")


def _check_rating(name: str, value: Optional[int]) -> None:
    if value is not None and not 1 <= value <= 5:
        raise ValidationError(f"{name} must be between 1 and 5")


def _reviewable_bookings(conn: Connection, user_id: int, property_id: int) -> list[int]:
    """Ids of the user's completed stays on the property that have no review yet."""
    reviewed = select(Review.booking_id).where(Review.booking_id.is_not(None))
    result = conn.execute(
        select(Booking.id)
        .where(
            Booking.tenant_id == user_id,
            Booking.property_id == property_id,
            Booking.status == BookingStatus.COMPLETED,
            Booking.id.not_in(reviewed),
        )
        .order_by(Booking.end_date.desc())
    )
    return [row[0] for row in result]


def _refresh_property_rating(conn: Connection, property_id: int) -> None:
    avg, total = conn.execute(
        select(func.avg(Review.rating), func.count(Review.id)).where(
            Review.property_id == property_id
        )
    ).one()
    avg_rating = Decimal(str(avg or 0)).quantize(RATING_QUANTUM)
    update_property(conn, property_id, {"avg_rating": avg_rating, "total_reviews": total})


def _load_review(conn: Connection, review_id: int) -> dict[str, Any]:
    row = conn.execute(select(Review.__table__).where(Review.id == review_id)).mappings().fetchone()
    if row is None:
        raise NotFoundError("Review not found", review_id=review_id)
    return dict(row)


def can_review(engine: Engine, user_id: int, property_id: int) -> bool:
    """True if the user has a completed, not yet reviewed stay on the property."""
    with engine.connect() as conn:
        return bool(_reviewable_bookings(conn, user_id, property_id))


def create_review(engine: Engine, actor: Actor, data: dict[str, Any]) -> dict[str, Any]:
    """
    Review a completed stay.

    data carries property_id, rating, optional comment and sub-ratings, and an
    optional booking_id; without one the latest eligible stay is used.

    Raises:
        NotFoundError: Property missing or deleted
        ValidationError: Rating out of range, or no eligible completed stay
        ConflictError: The named booking is already reviewed
    """
    property_id = data["property_id"]
    rating = data.get("rating")
    if rating is None:
        raise ValidationError("rating is required")
    _check_rating("rating", rating)
    for name in SUB_RATINGS:
        _check_rating(name, data.get(name))

    with engine.begin() as conn:
        prop = get_property(conn, property_id, for_update=True)
        if prop is None or prop["deleted_at"] is not None:
            raise NotFoundError("Property not found", property_id=property_id)

        eligible = _reviewable_bookings(conn, actor.id, property_id)
        booking_id = data.get("booking_id")
        if booking_id is None:
            if not eligible:
                raise ValidationError(
                    "Only guests with a completed stay can review this property",
                    property_id=property_id,
                )
            booking_id = eligible[0]
        elif booking_id not in eligible:
            already = conn.execute(
                select(Review.id).where(Review.booking_id == booking_id)
            ).fetchone()
            if already is not None:
                raise ConflictError("This stay has already been reviewed", booking_id=booking_id)
            raise ValidationError(
                "Booking is not a completed stay of yours on this property",
                booking_id=booking_id,
            )

        now = utc_now()
        result = conn.execute(
            insert(Review).values(
                property_id=property_id,
                user_id=actor.id,
                booking_id=booking_id,
                rating=rating,
                comment=data.get("comment"),
                created_at=now,
                updated_at=now,
                **{name: data.get(name) or rating for name in SUB_RATINGS},
            )
        )
        review_id = result.inserted_primary_key[0]
        _refresh_property_rating(conn, property_id)
        review = _load_review(conn, review_id)

    logger.info(
        "review_created",
        review_id=review_id,
        property_id=property_id,
        booking_id=booking_id,
        rating=rating,
    )
    return review


def _require_author(review: dict[str, Any], actor: Actor) -> None:
    if not actor.is_admin and actor.id != review["user_id"]:
        raise AuthorizationError("Only the author or an admin can change this review")


def update_review(
    engine: Engine, review_id: int, data: dict[str, Any], actor: Actor
) -> dict[str, Any]:
    values = {
        k: v
        for k, v in data.items()
        if k in ("rating", "comment", *SUB_RATINGS) and v is not None
    }
    for name in ("rating", *SUB_RATINGS):
        _check_rating(name, values.get(name))

    with engine.begin() as conn:
        review = _load_review(conn, review_id)
        _require_author(review, actor)
        if values:
            conn.execute(
                update(Review).where(Review.id == review_id).values(**values, updated_at=utc_now())
            )
            _refresh_property_rating(conn, review["property_id"])
        review = _load_review(conn, review_id)

    logger.info("review_updated", review_id=review_id, fields=sorted(values))
    return review


def delete_review(engine: Engine, review_id: int, actor: Actor) -> None:
    with engine.begin() as conn:
        review = _load_review(conn, review_id)
        _require_author(review, actor)
        conn.execute(delete(Review).where(Review.id == review_id))
        _refresh_property_rating(conn, review["property_id"])

    logger.info("review_deleted", review_id=review_id, property_id=review["property_id"])


def list_reviews(
    engine: Engine,
    property_id: Optional[int] = None,
    user_id: Optional[int] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[dict[str, Any]]:
    """Reviews newest first, for a property or by an author."""
    stmt = select(Review.__table__)
    if property_id is not None:
        stmt = stmt.where(Review.property_id == property_id)
    if user_id is not None:
        stmt = stmt.where(Review.user_id == user_id)
    stmt = stmt.order_by(Review.created_at.desc(), Review.id.desc()).limit(limit).offset(offset)
    with engine.connect() as conn:
        return [dict(r) for r in conn.execute(stmt).mappings()]


def average_ratings(engine: Engine, property_id: int) -> dict[str, Any]:
    """Mean overall and sub-ratings for a property; zeros when it has no reviews."""
    with engine.connect() as conn:
        row = conn.execute(
            select(
                func.avg(Review.rating).label("overall"),
                func.avg(Review.cleanliness).label("cleanliness"),
                func.avg(Review.communication).label("communication"),
                func.avg(Review.value_for_money).label("value_for_money"),
                func.count(Review.id).label("total_reviews"),
            ).where(Review.property_id == property_id)
        ).mappings().one()

    summary: dict[str, Any] = {"total_reviews": row["total_reviews"]}
    for name in ("overall", *SUB_RATINGS):
        summary[name] = Decimal(str(row[name] or 0)).quantize(RATING_QUANTUM)
    return summary
