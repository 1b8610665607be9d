"""
Dashboard rollups over properties, bookings, reviews and wishlists.

Queries stay portable across PostgreSQL and SQLite: anything date-shaped
(month buckets, occupancy clipping) is folded in Python from plain rows.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

import structlog
from sqlalchemy import case, func, select
from sqlalchemy.engine import Engine

from rentease.config import PRICE_QUANTUM
from rentease.errors import AuthorizationError, ValidationError
from rentease.models.bookings import Booking
from rentease.models.enums import ActorRole, BookingPaymentStatus, BookingStatus, PropertyStatus
from rentease.models.properties import Property
from rentease.models.satellites import WishlistItem
from rentease.schemas.actors import Actor
from rentease.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

TIME_RANGES = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}
DEFAULT_TIME_RANGE = "30d"
OCCUPYING_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.COMPLETED)


def _money(value: Any) -> Decimal:
    return Decimal(str(value or 0)).quantize(PRICE_QUANTUM)


def window_days(time_range: Optional[str]) -> int:
    """Number of days covered by a time range label (7d, 30d, 90d, 1y)."""
    label = time_range or DEFAULT_TIME_RANGE
    if label not in TIME_RANGES:
        raise ValidationError(
            f"Unknown time range {label!r}; expected one of {', '.join(TIME_RANGES)}"
        )
    return TIME_RANGES[label]


def _status_counts(rows: list[Any]) -> dict[str, int]:
    counts = {str(status): 0 for status in BookingStatus}
    for status, count in rows:
        counts[str(status)] = count
    counts["total"] = sum(counts.values())
    return counts


def revenue_by_month(rows: list[tuple[datetime, Any]], months: int = 6) -> list[dict[str, Any]]:
    """
    Bucket (created_at, amount) pairs into YYYY-MM, latest month first.

    Args:
        rows: Paid bookings as (created_at, total_price)
        months: Number of most recent months to keep
    """
    buckets: dict[str, list[Decimal]] = defaultdict(list)
    for created_at, amount in rows:
        buckets[created_at.strftime("%Y-%m")].append(Decimal(str(amount)))
    return [
        {"month": month, "revenue": _money(sum(amounts)), "booking_count": len(amounts)}
        for month, amounts in sorted(buckets.items(), reverse=True)[:months]
    ]


def occupancy_rate(
    ranges: list[tuple[date, date]], window_start: date, window_end: date
) -> Decimal:
    """
    Percentage of nights in [window_start, window_end) covered by the ranges.

    Each [start, end) range is clipped to the window first.
    """
    total_days = (window_end - window_start).days
    if total_days <= 0:
        return Decimal("0.00")
    booked = 0
    for start, end in ranges:
        clipped = (min(end, window_end) - max(start, window_start)).days
        booked += max(clipped, 0)
    return (Decimal(booked) * 100 / Decimal(total_days)).quantize(Decimal("0.01"))


def platform_analytics(
    engine: Engine, actor: Actor, time_range: Optional[str] = None
) -> dict[str, Any]:
    """
    Platform-wide totals for the admin dashboard.

    Returns:
        dict: property_stats, booking_stats, revenue, revenue_by_month, top_properties
    """
    if not actor.is_admin:
        raise AuthorizationError("Only admins can view platform analytics")

    days = window_days(time_range)
    since = utc_now() - timedelta(days=days)

    with engine.connect() as conn:
        prop = conn.execute(
            select(
                func.count(Property.id).label("total"),
                func.sum(
                    case(
                        (
                            (Property.status == int(PropertyStatus.PUBLISHED))
                            & Property.deleted_at.is_(None),
                            1,
                        ),
                        else_=0,
                    )
                ).label("published"),
                func.sum(
                    case(
                        (
                            (Property.status == int(PropertyStatus.DRAFT))
                            & Property.deleted_at.is_(None),
                            1,
                        ),
                        else_=0,
                    )
                ).label("draft"),
                func.sum(
                    case(
                        (Property.is_available.is_(True) & Property.deleted_at.is_(None), 1),
                        else_=0,
                    )
                ).label("available"),
                func.sum(case((Property.deleted_at.is_not(None), 1), else_=0)).label("deleted"),
            )
        ).mappings().one()

        status_rows = conn.execute(
            select(Booking.status, func.count(Booking.id))
            .where(Booking.created_at >= since)
            .group_by(Booking.status)
        ).all()

        paid_count, paid_sum = conn.execute(
            select(func.count(Booking.id), func.sum(Booking.total_price)).where(
                Booking.created_at >= since,
                Booking.payment_status == BookingPaymentStatus.PAID,
            )
        ).one()

        paid_rows = conn.execute(
            select(Booking.created_at, Booking.total_price).where(
                Booking.payment_status == BookingPaymentStatus.PAID
            )
        ).all()

        top = conn.execute(
            select(
                Property.id,
                Property.title,
                Property.price,
                Property.avg_rating,
                func.count(Booking.id).label("booking_count"),
            )
            .select_from(Property)
            .outerjoin(Booking, Booking.property_id == Property.id)
            .where(Property.deleted_at.is_(None))
            .group_by(Property.id, Property.title, Property.price, Property.avg_rating)
            .order_by(func.count(Booking.id).desc(), Property.id.asc())
            .limit(10)
        ).mappings().all()

    total_revenue = _money(paid_sum)
    result = {
        "time_range": time_range or DEFAULT_TIME_RANGE,
        "property_stats": {k: int(v or 0) for k, v in prop.items()},
        "booking_stats": _status_counts(status_rows),
        "revenue": {
            "paid_bookings": paid_count,
            "total_revenue": total_revenue,
            "avg_booking_value": _money(total_revenue / paid_count) if paid_count else _money(0),
        },
        "revenue_by_month": revenue_by_month(paid_rows),
        "top_properties": [
            {
                "id": row["id"],
                "title": row["title"],
                "price": _money(row["price"]),
                "avg_rating": Decimal(str(row["avg_rating"] or 0)),
                "booking_count": row["booking_count"],
            }
            for row in top
        ],
    }
    logger.info("platform_analytics_computed", time_range=result["time_range"])
    return result


def owner_analytics(
    engine: Engine,
    actor: Actor,
    time_range: Optional[str] = None,
    owner_id: Optional[int] = None,
    today: Optional[date] = None,
) -> dict[str, Any]:
    """
    Per-property performance for an owner.

    Occupancy covers the window [today - days, today): nights of confirmed or
    completed stays clipped to the window, over the window's length.

    Args:
        engine: SQLAlchemy engine
        actor: The owner, or an admin passing owner_id
        time_range: 7d, 30d, 90d or 1y
        owner_id: Owner to report on (admins only; defaults to the actor)
        today: End of the occupancy window (defaults to the current UTC date)
    """
    if actor.is_admin and owner_id is not None:
        target_owner = owner_id
    elif actor.role == ActorRole.OWNER:
        target_owner = actor.id
    else:
        raise AuthorizationError("Only owners can view owner analytics")

    days = window_days(time_range)
    since = utc_now() - timedelta(days=days)
    window_end = today or utc_now().date()
    window_start = window_end - timedelta(days=days)

    with engine.connect() as conn:
        properties = conn.execute(
            select(
                Property.id,
                Property.title,
                Property.price,
                Property.is_available,
                Property.avg_rating,
                Property.total_reviews,
            )
            .where(Property.owner_id == target_owner, Property.deleted_at.is_(None))
            .order_by(Property.id.asc())
        ).mappings().all()

        booking_rows = conn.execute(
            select(
                Booking.property_id,
                func.count(Booking.id).label("total_bookings"),
                func.sum(
                    case(
                        (
                            Booking.payment_status == BookingPaymentStatus.PAID,
                            Booking.total_price,
                        ),
                        else_=0,
                    )
                ).label("revenue"),
            )
            .where(Booking.owner_id == target_owner, Booking.created_at >= since)
            .group_by(Booking.property_id)
        ).mappings().all()

        stays = conn.execute(
            select(Booking.property_id, Booking.start_date, Booking.end_date).where(
                Booking.owner_id == target_owner,
                Booking.status.in_(OCCUPYING_STATUSES),
                Booking.start_date < window_end,
                Booking.end_date > window_start,
            )
        ).all()

    per_property = {row["property_id"]: row for row in booking_rows}
    ranges: dict[int, list[tuple[date, date]]] = defaultdict(list)
    for property_id, start, end in stays:
        ranges[property_id].append((start, end))

    performance = []
    for prop in properties:
        stats = per_property.get(prop["id"])
        performance.append(
            {
                "id": prop["id"],
                "title": prop["title"],
                "price": _money(prop["price"]),
                "is_available": bool(prop["is_available"]),
                "avg_rating": Decimal(str(prop["avg_rating"] or 0)),
                "total_reviews": prop["total_reviews"],
                "total_bookings": stats["total_bookings"] if stats else 0,
                "total_revenue": _money(stats["revenue"] if stats else 0),
                "occupancy_rate": occupancy_rate(ranges[prop["id"]], window_start, window_end),
            }
        )
    performance.sort(key=lambda p: p["total_revenue"], reverse=True)

    return {
        "time_range": time_range or DEFAULT_TIME_RANGE,
        "owner_id": target_owner,
        "window": {"start": window_start, "end": window_end, "days": days},
        "properties": performance,
        "total_revenue": _money(sum(p["total_revenue"] for p in performance)),
    }


def tenant_analytics(
    engine: Engine, actor: Actor, time_range: Optional[str] = None
) -> dict[str, Any]:
    """Booking counts, paid spend and wishlist price stats for the acting user."""
    days = window_days(time_range)
    since = utc_now() - timedelta(days=days)

    with engine.connect() as conn:
        status_rows = conn.execute(
            select(Booking.status, func.count(Booking.id))
            .where(Booking.tenant_id == actor.id, Booking.created_at >= since)
            .group_by(Booking.status)
        ).all()

        spend = conn.execute(
            select(func.sum(Booking.total_price)).where(
                Booking.tenant_id == actor.id,
                Booking.created_at >= since,
                Booking.payment_status == BookingPaymentStatus.PAID,
            )
        ).scalar()

        wishlist = conn.execute(
            select(
                func.count(WishlistItem.id).label("total_wishlisted"),
                func.sum(Property.price).label("price_sum"),
                func.min(Property.price).label("min_price"),
                func.max(Property.price).label("max_price"),
            )
            .select_from(WishlistItem)
            .join(Property, Property.id == WishlistItem.property_id)
            .where(WishlistItem.user_id == actor.id, Property.deleted_at.is_(None))
        ).mappings().one()

    wished = wishlist["total_wishlisted"]
    avg_price = Decimal(str(wishlist["price_sum"])) / wished if wished else 0
    return {
        "time_range": time_range or DEFAULT_TIME_RANGE,
        "booking_stats": _status_counts(status_rows),
        "total_spent": _money(spend),
        "wishlist_stats": {
            "total_wishlisted": wished,
            "avg_price": _money(avg_price),
            "min_price": _money(wishlist["min_price"]),
            "max_price": _money(wishlist["max_price"]),
        },
    }
