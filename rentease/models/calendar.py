from sqlalchemy import Boolean, Column, Date, ForeignKey, Integer, UniqueConstraint

from rentease.models.base import Base


class CalendarEntry(Base):
    """
    ORM model for the per-day availability calendar.

    One row per (property_id, date). Rows are a materialized cache of confirmed
    bookings: booking_id points at the booking that occupies the night.
    """

    __tablename__ = "availability_calendar"
    __table_args__ = (
        UniqueConstraint("property_id", "date", name="uq_calendar_property_date"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    property_id = Column(
        Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date = Column(Date, nullable=False)
    is_available = Column(Boolean, nullable=False, default=False)
    booking_id = Column(
        Integer, ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True, index=True
    )
