# models/bookings.py

from sqlalchemy import (
    TIMESTAMP,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    func,
)

from rentease.models.base import Base, enum_column_type
from rentease.models.enums import BookingPaymentStatus, BookingStatus


class Booking(Base):
    """
    ORM model for a tenant's stay request on a property.

    The date range is half-open: start_date is the first night, end_date is the
    check-out day. owner_id is copied from the property when the booking is
    created and never re-derived. Booking rows are the source of truth for
    occupancy; availability_calendar is derived from them.
    """

    __tablename__ = "bookings"
    __table_args__ = (Index("ix_bookings_property_status", "property_id", "status"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    property_id = Column(
        Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
    )
    tenant_id = Column(Integer, nullable=False, index=True)
    owner_id = Column(Integer, nullable=False, index=True)  # snapshot at creation
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    nights = Column(Integer, nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)
    status = Column(
        enum_column_type(BookingStatus, "booking_status"),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    payment_status = Column(
        enum_column_type(BookingPaymentStatus, "booking_payment_status"),
        nullable=False,
        default=BookingPaymentStatus.PENDING,
    )
    message = Column(Text, nullable=True)
    response_message = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
