"""SQLAlchemy model for rental property listings."""

from sqlalchemy import (
    TIMESTAMP,
    Boolean,
    Column,
    Integer,
    Numeric,
    SmallInteger,
    String,
    Text,
    func,
)

from rentease.models.base import Base


class Property(Base):
    """
    ORM model for a property listed by an owner.

    status is a PropertyStatus value (0 draft, 1 published). A non-null
    deleted_at soft-deletes the row: it disappears from every non-admin view but
    its bookings keep referencing it.
    """

    __tablename__ = "properties"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(Integer, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    property_type = Column(String(50), nullable=True, index=True)
    city = Column(String(120), nullable=True, index=True)
    address = Column(String(255), nullable=True)
    price = Column(Numeric(12, 2), nullable=False)  # per night
    is_available = Column(Boolean, nullable=False, default=True)
    instant_booking = Column(Boolean, nullable=False, default=False)
    status = Column(SmallInteger, nullable=False, default=0)
    avg_rating = Column(Numeric(3, 2), nullable=False, default=0)
    total_reviews = Column(Integer, nullable=False, default=0)
    deleted_at = Column(TIMESTAMP(timezone=True), nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
