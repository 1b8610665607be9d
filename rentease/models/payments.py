"""SQLAlchemy model for manual QR payment intents."""

from sqlalchemy import TIMESTAMP, Column, ForeignKey, Integer, Numeric, String, Text, func

from rentease.models.base import Base, enum_column_type
from rentease.models.enums import PaymentStatus


class Payment(Base):
    """
    ORM model for a payment intent tied to one booking.

    payment_id is the opaque external identifier shown to the payer. amount is
    fixed to the booking's total_price when the intent is created. An intent in
    status pending stops being usable once expires_at passes; the row is flipped
    to expired lazily on the next read.
    """

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    payment_id = Column(String(64), nullable=False, unique=True, index=True)
    booking_id = Column(
        Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(30), nullable=False)
    status = Column(
        enum_column_type(PaymentStatus, "payment_status"),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    transaction_reference = Column(String(120), nullable=True)
    proof_artifact = Column(Text, nullable=True)  # screenshot URL or reference
    qr_code = Column(Text, nullable=True)  # data URL
    admin_notes = Column(Text, nullable=True)
    expires_at = Column(TIMESTAMP(timezone=True), nullable=False)
    verified_at = Column(TIMESTAMP(timezone=True), nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
