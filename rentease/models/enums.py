"""Closed status types for every aggregate, shared by models and schemas."""

from enum import IntEnum, StrEnum


class ActorRole(StrEnum):
    TENANT = "tenant"
    OWNER = "owner"
    ADMIN = "admin"
    SYSTEM = "system"  # scheduled sweeps, never sent by the gateway


class PropertyStatus(IntEnum):
    DRAFT = 0
    PUBLISHED = 1


class BookingStatus(StrEnum):
    PENDING = "pending"  # awaiting owner decision
    CONFIRMED = "confirmed"  # owner accepted, or instant booking
    REJECTED = "rejected"  # owner declined
    CANCELLED = "cancelled"  # withdrawn by tenant, owner or admin
    COMPLETED = "completed"  # stay elapsed, eligible for review

    @classmethod
    def parse(cls, value: str) -> "BookingStatus":
        """Accept the legacy 'accepted' spelling as an alias of confirmed."""
        normalized = value.strip().lower()
        if normalized == "accepted":
            return cls.CONFIRMED
        return cls(normalized)


class BookingPaymentStatus(StrEnum):
    PENDING = "pending"
    PAID = "paid"


class PaymentStatus(StrEnum):
    PENDING = "pending"  # QR issued, waiting for proof
    PENDING_VERIFICATION = "pending_verification"  # proof submitted
    VERIFIED = "verified"
    REJECTED = "rejected"
    EXPIRED = "expired"


class NotificationType(StrEnum):
    BOOKING = "booking"
    PAYMENT = "payment"
    WARNING = "warning"
    REMINDER = "reminder"
    SYSTEM = "system"
