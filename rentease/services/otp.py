"""
One-time passcodes for email verification.

Codes are six digits, valid for OTP_TTL_SECONDS and usable once. Requests go
through an AttemptLimiter; delivery goes through an injected sender so the
mail transport stays outside this service.
"""

import secrets
import threading
import time
from typing import Callable, Optional

import structlog

from rentease.config import (
    DEBUG,
    OTP_BLOCK_SECONDS,
    OTP_MAX_REQUESTS,
    OTP_RESEND_GAP_SECONDS,
    OTP_TTL_SECONDS,
)
from rentease.errors import RateLimitedError, ValidationError
from rentease.metrics import otp_requests
from rentease.services.rate_limiter import AttemptLimiter

logger = structlog.get_logger(__name__)

OtpSender = Callable[[str, str, Optional[str]], None]


def log_sender(email: str, code: str, name: Optional[str]) -> None:
    """Default sender: no mail transport, the code only reaches the debug log."""
    if DEBUG:
        logger.debug("otp_code_generated", email=email, code=code)
    logger.info("otp_delivery_skipped", email=email, recipient_name=name)


def generate_code() -> str:
    return f"{secrets.randbelow(900000) + 100000}"


class OtpService:
    """
    Issue and check email passcodes.

    Example:
        >>> service = OtpService(sender=my_mailer)
        >>> service.request_code("guest@example.com", name="Guest")
        >>> service.verify_code("guest@example.com", "123456")
    """

    def __init__(
        self,
        limiter: Optional[AttemptLimiter] = None,
        sender: OtpSender = log_sender,
        ttl_seconds: int = OTP_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.limiter = limiter or AttemptLimiter(
            resend_gap_seconds=OTP_RESEND_GAP_SECONDS,
            max_requests=OTP_MAX_REQUESTS,
            block_seconds=OTP_BLOCK_SECONDS,
            clock=clock,
        )
        self.sender = sender
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._codes: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(email: str) -> str:
        return email.strip().lower()

    def request_code(self, email: str, name: Optional[str] = None) -> None:
        """
        Generate a code for email and hand it to the sender.

        Raises:
            ValidationError: Empty email
            RateLimitedError: Requested too soon or too often
        """
        key = self._key(email)
        if not key:
            raise ValidationError("Email is required")

        try:
            self.limiter.hit(key)
        except RateLimitedError:
            otp_requests.labels(outcome="rate_limited").inc()
            logger.warning("otp_rate_limited", email=key)
            raise

        code = generate_code()
        with self._lock:
            self._codes[key] = (code, self._clock() + self.ttl_seconds)

        self.sender(key, code, name)
        otp_requests.labels(outcome="sent").inc()
        logger.info("otp_sent", email=key)

    def verify_code(self, email: str, code: str) -> None:
        """
        Consume the code for email.

        Raises:
            ValidationError: No code issued, code expired, or code wrong
        """
        key = self._key(email)
        now = self._clock()
        with self._lock:
            record = self._codes.get(key)
            if record is None:
                raise ValidationError("No code was sent to this email")
            expected, expires_at = record
            if now > expires_at:
                del self._codes[key]
                otp_requests.labels(outcome="invalid").inc()
                raise ValidationError("Code has expired")
            if not secrets.compare_digest(expected, code.strip()):
                otp_requests.labels(outcome="invalid").inc()
                raise ValidationError("Invalid code")
            del self._codes[key]

        self.limiter.reset(key)
        otp_requests.labels(outcome="verified").inc()
        logger.info("otp_verified", email=key)

    def purge(self) -> int:
        """Drop expired codes and limiter entries. Returns codes removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, (_, expires_at) in self._codes.items() if now > expires_at]
            for key in expired:
                del self._codes[key]
        self.limiter.purge()
        return len(expired)


# Global service instance, replaced through the FastAPI dependency in tests
otp_service = OtpService()
