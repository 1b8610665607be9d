"""
Unit tests for OtpService with a fake clock and a capturing sender.
"""

from __future__ import annotations

from typing import Optional

import pytest

from rentease.errors import RateLimitedError, ValidationError
from rentease.services.otp import OtpService, generate_code
from rentease.services.rate_limiter import AttemptLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class CapturingSender:
    """Records every code handed to the mail transport."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, Optional[str]]] = []

    def __call__(self, email: str, code: str, name: Optional[str]) -> None:
        self.sent.append((email, code, name))

    @property
    def last_code(self) -> str:
        return self.sent[-1][1]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sender() -> CapturingSender:
    return CapturingSender()


@pytest.fixture
def service(clock: FakeClock, sender: CapturingSender) -> OtpService:
    """Three minute codes, one minute resend gap, five sends per window."""
    limiter = AttemptLimiter(resend_gap_seconds=60, max_requests=5, block_seconds=600, clock=clock)
    return OtpService(limiter=limiter, sender=sender, ttl_seconds=180, clock=clock)


@pytest.mark.unit
def test_generate_code_is_six_digits() -> None:
    """Test that codes are always six numeric characters."""
    for _ in range(50):
        code = generate_code()
        assert len(code) == 6
        assert code.isdigit()


@pytest.mark.unit
def test_request_code_sends_to_normalized_email(
    service: OtpService, sender: CapturingSender
) -> None:
    """Test that the email is trimmed and lowercased before sending."""
    service.request_code("  Guest@Example.com ", name="Guest")

    assert sender.sent[0][0] == "guest@example.com"
    assert sender.sent[0][2] == "Guest"


@pytest.mark.unit
def test_request_code_requires_email(service: OtpService) -> None:
    """Test that a blank email is rejected."""
    with pytest.raises(ValidationError):
        service.request_code("   ")


@pytest.mark.unit
def test_verify_code_succeeds_once(service: OtpService, sender: CapturingSender) -> None:
    """Test that a correct code verifies and is then consumed."""
    service.request_code("guest@example.com")
    code = sender.last_code

    service.verify_code("GUEST@example.com", code)

    with pytest.raises(ValidationError):
        service.verify_code("guest@example.com", code)


@pytest.mark.unit
def test_verify_code_rejects_wrong_code(service: OtpService, sender: CapturingSender) -> None:
    """Test that a wrong code fails but leaves the real one usable."""
    service.request_code("guest@example.com")
    wrong = "000000" if sender.last_code != "000000" else "111111"

    with pytest.raises(ValidationError):
        service.verify_code("guest@example.com", wrong)

    service.verify_code("guest@example.com", sender.last_code)


@pytest.mark.unit
def test_verify_code_expired(
    service: OtpService, sender: CapturingSender, clock: FakeClock
) -> None:
    """Test that a code older than its TTL is refused and discarded."""
    service.request_code("guest@example.com")
    clock.now += 181

    with pytest.raises(ValidationError, match="expired"):
        service.verify_code("guest@example.com", sender.last_code)
    with pytest.raises(ValidationError, match="No code"):
        service.verify_code("guest@example.com", sender.last_code)


@pytest.mark.unit
def test_request_code_rate_limited(service: OtpService, sender: CapturingSender) -> None:
    """Test that a resend inside the gap is refused and nothing is sent."""
    service.request_code("guest@example.com")

    with pytest.raises(RateLimitedError):
        service.request_code("guest@example.com")
    assert len(sender.sent) == 1


@pytest.mark.unit
def test_successful_verification_resets_limiter(
    service: OtpService, sender: CapturingSender
) -> None:
    """Test that a verified email may request a new code straight away."""
    service.request_code("guest@example.com")
    service.verify_code("guest@example.com", sender.last_code)

    service.request_code("guest@example.com")
    assert len(sender.sent) == 2


@pytest.mark.unit
def test_purge_drops_expired_codes(service: OtpService, clock: FakeClock) -> None:
    """Test that purge() removes codes past their TTL."""
    service.request_code("a@example.com")
    clock.now += 100
    service.request_code("b@example.com")
    clock.now += 100

    assert service.purge() == 1
