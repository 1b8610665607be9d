"""
Unit tests for the structlog processor chain.
"""

import pytest
import structlog

from rentease.logging_config import (
    add_service_name,
    build_processors,
    redact_sensitive,
)


@pytest.mark.unit
def test_redact_sensitive_masks_codes_and_references() -> None:
    """Test that OTP codes and transfer references never reach the renderer."""
    event = {
        "event": "payment_proof_submitted",
        "code": "123456",
        "transaction_reference": "TXN-42",
        "payment_id": "PAY-1-abc",
    }

    result = redact_sensitive(None, "info", event)

    assert result["code"] == "***"
    assert result["transaction_reference"] == "***"
    assert result["payment_id"] == "PAY-1-abc"


@pytest.mark.unit
def test_redact_sensitive_leaves_missing_values() -> None:
    """Test that a None reference is logged as None."""
    result = redact_sensitive(None, "info", {"event": "x", "proof_artifact": None})

    assert result["proof_artifact"] is None


@pytest.mark.unit
def test_add_service_name_keeps_explicit_value() -> None:
    assert add_service_name(None, "info", {"event": "x"})["service"] == "rentease"
    assert add_service_name(None, "info", {"service": "cron"})["service"] == "cron"


@pytest.mark.unit
def test_build_processors_orders_redaction_before_renderer() -> None:
    """Test that the renderer is last and redaction is optional."""
    processors = build_processors(json_output=True)

    assert isinstance(processors[-1], structlog.processors.JSONRenderer)
    assert processors.index(redact_sensitive) == len(processors) - 2
    assert redact_sensitive not in build_processors(json_output=True, redact=False)
