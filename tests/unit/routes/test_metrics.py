"""
Unit tests for metrics endpoint.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from rentease.main import app
from rentease.metrics import (
    booking_commit_duration,
    booking_conflicts,
    booking_transitions,
    bookings_created,
    notification_failures,
    otp_requests,
    payment_events,
)


@pytest.fixture
def client() -> TestClient:
    """FastAPI test client."""
    return TestClient(app)


@pytest.mark.unit
def test_metrics_endpoint_returns_prometheus_format(client: TestClient) -> None:
    """Test that /metrics endpoint returns Prometheus text format."""
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "text/plain" in response.headers["content-type"]


@pytest.mark.unit
def test_metrics_endpoint_contains_custom_metrics(client: TestClient) -> None:
    """Test that /metrics endpoint includes the booking and payment metrics."""
    bookings_created.labels(initial_status="pending").inc()
    booking_transitions.labels(from_status="pending", to_status="confirmed").inc()
    booking_conflicts.labels(stage="confirm").inc()
    booking_commit_duration.labels(to_status="confirmed").observe(0.02)
    payment_events.labels(event="created").inc()
    notification_failures.labels(event="booking.confirmed").inc()
    otp_requests.labels(outcome="sent").inc()

    content = client.get("/metrics").text

    assert "rentease_bookings_created_total" in content
    assert "rentease_booking_transitions_total" in content
    assert "rentease_booking_conflicts_total" in content
    assert "rentease_booking_commit_duration_seconds" in content
    assert "rentease_payment_events_total" in content
    assert "rentease_notification_failures_total" in content
    assert "rentease_otp_requests_total" in content


@pytest.mark.unit
def test_metrics_endpoint_includes_help_and_type_metadata(client: TestClient) -> None:
    """Test that metrics include Prometheus HELP and TYPE metadata."""
    content = client.get("/metrics").text

    assert "# HELP" in content
    assert "# TYPE" in content
