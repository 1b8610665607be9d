"""
Prometheus metrics for bookings, payments and notification delivery.

This module defines all Prometheus metrics used throughout the application for
observability and monitoring. Metrics are exposed via the /metrics endpoint for
scraping by Prometheus.

Metric Types:
    - Counter: Cumulative metrics that only increase (e.g., bookings created)
    - Histogram: Observations bucketed by value (e.g., commit latency)

Example:
    >>> from rentease.metrics import booking_transitions
    >>> booking_transitions.labels(from_status="pending", to_status="confirmed").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Booking Metrics
# =============================================================================

bookings_created = Counter(
    "rentease_bookings_created_total",
    "Total number of bookings created",
    ["initial_status"],
)
"""
Counter for created bookings.

Labels:
    initial_status: pending, or confirmed for instant-booking properties
"""

booking_transitions = Counter(
    "rentease_booking_transitions_total",
    "Total number of booking status transitions committed",
    ["from_status", "to_status"],
)
"""
Counter for committed status transitions.

Labels:
    from_status: Status before the transition
    to_status: Status after the transition
"""

booking_conflicts = Counter(
    "rentease_booking_conflicts_total",
    "Booking requests or confirmations refused because of an overlapping range",
    ["stage"],
)
"""
Counter for date-range conflicts.

Labels:
    stage: create (advisory check) or confirm (commit-time re-validation)
"""

booking_commit_duration = Histogram(
    "rentease_booking_commit_duration_seconds",
    "Duration of the booking status transaction in seconds",
    ["to_status"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, float("inf")),
)
"""
Histogram for status transaction duration, lock wait included.

Labels:
    to_status: Target status

Buckets: 5ms, 10ms, 25ms, 50ms, 100ms, 250ms, 500ms, 1s, 2.5s, +Inf
"""

# =============================================================================
# Payment Metrics
# =============================================================================

payment_events = Counter(
    "rentease_payment_events_total",
    "Payment intent lifecycle events",
    ["event"],
)
"""
Counter for payment intent events.

Labels:
    event: created, proof_submitted, verified, rejected, expired
"""

# =============================================================================
# Notification Metrics
# =============================================================================

notifications_emitted = Counter(
    "rentease_notifications_emitted_total",
    "Domain events delivered to the notification collaborator",
    ["event"],
)
"""
Counter for delivered domain events.

Labels:
    event: Domain event name (e.g., booking.confirmed)
"""

notification_failures = Counter(
    "rentease_notification_failures_total",
    "Domain events whose delivery raised; the originating transaction is kept",
    ["event"],
)
"""
Counter for failed deliveries.

Labels:
    event: Domain event name
"""

# =============================================================================
# OTP Metrics
# =============================================================================

otp_requests = Counter(
    "rentease_otp_requests_total",
    "One-time passcode requests by outcome",
    ["outcome"],
)
"""
Counter for OTP requests.

Labels:
    outcome: sent, rate_limited, verified, invalid
"""
