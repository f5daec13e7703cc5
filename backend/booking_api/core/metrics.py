"""
Prometheus metrics for the booking flow, served at /metrics.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Reservation outcomes
booking_attempts = Counter(
    'booking_attempts_total',
    'Total reservation attempts',
    ['outcome']  # success, not_found, invalid_state, conflict, capacity, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Time spent inside the reservation transaction, lock wait included',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

seats_reserved = Counter(
    'seats_reserved_total',
    'Tickets taken out of event inventory'
)

# Cancellation outcomes
cancellation_attempts = Counter(
    'cancellation_attempts_total',
    'Total cancellation attempts',
    ['outcome']  # success, not_found, invalid_state, error
)

seats_released = Counter(
    'seats_released_total',
    'Tickets returned to event inventory by cancellations'
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Event listing cache operations',
    ['operation', 'result']  # get: hit/miss, invalidate: ok/error
)


def metrics_endpoint() -> Response:
    """Render the default registry in Prometheus text format."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(outcome: str):
    booking_attempts.labels(outcome=outcome).inc()


def record_cancellation_attempt(outcome: str):
    cancellation_attempts.labels(outcome=outcome).inc()


def record_cache_operation(operation: str, hit: bool):
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
