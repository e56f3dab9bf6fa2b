"""
Prometheus metrics for booking traffic.
Exposed at /metrics.
"""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

booking_attempts = Counter(
    'hotel_booking_attempts_total',
    'Booking attempts by operation and outcome',
    ['operation', 'outcome']  # create/update/get; success, not_found, forbidden
)

booking_latency = Histogram(
    'hotel_booking_latency_seconds',
    'Time spent in the capacity allocator',
    ['operation'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

capacity_retries = Counter(
    'hotel_booking_capacity_retries_total',
    'Room reservations retried after a version conflict'
)

admission_requests = Counter(
    'hotel_booking_admission_requests_total',
    'Admission gate decisions',
    ['result']  # admitted, rejected
)

redis_connection_errors = Counter(
    'hotel_booking_redis_errors_total',
    'Redis errors seen by the admission gate'
)

redis_circuit_breaker_open = Gauge(
    'hotel_booking_redis_circuit_breaker_open',
    'Admission gate failing open (1=open, 0=closed)'
)


def metrics_endpoint() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(operation: str, outcome: str):
    """Outcome: success, not_found, forbidden"""
    booking_attempts.labels(operation=operation, outcome=outcome).inc()


def record_admission(admitted: bool):
    result = "admitted" if admitted else "rejected"
    admission_requests.labels(result=result).inc()
