"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Seat hold metrics
lock_attempts = Counter(
    'seat_lock_attempts_total',
    'Seat lock attempts',
    ['result']  # locked, conflict, error
)

seats_released = Counter(
    'seats_released_total',
    'Seats moved from BOOKING_IN_PROGRESS back to AVAILABLE',
    ['source']  # explicit, sweep
)

sweep_runs = Counter(
    'hold_sweep_runs_total',
    'Expiry sweep runs',
    ['result']  # ok, error
)

sweep_latency = Histogram(
    'hold_sweep_latency_seconds',
    'Expiry sweep duration',
    buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)

# Order metrics
order_attempts = Counter(
    'order_attempts_total',
    'Order creation attempts',
    ['result']  # created, seat_conflict, coupon_conflict, payment_failed, store_error
)

order_latency = Histogram(
    'order_latency_seconds',
    'Order creation latency',
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

coupon_redemptions = Counter(
    'coupon_redemptions_total',
    'Coupon usage increments committed',
    ['rule_type']
)

# Optimistic concurrency metrics
cas_retries = Counter(
    'event_cas_retries_total',
    'Event document writes that lost the version race and were re-evaluated'
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_lock_attempt(result: str):
    """Record lock attempt. Result: locked, conflict, error"""
    lock_attempts.labels(result=result).inc()


def record_release(source: str, count: int):
    if count:
        seats_released.labels(source=source).inc(count)


def record_order_attempt(result: str):
    order_attempts.labels(result=result).inc()


def record_cache_operation(operation: str, hit: bool):
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
