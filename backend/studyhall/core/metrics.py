"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Seat reservation metrics
seat_reservations = Counter(
    'seat_reservations_total',
    'Seat reservation attempts',
    ['result']  # reserved, conflict, not_found, error
)

seat_locks_active = Gauge(
    'seat_locks_active',
    'Seat claims currently held in the lock arena'
)

# Scheduler metrics
scheduler_ticks = Counter(
    'scheduler_ticks_total',
    'Reconciliation ticks',
    ['outcome']  # completed, aborted, skipped
)

scheduler_tick_duration = Histogram(
    'scheduler_tick_duration_seconds',
    'Reconciliation tick duration',
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 15.0, 60.0]
)

scheduler_transitions = Counter(
    'scheduler_transitions_total',
    'Membership state transitions applied by the scheduler',
    ['transition']  # paid_to_due, due_to_expired, paid_to_expired, terminated
)

# Notification metrics
notifications = Counter(
    'notifications_total',
    'Notifications dispatched',
    ['category', 'result']  # sent, failed, skipped
)

# Billing metrics
payments_recorded = Counter(
    'payments_recorded_total',
    'Payments recorded',
    ['cycle']  # full, partial
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_reservation(result: str):
    """Record reservation attempt. Result: reserved, conflict, not_found, error"""
    seat_reservations.labels(result=result).inc()


def record_tick(outcome: str):
    scheduler_ticks.labels(outcome=outcome).inc()


def record_transition(transition: str):
    scheduler_transitions.labels(transition=transition).inc()


def record_notification(category: str, result: str):
    """Record notification dispatch. Result: sent, failed, skipped"""
    notifications.labels(category=category, result=result).inc()


def record_payment(cycle: str):
    payments_recorded.labels(cycle=cycle).inc()
