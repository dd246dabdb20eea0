"""
Metrics collection using Prometheus.
"""
from prometheus_client import Counter, generate_latest, REGISTRY


meetings_created_total = Counter(
    'meetings_created_total',
    'Meetings created through the API, one per series',
    ['kind']
)

meeting_occurrences_total = Counter(
    'meeting_occurrences_generated_total',
    'Child occurrences materialized for recurring series',
    ['pattern']
)

meetings_deleted_total = Counter(
    'meetings_deleted_total',
    'Meetings deleted, split by whether they were still upcoming',
    ['state']
)

notifications_total = Counter(
    'notifications_total',
    'Notification events dispatched',
    ['event_type', 'status']
)

errors_total = Counter(
    'errors_total',
    'Total number of errors by type',
    ['error_type', 'component']
)


def get_metrics() -> bytes:
    """
    Get current metrics in Prometheus format.

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def record_error(error_type: str, component: str):
    """
    Record an error occurrence.

    Args:
        error_type: Type of error (e.g., 'PersistenceError')
        component: Component where error occurred (e.g., 'notification_service')
    """
    errors_total.labels(error_type=error_type, component=component).inc()
