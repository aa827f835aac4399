# Notification pipeline monitoring
# Prometheus metrics and the observer port the orchestrator reports to

import logging
import time
from typing import Protocol

import psutil
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST

from notification_service.core.exceptions import NotFoundError

logger = logging.getLogger(__name__)

# Pipeline metrics
notifications_total = Counter(
    'notifications_processed_total',
    'Notifications processed by the dispatcher',
    ['kind', 'channel', 'outcome']
)
notification_duration = Histogram(
    'notification_pipeline_duration_seconds',
    'Duration of one dispatch pipeline run',
    ['kind', 'channel']
)
notifications_in_flight = Gauge(
    'notifications_in_flight',
    'Pipeline runs currently executing',
    ['kind']
)
persistence_warnings = Counter(
    'notification_persistence_warnings_total',
    'Final status updates that could not be written',
    ['kind', 'channel']
)

# Event stream metrics
stream_messages = Counter(
    'stream_messages_total',
    'Stream entries handled by the consumer',
    ['stream', 'result']
)

# Repository metrics
repository_operation_total = Counter(
    'notification_repository_operation_total',
    'Total number of repository operations',
    ['backend', 'operation', 'status']
)
repository_operation_duration = Histogram(
    'notification_repository_operation_duration_seconds',
    'Duration of repository operations in seconds',
    ['backend', 'operation', 'status'],
    buckets=(.005, .01, .025, .05, .1, .25, .5, 1)
)

# Store / process metrics
store_healthy = Gauge('store_healthy', 'Whether the last store health check passed')
memory_usage = Gauge('memory_usage_bytes', 'Memory usage in bytes')
cpu_usage = Gauge('cpu_usage_percent', 'CPU usage percentage')


class NotificationObserver(Protocol):
    """Checkpoints reported by the dispatch pipeline

    ``kind`` is the event type for event-driven sends, ``"direct"`` for direct
    sends and ``"retry"`` for caller-driven retries; ``channel`` is the
    notification type.
    """

    def on_start(self, kind: str, channel: str) -> None: ...

    def on_success(self, kind: str, channel: str, duration: float) -> None: ...

    def on_failure(self, kind: str, channel: str, error_kind: str, duration: float) -> None: ...

    def on_persistence_warning(self, kind: str, channel: str) -> None: ...


class NullObserver:
    """Observer that records nothing"""

    def on_start(self, kind: str, channel: str) -> None:
        pass

    def on_success(self, kind: str, channel: str, duration: float) -> None:
        pass

    def on_failure(self, kind: str, channel: str, error_kind: str, duration: float) -> None:
        pass

    def on_persistence_warning(self, kind: str, channel: str) -> None:
        pass


class PrometheusObserver:
    """Observer backed by the process-wide Prometheus collectors"""

    def on_start(self, kind: str, channel: str) -> None:
        notifications_in_flight.labels(kind=kind).inc()

    def on_success(self, kind: str, channel: str, duration: float) -> None:
        notifications_in_flight.labels(kind=kind).dec()
        notifications_total.labels(kind=kind, channel=channel, outcome="sent").inc()
        notification_duration.labels(kind=kind, channel=channel).observe(duration)

    def on_failure(self, kind: str, channel: str, error_kind: str, duration: float) -> None:
        notifications_in_flight.labels(kind=kind).dec()
        notifications_total.labels(kind=kind, channel=channel, outcome=error_kind).inc()
        notification_duration.labels(kind=kind, channel=channel).observe(duration)

    def on_persistence_warning(self, kind: str, channel: str) -> None:
        persistence_warnings.labels(kind=kind, channel=channel).inc()
        logger.warning(f"Persistence warning recorded for {kind}/{channel}")


class RepositoryOperationContext:
    """Time one repository call and count it by outcome"""

    def __init__(self, backend: str, operation: str):
        self.backend = backend
        self.operation = operation
        self.start_time = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.perf_counter() - self.start_time
        if exc_type is None:
            status = "success"
        elif issubclass(exc_type, NotFoundError):
            status = "not_found"
        else:
            status = "error"
        repository_operation_total.labels(
            backend=self.backend, operation=self.operation, status=status
        ).inc()
        repository_operation_duration.labels(
            backend=self.backend, operation=self.operation, status=status
        ).observe(duration)
        if status == "not_found":
            logger.debug(f"{self.backend} {self.operation}: {exc_val}")
        elif status == "error":
            logger.error(f"{self.backend} {self.operation} failed after {duration:.3f}s: {exc_val}")
        return False


def collect_system_metrics() -> None:
    """Collect system-level metrics"""
    memory_usage.set(psutil.virtual_memory().used)
    cpu_usage.set(psutil.cpu_percent(interval=None))


def render_metrics() -> bytes:
    """Current metrics in Prometheus exposition format"""
    collect_system_metrics()
    return generate_latest()


__all__ = [
    'CONTENT_TYPE_LATEST',
    'NotificationObserver',
    'NullObserver',
    'PrometheusObserver',
    'RepositoryOperationContext',
    'render_metrics',
    'store_healthy',
    'stream_messages',
]
