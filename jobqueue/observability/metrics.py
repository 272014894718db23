"""
Prometheus metrics collection.
"""

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    start_http_server,
)

from jobqueue.config import get_settings
from jobqueue.constants import (
    METRIC_JOB_DURATION,
    METRIC_JOBS_COMPLETED,
    METRIC_LOCK_CONTENTION,
    METRIC_LOCKS_ACQUIRED,
    METRIC_LOCKS_CLEARED,
    METRIC_RECURRENCE_PARSE_ERRORS,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the job queue.

    Collects metrics for:
    - Lock acquisition and contention
    - Locks released on shutdown
    - Job completions and execution duration
    - Malformed recurrence specs
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.locks_acquired = Counter(
            METRIC_LOCKS_ACQUIRED,
            "Total number of job locks acquired",
            ["worker_id"],
            registry=self._registry,
        )

        self.lock_contention = Counter(
            METRIC_LOCK_CONTENTION,
            "Total number of lock attempts lost to another worker",
            ["worker_id"],
            registry=self._registry,
        )

        self.locks_cleared = Counter(
            METRIC_LOCKS_CLEARED,
            "Total number of locks released on worker shutdown",
            ["worker_id"],
            registry=self._registry,
        )

        self.jobs_completed = Counter(
            METRIC_JOBS_COMPLETED,
            "Total number of jobs run",
            ["status", "periodic"],
            registry=self._registry,
        )

        self.job_duration = Histogram(
            METRIC_JOB_DURATION,
            "Job execution duration in seconds",
            ["status"],
            buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
            registry=self._registry,
        )

        self.recurrence_parse_errors = Counter(
            METRIC_RECURRENCE_PARSE_ERRORS,
            "Total number of periodic jobs skipped for a malformed time spec",
            registry=self._registry,
        )

    def record_lock_attempt(self, worker_id: str, acquired: bool) -> None:
        """Record the outcome of a lock attempt."""
        if acquired:
            self.locks_acquired.labels(worker_id=worker_id).inc()
        else:
            self.lock_contention.labels(worker_id=worker_id).inc()

    def record_locks_cleared(self, worker_id: str, count: int) -> None:
        """Record locks released by a stopping worker."""
        self.locks_cleared.labels(worker_id=worker_id).inc(count)

    def record_job_completed(
        self,
        status: str,
        periodic: bool,
        duration_seconds: float,
    ) -> None:
        """Record a job run."""
        self.jobs_completed.labels(status=status, periodic=str(periodic).lower()).inc()
        self.job_duration.labels(status=status).observe(duration_seconds)

    def record_recurrence_parse_error(self) -> None:
        """Record a periodic job skipped because of a malformed time spec."""
        self.recurrence_parse_errors.inc()


def setup_metrics() -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance, creating it on first use.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics


def start_metrics_server(port: int | None = None) -> None:
    """
    Expose metrics over HTTP for Prometheus to scrape.

    Args:
        port: Port to listen on. Defaults to the configured prometheus_port.
    """
    start_http_server(port or get_settings().prometheus_port)
