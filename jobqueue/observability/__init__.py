"""
Observability module.
Contains logging, metrics, and tracing setup.
"""

from jobqueue.observability.logging import setup_logging
from jobqueue.observability.metrics import (
    MetricsCollector,
    get_metrics,
    setup_metrics,
    start_metrics_server,
)
from jobqueue.observability.tracing import get_tracer, setup_tracing

__all__ = [
    "setup_logging",
    "setup_metrics",
    "get_metrics",
    "MetricsCollector",
    "start_metrics_server",
    "setup_tracing",
    "get_tracer",
]
