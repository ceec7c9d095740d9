"""
Observability module: Metrics and structured logging.
"""

from gridclient.observability.metrics import (
    ClientMetrics,
    Counter,
    Gauge,
    Histogram,
    MetricsCollector,
)
from gridclient.observability.logging import (
    JsonFormatter,
    LogLevel,
    StructuredLogger,
    setup_logging,
)

__all__ = [
    "ClientMetrics",
    "Counter",
    "Gauge",
    "Histogram",
    "MetricsCollector",
    "JsonFormatter",
    "LogLevel",
    "StructuredLogger",
    "setup_logging",
]
