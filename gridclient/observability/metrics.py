"""
Metrics Collector: Prometheus-Compatible Client Metrics

Provides:
- Counter, Gauge and Histogram primitives with label dimensions
- A registry exporting Prometheus text format
- ClientMetrics: the fixed metric set recorded by container sessions
  (row operations, commits, aborts, lock waits, operation latency)
"""

from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Sequence


@dataclass(frozen=True)
class MetricLabels:
    """Immutable label set for metric dimensions."""
    labels: tuple[tuple[str, str], ...]

    @classmethod
    def from_dict(cls, d: dict[str, str]) -> MetricLabels:
        return cls(labels=tuple(sorted(d.items())))

    def to_dict(self) -> dict[str, str]:
        return dict(self.labels)


class _Metric:
    __slots__ = ("_name", "_help", "_label_names", "_lock")

    def __init__(self, name: str, label_names: Sequence[str], help_text: str) -> None:
        self._name = name
        self._help = help_text
        self._label_names = tuple(label_names)
        self._lock = threading.Lock()

    def _make_key(self, labels: dict[str, str]) -> MetricLabels:
        return MetricLabels.from_dict({k: str(labels.get(k, "")) for k in self._label_names})

    @property
    def name(self) -> str:
        return self._name

    @property
    def help_text(self) -> str:
        return self._help


class Counter(_Metric):
    """
    Monotonically increasing counter.

    Usage:
        ops = Counter("gridclient_row_operations_total", ["operation"])
        ops.inc(operation="put")
    """

    __slots__ = ("_values",)

    def __init__(self, name: str, label_names: Sequence[str] = (), help_text: str = "") -> None:
        super().__init__(name, label_names, help_text)
        self._values: dict[MetricLabels, float] = defaultdict(float)

    def inc(self, value: float = 1.0, **labels: str) -> None:
        if value < 0:
            raise ValueError("Counter increments must be non-negative")
        key = self._make_key(labels)
        with self._lock:
            self._values[key] += value

    def get(self, **labels: str) -> float:
        key = self._make_key(labels)
        with self._lock:
            return self._values.get(key, 0.0)

    def collect(self) -> Iterator[tuple[dict[str, str], float]]:
        with self._lock:
            items = list(self._values.items())
        for key, value in items:
            yield (key.to_dict(), value)


class Gauge(_Metric):
    """Gauge metric that can go up and down."""

    __slots__ = ("_values",)

    def __init__(self, name: str, label_names: Sequence[str] = (), help_text: str = "") -> None:
        super().__init__(name, label_names, help_text)
        self._values: dict[MetricLabels, float] = {}

    def set(self, value: float, **labels: str) -> None:
        key = self._make_key(labels)
        with self._lock:
            self._values[key] = value

    def inc(self, value: float = 1.0, **labels: str) -> None:
        key = self._make_key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + value

    def dec(self, value: float = 1.0, **labels: str) -> None:
        self.inc(-value, **labels)

    def get(self, **labels: str) -> float:
        key = self._make_key(labels)
        with self._lock:
            return self._values.get(key, 0.0)

    def collect(self) -> Iterator[tuple[dict[str, str], float]]:
        with self._lock:
            items = list(self._values.items())
        for key, value in items:
            yield (key.to_dict(), value)


class Histogram(_Metric):
    """
    Histogram with cumulative buckets, sum and count.

    Usage:
        latency = Histogram("gridclient_operation_seconds", ["operation"])
        latency.observe(0.004, operation="commit")
    """

    __slots__ = ("_buckets", "_bucket_counts", "_sums", "_counts")

    DEFAULT_BUCKETS = (
        0.0005, 0.001, 0.005, 0.01, 0.025, 0.05,
        0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf"),
    )

    def __init__(
        self,
        name: str,
        label_names: Sequence[str] = (),
        help_text: str = "",
        buckets: Optional[Sequence[float]] = None,
    ) -> None:
        super().__init__(name, label_names, help_text)
        self._buckets = tuple(sorted(buckets or self.DEFAULT_BUCKETS))
        if self._buckets[-1] != float("inf"):
            self._buckets = self._buckets + (float("inf"),)
        self._bucket_counts: dict[MetricLabels, list[int]] = {}
        self._sums: dict[MetricLabels, float] = defaultdict(float)
        self._counts: dict[MetricLabels, int] = defaultdict(int)

    def observe(self, value: float, **labels: str) -> None:
        key = self._make_key(labels)
        with self._lock:
            counts = self._bucket_counts.setdefault(key, [0] * len(self._buckets))
            for i, bound in enumerate(self._buckets):
                if value <= bound:
                    counts[i] += 1
            self._sums[key] += value
            self._counts[key] += 1

    def count(self, **labels: str) -> int:
        key = self._make_key(labels)
        with self._lock:
            return self._counts.get(key, 0)

    def collect(self) -> Iterator[dict[str, Any]]:
        with self._lock:
            snapshot = [
                (key, list(counts), self._sums.get(key, 0.0), self._counts.get(key, 0))
                for key, counts in self._bucket_counts.items()
            ]
        for key, counts, total, count in snapshot:
            yield {
                "labels": key.to_dict(),
                "buckets": list(zip(self._buckets, counts)),
                "sum": total,
                "count": count,
            }


class MetricsCollector:
    """
    Central registry for all metrics.

    Usage:
        collector = MetricsCollector()
        commits = collector.counter("gridclient_commits_total")
        output = collector.export_prometheus()
    """

    __slots__ = ("_counters", "_gauges", "_histograms", "_lock")

    _instance: Optional[MetricsCollector] = None

    def __init__(self) -> None:
        self._counters: dict[str, Counter] = {}
        self._gauges: dict[str, Gauge] = {}
        self._histograms: dict[str, Histogram] = {}
        self._lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> MetricsCollector:
        """Process-wide default registry."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def counter(self, name: str, label_names: Sequence[str] = (), help_text: str = "") -> Counter:
        with self._lock:
            if name not in self._counters:
                self._counters[name] = Counter(name, label_names, help_text)
            return self._counters[name]

    def gauge(self, name: str, label_names: Sequence[str] = (), help_text: str = "") -> Gauge:
        with self._lock:
            if name not in self._gauges:
                self._gauges[name] = Gauge(name, label_names, help_text)
            return self._gauges[name]

    def histogram(
        self,
        name: str,
        label_names: Sequence[str] = (),
        help_text: str = "",
        buckets: Optional[Sequence[float]] = None,
    ) -> Histogram:
        with self._lock:
            if name not in self._histograms:
                self._histograms[name] = Histogram(name, label_names, help_text, buckets)
            return self._histograms[name]

    def export_prometheus(self) -> str:
        """Export all metrics in Prometheus text format."""
        lines: list[str] = []

        for name, counter in self._counters.items():
            if counter.help_text:
                lines.append(f"# HELP {name} {counter.help_text}")
            lines.append(f"# TYPE {name} counter")
            for labels, value in counter.collect():
                lines.append(f"{name}{self._format_labels(labels)} {value}")

        for name, gauge in self._gauges.items():
            if gauge.help_text:
                lines.append(f"# HELP {name} {gauge.help_text}")
            lines.append(f"# TYPE {name} gauge")
            for labels, value in gauge.collect():
                lines.append(f"{name}{self._format_labels(labels)} {value}")

        for name, histogram in self._histograms.items():
            if histogram.help_text:
                lines.append(f"# HELP {name} {histogram.help_text}")
            lines.append(f"# TYPE {name} histogram")
            for data in histogram.collect():
                labels = data["labels"]
                for bound, count in data["buckets"]:
                    bound_str = "+Inf" if bound == float("inf") else str(bound)
                    bucket_labels = self._format_labels({**labels, "le": bound_str})
                    lines.append(f"{name}_bucket{bucket_labels} {count}")
                label_str = self._format_labels(labels)
                lines.append(f"{name}_sum{label_str} {data['sum']}")
                lines.append(f"{name}_count{label_str} {data['count']}")

        return "\n".join(lines)

    @staticmethod
    def _format_labels(labels: dict[str, str]) -> str:
        if not labels:
            return ""
        pairs = [f'{k}="{v}"' for k, v in sorted(labels.items())]
        return "{" + ",".join(pairs) + "}"


class ClientMetrics:
    """
    The metric set recorded by container sessions.

    A disabled instance keeps the same interface but records nothing.
    """

    __slots__ = (
        "enabled",
        "row_operations",
        "commits",
        "aborts",
        "timeouts",
        "lock_wait_seconds",
        "operation_seconds",
        "open_sessions",
        "dropped_notifications",
    )

    def __init__(self, collector: Optional[MetricsCollector] = None, enabled: bool = True) -> None:
        collector = collector or MetricsCollector.get_instance()
        self.enabled = enabled
        self.row_operations = collector.counter(
            "gridclient_row_operations_total", ["container", "operation"], "Row operations issued"
        )
        self.commits = collector.counter(
            "gridclient_commits_total", ["container"], "Transactions committed"
        )
        self.aborts = collector.counter(
            "gridclient_aborts_total", ["container", "reason"], "Transactions aborted"
        )
        self.timeouts = collector.counter(
            "gridclient_timeouts_total", ["container"], "Transaction or lock deadlines exceeded"
        )
        self.lock_wait_seconds = collector.histogram(
            "gridclient_lock_wait_seconds", ["container"], "Time spent acquiring update locks"
        )
        self.operation_seconds = collector.histogram(
            "gridclient_operation_seconds", ["operation"], "Container operation latency"
        )
        self.open_sessions = collector.gauge(
            "gridclient_open_sessions", ["container"], "Open container sessions"
        )
        self.dropped_notifications = collector.counter(
            "gridclient_dropped_notifications_total", ["container"], "Trigger notifications not delivered"
        )

    def row_operation(self, container: str, operation: str) -> None:
        if self.enabled:
            self.row_operations.inc(container=container, operation=operation)

    def committed(self, container: str) -> None:
        if self.enabled:
            self.commits.inc(container=container)

    def aborted(self, container: str, reason: str) -> None:
        if self.enabled:
            self.aborts.inc(container=container, reason=reason)

    def timed_out(self, container: str) -> None:
        if self.enabled:
            self.timeouts.inc(container=container)

    def lock_waited(self, container: str, seconds: float) -> None:
        if self.enabled:
            self.lock_wait_seconds.observe(seconds, container=container)

    def observe_operation(self, operation: str, seconds: float) -> None:
        if self.enabled:
            self.operation_seconds.observe(seconds, operation=operation)

    def session_opened(self, container: str) -> None:
        if self.enabled:
            self.open_sessions.inc(container=container)

    def session_closed(self, container: str) -> None:
        if self.enabled:
            self.open_sessions.dec(container=container)

    def notification_dropped(self, container: str) -> None:
        if self.enabled:
            self.dropped_notifications.inc(container=container)
