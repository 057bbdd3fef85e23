"""
Prometheus Metrics Collector

Lightweight metrics collection for observability without external dependencies.
Generates Prometheus text exposition format (text/plain; version=0.0.4).

The registry is a process-wide sink. Delivery components receive it as a
constructor argument and only ever call inc/set/observe on it.
"""
import time
import threading
from typing import Dict, List, Optional
from dataclasses import dataclass, field


@dataclass
class MetricValue:
    """Single metric value with optional labels."""
    value: float
    labels: Dict[str, str] = field(default_factory=dict)


class _LabeledMetric:
    """Shared label handling for counters and gauges."""

    kind = "untyped"

    def __init__(self, name: str, description: str, labels: Optional[List[str]] = None):
        self.name = name
        self.description = description
        self.label_names = labels or []
        self._values: Dict[tuple, float] = {}
        self._lock = threading.Lock()

    def _label_key(self, labels: Dict[str, str]) -> tuple:
        """Create hashable key from labels."""
        return tuple(sorted((k, str(v)) for k, v in labels.items()))

    def _add(self, amount: float, labels: Dict[str, str]) -> None:
        key = self._label_key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + amount

    def value(self, **labels: str) -> float:
        """Current value for a label set (0 when never touched)."""
        with self._lock:
            return self._values.get(self._label_key(labels), 0.0)

    def collect(self) -> List[MetricValue]:
        """Collect all metric values."""
        with self._lock:
            return [
                MetricValue(value=v, labels=dict(k))
                for k, v in self._values.items()
            ]


class Counter(_LabeledMetric):
    """
    Prometheus Counter metric.

    A counter is a cumulative metric that only goes up.
    Used for: received/sent/failed messages, retry attempts, backend responses.
    """

    kind = "counter"

    def inc(self, amount: float = 1.0, **labels: str) -> None:
        """Increment counter by amount."""
        if amount < 0:
            raise ValueError("Counters can only increase")
        self._add(amount, labels)


class Gauge(_LabeledMetric):
    """
    Prometheus Gauge metric.

    A gauge can go up and down.
    Used for: pending messages, in-flight deliveries.
    """

    kind = "gauge"

    def set(self, value: float, **labels: str) -> None:
        """Set gauge to value."""
        key = self._label_key(labels)
        with self._lock:
            self._values[key] = value

    def inc(self, amount: float = 1.0, **labels: str) -> None:
        self._add(amount, labels)

    def dec(self, amount: float = 1.0, **labels: str) -> None:
        self._add(-amount, labels)


class Histogram:
    """
    Prometheus Histogram metric.

    Samples observations and counts them in cumulative buckets.
    Used for: delivery latency, payload sizes.
    """

    kind = "histogram"

    # Default buckets suitable for delivery latencies (in seconds)
    DEFAULT_BUCKETS = (0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)

    def __init__(
        self,
        name: str,
        description: str,
        labels: Optional[List[str]] = None,
        buckets: Optional[tuple] = None
    ):
        self.name = name
        self.description = description
        self.label_names = labels or []
        self.buckets = tuple(sorted(buckets or self.DEFAULT_BUCKETS))
        self._values: Dict[tuple, Dict] = {}
        self._lock = threading.Lock()

    def observe(self, value: float, **labels: str) -> None:
        """Record an observation."""
        key = tuple(sorted(labels.items()))
        with self._lock:
            data = self._values.setdefault(
                key,
                {"buckets": {b: 0 for b in self.buckets}, "sum": 0.0, "count": 0}
            )
            data["sum"] += value
            data["count"] += 1
            for bucket in self.buckets:
                if value <= bucket:
                    data["buckets"][bucket] += 1

    def count(self, **labels: str) -> int:
        with self._lock:
            data = self._values.get(tuple(sorted(labels.items())))
            return data["count"] if data else 0

    def collect(self) -> List[MetricValue]:
        """Collect bucket, sum and count samples (sum/count tagged via `_metric`)."""
        result = []
        with self._lock:
            for key, data in self._values.items():
                base_labels = dict(key)
                for bucket in self.buckets:
                    result.append(MetricValue(
                        value=data["buckets"][bucket],
                        labels={**base_labels, "le": str(bucket)}
                    ))
                result.append(MetricValue(value=data["count"], labels={**base_labels, "le": "+Inf"}))
                result.append(MetricValue(value=data["sum"], labels={**base_labels, "_metric": "sum"}))
                result.append(MetricValue(value=data["count"], labels={**base_labels, "_metric": "count"}))
        return result


class Timer:
    """Context manager for timing code blocks."""

    def __init__(self, histogram: Histogram, **labels: str):
        self.histogram = histogram
        self.labels = labels
        self.start_time: Optional[float] = None
        self.elapsed: float = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args) -> None:
        if self.start_time is not None:
            self.elapsed = time.perf_counter() - self.start_time
            self.histogram.observe(self.elapsed, **self.labels)


class MetricsRegistry:
    """
    Central registry for all relay metrics.

    Provides singleton access and Prometheus text format export.
    """

    _instance: Optional["MetricsRegistry"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "MetricsRegistry":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._metrics: Dict[str, Counter | Gauge | Histogram] = {}
        self._initialized = True
        self._setup_metrics()

    def _setup_metrics(self) -> None:
        """Initialize all relay metrics."""

        # ============================================
        # INGESTION
        # ============================================
        self.messages_received = self.counter(
            "relay_messages_received_total",
            "Total number of messages accepted for relay"
        )

        self.payload_size = self.histogram(
            "relay_payload_size_bytes",
            "Size of relayed payloads in bytes",
            ["direction"],
            buckets=(100.0, 500.0, 1000.0, 5000.0, 10000.0, 50000.0, 100000.0, 500000.0, 1000000.0)
        )

        # ============================================
        # DELIVERY
        # ============================================
        self.messages_sent = self.counter(
            "relay_messages_sent_total",
            "Total number of messages successfully delivered downstream"
        )

        self.messages_failed = self.counter(
            "relay_messages_failed_total",
            "Total number of failed delivery cycles",
            ["reason"]
        )

        self.retry_attempts = self.counter(
            "relay_retry_attempts_total",
            "Total number of delivery attempts made after a retryable failure"
        )

        self.backend_response_status = self.counter(
            "relay_backend_response_status_total",
            "Total backend responses by HTTP status code",
            ["status_code"]
        )

        self.status_persist_errors = self.counter(
            "relay_status_persist_errors_total",
            "Delivery cycles whose terminal status could not be stored"
        )

        self.processing_latency = self.histogram(
            "relay_processing_latency_seconds",
            "Latency of relay operations",
            ["operation"]
        )

        # ============================================
        # RETRY SWEEP
        # ============================================
        self.messages_pending = self.gauge(
            "relay_messages_pending",
            "Number of messages pending delivery"
        )

        self.sweeps_total = self.counter(
            "relay_sweeps_total",
            "Total retry sweep iterations"
        )

        self.sweep_skipped = self.counter(
            "relay_sweep_skipped_total",
            "Messages skipped by the hard attempt ceiling"
        )

    def counter(
        self,
        name: str,
        description: str,
        labels: Optional[List[str]] = None
    ) -> Counter:
        """Create and register a counter."""
        metric = Counter(name, description, labels)
        self._metrics[name] = metric
        return metric

    def gauge(
        self,
        name: str,
        description: str,
        labels: Optional[List[str]] = None
    ) -> Gauge:
        """Create and register a gauge."""
        metric = Gauge(name, description, labels)
        self._metrics[name] = metric
        return metric

    def histogram(
        self,
        name: str,
        description: str,
        labels: Optional[List[str]] = None,
        buckets: Optional[tuple] = None
    ) -> Histogram:
        """Create and register a histogram."""
        metric = Histogram(name, description, labels, buckets)
        self._metrics[name] = metric
        return metric

    def export(self) -> str:
        """
        Export all metrics in Prometheus text exposition format.

        Format specification:
        https://prometheus.io/docs/instrumenting/exposition_formats/
        """
        lines = []

        for name, metric in self._metrics.items():
            lines.append(f"# HELP {name} {metric.description}")
            lines.append(f"# TYPE {name} {metric.kind}")

            for mv in metric.collect():
                metric_name = name
                if isinstance(metric, Histogram):
                    if "_metric" in mv.labels:
                        metric_name = f"{name}_{mv.labels.pop('_metric')}"
                    elif "le" in mv.labels:
                        metric_name = f"{name}_bucket"

                lines.append(f"{metric_name}{self._format_labels(mv.labels)} {mv.value}")

            lines.append("")

        return "\n".join(lines)

    def _format_labels(self, labels: Dict[str, str]) -> str:
        """Format labels as Prometheus label string."""
        if not labels:
            return ""

        parts = [f'{k}="{v}"' for k, v in sorted(labels.items())]
        return "{" + ",".join(parts) + "}"

    def reset(self) -> None:
        """Reset all metrics. Useful for testing."""
        self._metrics.clear()
        self._setup_metrics()


# Global metrics instance
metrics = MetricsRegistry()
