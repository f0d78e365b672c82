"""
Metrics collection for locator resolution.

Counters and timer series kept in memory for the lifetime of the process.
"""

import threading
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Deque, Dict, Optional


@dataclass
class MetricPoint:
    """A single metric data point."""
    timestamp: datetime
    value: float
    labels: Dict[str, str] = field(default_factory=dict)


class MetricsCollector:
    """Thread-safe metrics collector for resolution operations."""

    def __init__(self, max_samples: int = 1000):
        """
        Initialize metrics collector.

        Args:
            max_samples: How many samples each timer series keeps
        """
        self.max_samples = max_samples
        self._lock = threading.RLock()
        self._counters: Dict[str, int] = defaultdict(int)
        self._timers: Dict[str, Deque[MetricPoint]] = defaultdict(lambda: deque(maxlen=self.max_samples))

    def increment_counter(self, name: str, value: int = 1, labels: Optional[Dict[str, str]] = None):
        """Increment a counter metric."""
        with self._lock:
            self._counters[self._make_key(name, labels)] += value

    def record_timer(self, name: str, seconds: float, labels: Optional[Dict[str, str]] = None):
        """Record a duration sample."""
        with self._lock:
            self._timers[self._make_key(name, labels)].append(MetricPoint(
                timestamp=datetime.now(),
                value=seconds,
                labels=labels or {}
            ))

    def get_counter(self, name: str, labels: Optional[Dict[str, str]] = None) -> int:
        with self._lock:
            return self._counters.get(self._make_key(name, labels), 0)

    def get_timer_stats(self, name: str, labels: Optional[Dict[str, str]] = None) -> Dict[str, float]:
        """Summarize a timer series as count/avg/min/max."""
        with self._lock:
            values = [p.value for p in self._timers.get(self._make_key(name, labels), [])]

        if not values:
            return {"count": 0, "avg": 0.0, "min": 0.0, "max": 0.0}
        return {
            "count": len(values),
            "avg": sum(values) / len(values),
            "min": min(values),
            "max": max(values)
        }

    def get_summary(self) -> Dict[str, Any]:
        """Get all counters and timer summaries."""
        with self._lock:
            counters = dict(self._counters)
            timer_keys = list(self._timers.keys())

        return {
            "counters": counters,
            "timers": {key: self.get_timer_stats(key) for key in timer_keys}
        }

    def reset(self):
        """Drop all collected metrics."""
        with self._lock:
            self._counters.clear()
            self._timers.clear()

    def _make_key(self, name: str, labels: Optional[Dict[str, str]] = None) -> str:
        """Create a key for metric storage."""
        if not labels:
            return name

        label_str = "_".join(f"{k}:{v}" for k, v in sorted(labels.items()))
        return f"{name}_{label_str}"


_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector instance."""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector
