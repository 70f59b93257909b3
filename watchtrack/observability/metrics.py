"""
In-process metrics: request golden signals plus telemetry counters.

Counters, gauges and histograms live in memory and are exported as
Prometheus text (``/metrics``) or a JSON snapshot (``/metrics/json``).
"""

import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class _Counter:
    value: float = 0.0
    lock: threading.Lock = field(default_factory=threading.Lock)

    def inc(self, amount: float = 1.0) -> None:
        with self.lock:
            self.value += amount


@dataclass
class _Gauge:
    value: float = 0.0
    lock: threading.Lock = field(default_factory=threading.Lock)

    def add(self, amount: float) -> None:
        with self.lock:
            self.value += amount


@dataclass
class _Histogram:
    """Observations bucketed for latency reporting (ms)."""

    count: int = 0
    total: float = 0.0
    buckets: Dict[float, int] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)

    DEFAULT_BUCKETS: tuple = (5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000)

    def __post_init__(self):
        if not self.buckets:
            self.buckets = {b: 0 for b in self.DEFAULT_BUCKETS}
            self.buckets[float("inf")] = 0

    def observe(self, value: float) -> None:
        with self.lock:
            self.count += 1
            self.total += value
            for boundary in self.buckets:
                if value <= boundary:
                    self.buckets[boundary] += 1


def _key(name: str, labels: Optional[Dict[str, str]]) -> str:
    if not labels:
        return name
    rendered = ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()))
    return f"{name}{{{rendered}}}"


class MetricsCollector:
    """Thread-safe in-process metrics store (singleton).

    Usage::

        mc = MetricsCollector()
        mc.inc("player_events_total", labels={"result": "accepted"})
        mc.observe("http_request_duration_ms", 42.5, labels={"path": "/watch-progress"})
    """

    _instance: Optional["MetricsCollector"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "MetricsCollector":
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self) -> None:
        if self._initialized:
            return
        self._initialized = True
        self._counters: Dict[str, _Counter] = defaultdict(_Counter)
        self._gauges: Dict[str, _Gauge] = defaultdict(_Gauge)
        self._histograms: Dict[str, _Histogram] = defaultdict(_Histogram)
        self._start_time = time.time()

    @property
    def uptime_seconds(self) -> float:
        return time.time() - self._start_time

    def inc(self, name: str, amount: float = 1.0, *,
            labels: Optional[Dict[str, str]] = None) -> None:
        self._counters[_key(name, labels)].inc(amount)

    def gauge_add(self, name: str, amount: float, *,
                  labels: Optional[Dict[str, str]] = None) -> None:
        self._gauges[_key(name, labels)].add(amount)

    def observe(self, name: str, value: float, *,
                labels: Optional[Dict[str, str]] = None) -> None:
        self._histograms[_key(name, labels)].observe(value)

    def counter_value(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        counter = self._counters.get(_key(name, labels))
        return counter.value if counter else 0.0

    def gauge_value(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        gauge = self._gauges.get(_key(name, labels))
        return gauge.value if gauge else 0.0

    def snapshot(self) -> Dict[str, Any]:
        """Return a JSON-friendly snapshot of all metrics."""
        data: Dict[str, Any] = {
            "uptime_seconds": round(self.uptime_seconds, 1),
            "counters": {k: c.value for k, c in self._counters.items()},
            "gauges": {k: g.value for k, g in self._gauges.items()},
            "histograms": {},
        }
        for k, h in self._histograms.items():
            data["histograms"][k] = {
                "count": h.count,
                "sum": round(h.total, 2),
                "avg": round(h.total / h.count, 2) if h.count else 0,
            }
        return data

    def prometheus_exposition(self) -> str:
        """Return metrics in Prometheus text exposition format."""
        lines: List[str] = [
            "# HELP uptime_seconds Process uptime in seconds",
            "# TYPE uptime_seconds gauge",
            f"uptime_seconds {self.uptime_seconds:.1f}",
        ]
        for key, c in sorted(self._counters.items()):
            lines.append(f"{key} {c.value}")
        for key, g in sorted(self._gauges.items()):
            lines.append(f"{key} {g.value}")
        for key, h in sorted(self._histograms.items()):
            base, _, rest = key.partition("{")
            labels = rest.rstrip("}")
            for boundary, count in sorted(h.buckets.items()):
                le = "+Inf" if boundary == float("inf") else str(boundary)
                lbl = f'{labels},le="{le}"' if labels else f'le="{le}"'
                lines.append(f"{base}_bucket{{{lbl}}} {count}")
            suffix = f"{{{labels}}}" if labels else ""
            lines.append(f"{base}_sum{suffix} {h.total:.2f}")
            lines.append(f"{base}_count{suffix} {h.count}")
        return "\n".join(lines) + "\n"

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton (for tests)."""
        with cls._lock:
            cls._instance = None
