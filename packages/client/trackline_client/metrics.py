"""
Metrics collection and Prometheus-compatible exposition.

Tracks optimistic mutation counters and the pending gauge.
"""

from __future__ import annotations

import time
from collections import defaultdict
from typing import Any

PREFIX = "client_"


class MetricsCollector:
    """
    Counters and gauges with Prometheus text format export.
    """

    def __init__(self) -> None:
        self._counters: dict[str, int] = defaultdict(int)
        self._gauges: dict[str, float] = {}
        self._start_time = time.time()

    def inc(self, name: str, value: int = 1) -> None:
        self._counters[PREFIX + name] += value

    def set_gauge(self, name: str, value: float) -> None:
        self._gauges[PREFIX + name] = value

    def add_gauge(self, name: str, delta: float) -> None:
        """Move a gauge up or down, starting from zero."""
        full = PREFIX + name
        self._gauges[full] = self._gauges.get(full, 0) + delta

    def get(self, name: str) -> int | float:
        full = PREFIX + name
        if full in self._gauges:
            return self._gauges[full]
        return self._counters.get(full, 0)

    def to_prometheus(self) -> str:
        """Export all metrics in Prometheus text format."""
        lines = []
        for name, value in sorted(self._counters.items()):
            lines.append(f"# TYPE {name} counter")
            lines.append(f"{name} {value}")
        for name, value in sorted(self._gauges.items()):
            lines.append(f"# TYPE {name} gauge")
            lines.append(f"{name} {value}")
        uptime = time.time() - self._start_time
        lines.append(f"# TYPE {PREFIX}uptime_seconds gauge")
        lines.append(f"{PREFIX}uptime_seconds {uptime:.1f}")
        return "\n".join(lines) + "\n"

    def to_dict(self) -> dict[str, Any]:
        return {
            "counters": dict(self._counters),
            "gauges": dict(self._gauges),
            "uptime_seconds": time.time() - self._start_time,
        }
