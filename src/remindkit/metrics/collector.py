"""In-process metrics collector.

Counters and gauges for the scheduler, exported in Prometheus text
format (printed by ``remindkit tick`` and logged on daemon shutdown).
"""

from __future__ import annotations

import threading
import time


class MetricsCollector:
    """Thread-safe in-process metrics collector."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, int] = {}
        self._gauges: dict[str, float] = {}
        self._start_time = time.time()

    def increment(self, name: str, amount: int = 1, labels: dict | None = None) -> None:
        key = self._make_key(name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + amount

    def set_gauge(self, name: str, value: float, labels: dict | None = None) -> None:
        key = self._make_key(name, labels)
        with self._lock:
            self._gauges[key] = value

    def get(self, name: str, labels: dict | None = None) -> int:
        """Current value of a counter (0 if never incremented)."""
        key = self._make_key(name, labels)
        with self._lock:
            return self._counters.get(key, 0)

    def get_gauge(self, name: str, labels: dict | None = None) -> float | None:
        key = self._make_key(name, labels)
        with self._lock:
            return self._gauges.get(key)

    def export(self) -> str:
        """Export all metrics in Prometheus text format."""
        lines = [
            "# HELP remindkit_uptime_seconds Time since process start",
            "# TYPE remindkit_uptime_seconds gauge",
            f"remindkit_uptime_seconds {time.time() - self._start_time:.1f}",
            "",
        ]

        with self._lock:
            for kind, series in (("counter", self._counters), ("gauge", self._gauges)):
                grouped: dict[str, list[tuple[str, float]]] = {}
                for key, value in sorted(series.items()):
                    grouped.setdefault(key.split("{")[0], []).append((key, value))
                for name, entries in sorted(grouped.items()):
                    lines.append(f"# TYPE {name} {kind}")
                    lines.extend(f"{key} {value}" for key, value in entries)
                    lines.append("")

        return "\n".join(lines) + "\n"

    @staticmethod
    def _make_key(name: str, labels: dict | None) -> str:
        if not labels:
            return name
        label_str = ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"
