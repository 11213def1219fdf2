"""Metrics collection for batch runs."""

import threading
import time
from typing import Dict, Any
from collections import defaultdict


class MetricsCollector:
    """
    Collects counters, timers and samples for a batch run.

    All methods are safe to call from several worker threads at once.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._start_time = time.monotonic()
        self._timers: Dict[str, float] = {}
        self._metrics: Dict[str, list] = defaultdict(list)
        self._counters: Dict[str, int] = defaultdict(int)

    def start_timer(self, name: str) -> None:
        """Start a named timer."""
        with self._lock:
            self._timers[name] = time.monotonic()

    def stop_timer(self, name: str) -> float:
        """
        Stop a named timer and return elapsed time.

        Args:
            name: Timer name

        Returns:
            Elapsed time in seconds

        Raises:
            KeyError: If timer was not started
        """
        with self._lock:
            if name not in self._timers:
                raise KeyError(f"Timer '{name}' was not started")
            elapsed = time.monotonic() - self._timers.pop(name)
            self._metrics[f"{name}_duration"].append(elapsed)
        return elapsed

    def record_metric(self, name: str, value: Any) -> None:
        """Record a metric value."""
        with self._lock:
            self._metrics[name].append(value)

    def increment_counter(self, name: str, amount: int = 1) -> int:
        """Increment a counter and return its new value."""
        with self._lock:
            self._counters[name] += amount
            return self._counters[name]

    def get_counter(self, name: str) -> int:
        """Get counter value."""
        with self._lock:
            return self._counters.get(name, 0)

    def get_metric(self, name: str) -> list:
        """Get all values for a metric."""
        with self._lock:
            return list(self._metrics.get(name, []))

    def get_summary(self) -> Dict[str, Any]:
        """
        Get summary of all metrics.

        Returns:
            Dictionary with metric summaries
        """
        with self._lock:
            counters = dict(self._counters)
            metrics = {name: list(values) for name, values in self._metrics.items()}

        summary = {
            "total_elapsed": self.elapsed_time(),
            "counters": counters,
            "metrics": {}
        }

        for name, values in metrics.items():
            if values and all(isinstance(v, (int, float)) for v in values):
                summary["metrics"][name] = {
                    "count": len(values),
                    "sum": sum(values),
                    "avg": sum(values) / len(values),
                    "min": min(values),
                    "max": max(values),
                }
            elif values:
                summary["metrics"][name] = {"count": len(values), "values": values}

        return summary

    def elapsed_time(self) -> float:
        """Get total elapsed time since initialization."""
        return time.monotonic() - self._start_time

