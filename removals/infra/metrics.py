# removals/infra/metrics.py
from __future__ import annotations
import time
from collections import defaultdict
from threading import Lock
from typing import Dict
from dataclasses import dataclass, field
from removals.infra.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class Counter:
    value: int = 0

    def inc(self, amount: int = 1) -> None:
        self.value += amount


@dataclass
class Histogram:
    """Distribution of observed values (durations, quote totals)."""
    values: list[float] = field(default_factory=list)

    def observe(self, value: float) -> None:
        self.values.append(value)

    def get_stats(self) -> dict:
        if not self.values:
            return {"count": 0, "min": 0, "max": 0, "avg": 0, "p50": 0, "p95": 0}

        ordered = sorted(self.values)
        count = len(ordered)

        def percentile(p: float) -> float:
            return ordered[min(int(count * p), count - 1)]

        return {
            "count": count,
            "min": ordered[0],
            "max": ordered[-1],
            "avg": sum(ordered) / count,
            "p50": percentile(0.50),
            "p95": percentile(0.95),
        }


class MetricsCollector:
    """In-process counters and histograms, keyed by name plus sorted labels."""

    def __init__(self):
        self._counters: Dict[str, Counter] = defaultdict(Counter)
        self._histograms: Dict[str, Histogram] = defaultdict(Histogram)
        self._lock = Lock()

    def inc_counter(self, name: str, amount: int = 1, labels: dict | None = None) -> None:
        key = self._make_key(name, labels)
        with self._lock:
            self._counters[key].inc(amount)

    def observe_histogram(self, name: str, value: float, labels: dict | None = None) -> None:
        key = self._make_key(name, labels)
        with self._lock:
            self._histograms[key].observe(value)

    def get_metrics(self) -> dict:
        with self._lock:
            counters = {k: v.value for k, v in self._counters.items()}
            histograms = {k: v.get_stats() for k, v in self._histograms.items()}
        return {"counters": counters, "histograms": histograms}

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._histograms.clear()
        logger.info("Metrics reset")

    @staticmethod
    def _make_key(name: str, labels: dict | None) -> str:
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"


_metrics = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    return _metrics


def inc_counter(name: str, amount: int = 1, **labels) -> None:
    _metrics.inc_counter(name, amount, labels or None)


def observe_histogram(name: str, value: float, **labels) -> None:
    _metrics.observe_histogram(name, value, labels or None)


class Timer:
    """Context manager recording the block's wall time into a histogram."""

    def __init__(self, metric_name: str, **labels):
        self.metric_name = metric_name
        self.labels = labels
        self.start_time: float | None = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is not None:
            observe_histogram(self.metric_name, time.perf_counter() - self.start_time, **self.labels)


class AppMetrics:
    """Quote-calculator metrics."""

    @staticmethod
    def session_created() -> None:
        inc_counter("quote_sessions_created_total")

    @staticmethod
    def session_expired() -> None:
        inc_counter("quote_sessions_expired_total")

    @staticmethod
    def step_advanced(step: str) -> None:
        inc_counter("calculator_steps_advanced_total", step=step)

    @staticmethod
    def step_rejected(step: str, kind: str) -> None:
        inc_counter("calculator_steps_rejected_total", step=step, kind=kind)

    @staticmethod
    def quote_computed(service_type: str, display_total: float) -> None:
        inc_counter("quotes_computed_total", service_type=service_type)
        observe_histogram("quote_display_total_gbp", display_total, service_type=service_type)

    @staticmethod
    def callback_escalated(reason: str) -> None:
        inc_counter("callbacks_escalated_total", reason=reason)

    @staticmethod
    def route_lookup(outcome: str) -> None:
        inc_counter("route_lookups_total", outcome=outcome)

    @staticmethod
    def notification_sent(channel: str, success: bool) -> None:
        inc_counter("operator_notifications_total", channel=channel, success=str(success).lower())

    @staticmethod
    def database_error(operation: str) -> None:
        inc_counter("database_errors_total", operation=operation)

    @staticmethod
    def track_step_time(step: str) -> Timer:
        return Timer("calculator_step_seconds", step=step)
