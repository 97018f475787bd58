"""
Metrics Collection Module for Schema Inference

Counters, gauges and duration histograms for model calls, extraction
phases, retries and the circuit breaker. Exported as JSON or Prometheus
text.
"""
from __future__ import annotations

import json
import threading
from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple


Labels = Optional[Dict[str, str]]


class Histogram:
    """Cumulative bucket histogram"""

    DEFAULT_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0)

    def __init__(self, name: str, labels: Labels = None, buckets: Optional[List[float]] = None):
        self.name = name
        self.labels = dict(labels or {})
        self.bounds: Tuple[float, ...] = tuple(sorted(buckets or self.DEFAULT_BUCKETS)) + (float("inf"),)
        self.bucket_counts = [0] * len(self.bounds)
        self.total = 0.0
        self.count = 0
        self._lock = threading.Lock()

    def observe(self, value: float) -> None:
        with self._lock:
            self.total += value
            self.count += 1
            for i, bound in enumerate(self.bounds):
                if value <= bound:
                    self.bucket_counts[i] += 1

    def quantile(self, q: float) -> float:
        """Upper bound of the first bucket covering ``q`` of observations"""
        with self._lock:
            if self.count == 0:
                return 0.0
            needed = q * self.count
            for bound, seen in zip(self.bounds[:-1], self.bucket_counts):
                if seen >= needed:
                    return bound
            return self.bounds[-2]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "labels": self.labels,
            "buckets": {_bound_label(b): c for b, c in zip(self.bounds, self.bucket_counts)},
            "sum": self.total,
            "count": self.count,
            "p50": self.quantile(0.5),
            "p95": self.quantile(0.95),
        }


def _bound_label(bound: float) -> str:
    return "+Inf" if bound == float("inf") else str(bound)


def _metric_key(name: str, labels: Labels = None) -> str:
    if not labels:
        return name
    rendered = ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()))
    return f"{name}{{{rendered}}}"


class MetricsCollector:
    """Process-wide, thread-safe metrics registry"""

    _instance: Optional["MetricsCollector"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "MetricsCollector":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._counters: Dict[str, float] = defaultdict(float)
        self._gauges: Dict[str, float] = {}
        self._histograms: Dict[str, Histogram] = {}
        self._data_lock = threading.Lock()
        self._initialized = True

    def counter(self, name: str, value: float = 1.0, labels: Labels = None) -> None:
        with self._data_lock:
            self._counters[_metric_key(name, labels)] += value

    def gauge(self, name: str, value: float, labels: Labels = None) -> None:
        with self._data_lock:
            self._gauges[_metric_key(name, labels)] = value

    def observe(self, name: str, value: float, labels: Labels = None) -> None:
        """Add one observation to the histogram ``name``"""
        key = _metric_key(name, labels)
        with self._data_lock:
            hist = self._histograms.get(key)
            if hist is None:
                hist = self._histograms[key] = Histogram(name, labels)
        hist.observe(value)

    def get_counter(self, name: str, labels: Labels = None) -> float:
        with self._data_lock:
            return self._counters.get(_metric_key(name, labels), 0.0)

    def get_gauge(self, name: str, labels: Labels = None) -> Optional[float]:
        with self._data_lock:
            return self._gauges.get(_metric_key(name, labels))

    def get_histogram(self, name: str, labels: Labels = None) -> Optional[Histogram]:
        with self._data_lock:
            return self._histograms.get(_metric_key(name, labels))

    def get_metrics(self) -> Dict[str, Any]:
        with self._data_lock:
            histograms = list(self._histograms.items())
            metrics: Dict[str, Any] = {
                "counters": dict(self._counters),
                "gauges": dict(self._gauges),
            }
        metrics["histograms"] = {key: hist.to_dict() for key, hist in histograms}
        return metrics

    def reset(self) -> None:
        with self._data_lock:
            self._counters.clear()
            self._gauges.clear()
            self._histograms.clear()

    def export_json(self) -> str:
        return json.dumps(self.get_metrics(), indent=2, default=str)

    def export_prometheus(self) -> str:
        """Prometheus text exposition format"""
        with self._data_lock:
            counters = list(self._counters.items())
            gauges = list(self._gauges.items())
            histograms = list(self._histograms.values())

        lines: List[str] = []
        for kind, entries in (("counter", counters), ("gauge", gauges)):
            for key, value in entries:
                lines.append(f"# TYPE {key.split('{')[0]} {kind}")
                lines.append(f"{key} {value}")

        for hist in histograms:
            lines.append(f"# TYPE {hist.name} histogram")
            with hist._lock:
                buckets = list(zip(hist.bounds, hist.bucket_counts))
                total, count = hist.total, hist.count
            for bound, seen in buckets:
                labels = dict(hist.labels, le=_bound_label(bound))
                lines.append(f"{_metric_key(hist.name + '_bucket', labels)} {seen}")
            lines.append(f"{_metric_key(hist.name + '_sum', hist.labels)} {total}")
            lines.append(f"{_metric_key(hist.name + '_count', hist.labels)} {count}")

        return "\n".join(lines)


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector instance"""
    return MetricsCollector()


def counter(name: str, value: float = 1.0, labels: Labels = None) -> None:
    get_metrics_collector().counter(name, value, labels)


def gauge(name: str, value: float, labels: Labels = None) -> None:
    get_metrics_collector().gauge(name, value, labels)


_CIRCUIT_STATE_VALUES = {"closed": 0.0, "half-open": 1.0, "open": 2.0}


class InferenceMetrics:
    """Schema inference specific metrics helper"""

    @staticmethod
    def record_llm_call(duration: float, model_id: str, input_tokens: int, output_tokens: int) -> None:
        collector = get_metrics_collector()
        labels = {"model_id": model_id}
        collector.observe("llm_call_duration_seconds", duration, labels)
        collector.counter("llm_call_total", 1.0, labels)
        collector.counter("llm_input_tokens_total", float(input_tokens), labels)
        collector.counter("llm_output_tokens_total", float(output_tokens), labels)

    @staticmethod
    def record_classification(path: str, success: bool) -> None:
        counter("column_classification_total", 1.0, {"path": path, "success": str(success).lower()})

    @staticmethod
    def record_phase(phase: str, duration: float, processed: int, failed: int) -> None:
        """Record one extraction phase run"""
        collector = get_metrics_collector()
        labels = {"phase": phase}
        collector.observe("extraction_phase_duration_seconds", duration, labels)
        collector.counter("extraction_phase_processed_total", float(processed), labels)
        collector.counter("extraction_phase_failed_total", float(failed), labels)

    @staticmethod
    def record_circuit_state(state: str) -> None:
        gauge("circuit_breaker_state", _CIRCUIT_STATE_VALUES.get(state, -1.0))

    @staticmethod
    def record_retry(attempt: int, error_type: str) -> None:
        collector = get_metrics_collector()
        labels = {"error_type": error_type}
        collector.counter("llm_retry_total", 1.0, labels)
        collector.gauge("llm_retry_last_attempt", float(attempt), labels)

    @staticmethod
    def record_candidates(sources: int, targets: int, candidates: int) -> None:
        gauge("fk_sources", float(sources))
        gauge("fk_targets", float(targets))
        counter("relationship_candidates_total", float(candidates))
