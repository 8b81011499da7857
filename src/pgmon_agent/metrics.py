"""
Metric registry.

Maps a metric name to the function that produces its value and to the
Prometheus object that exposes it. One registry is created at process start
and handed to whatever collects or serves metrics.
"""

import threading
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from .db import DatabaseSession

Labels = Dict[str, str]
MetricFunc = Callable[[DatabaseSession], Tuple[float, Labels]]
MetricObject = Union[Gauge, Counter, Histogram]


class MetricsError(Exception):
    """Base exception for registry errors."""
    pass


class AlreadyRegisteredError(MetricsError):
    pass


class NotRegisteredError(MetricsError):
    pass


class MetricsRegistry:
    """Process-wide catalog of metric functions and Prometheus metrics."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else CollectorRegistry()
        # one lock for every map, so a name cannot be claimed twice concurrently
        self._lock = threading.Lock()
        self._functions: Dict[str, MetricFunc] = {}
        self._gauges: Dict[str, Gauge] = {}
        self._counters: Dict[str, Counter] = {}
        self._histograms: Dict[str, Histogram] = {}

    # -- value functions -------------------------------------------------

    def register_metric(self, name: str, fn: MetricFunc) -> None:
        with self._lock:
            if name in self._functions:
                raise AlreadyRegisteredError(f"metric {name} already registered")
            self._functions[name] = fn

    def get_metric(self, name: str) -> Optional[MetricFunc]:
        """Return the function registered under ``name``, or None."""
        with self._lock:
            return self._functions.get(name)

    def metric_names(self) -> List[str]:
        with self._lock:
            return sorted(self._functions)

    # -- Prometheus objects ----------------------------------------------

    def _claim(self, name: str, kind: Dict[str, MetricObject]) -> Optional[MetricObject]:
        # caller holds the lock
        for other in (self._gauges, self._counters, self._histograms):
            if other is not kind and name in other:
                raise AlreadyRegisteredError(f"{name} already registered as another metric type")
        return kind.get(name)

    def register_gauge(self, name: str, help: str, label_names: Sequence[str] = ()) -> Gauge:
        with self._lock:
            existing = self._claim(name, self._gauges)
            if existing is not None:
                return existing
            try:
                gauge = Gauge(name, help, list(label_names), registry=self.registry)
            except ValueError as e:
                raise AlreadyRegisteredError(f"{name}: {e}") from e
            self._gauges[name] = gauge
            return gauge

    def register_counter(self, name: str, help: str, label_names: Sequence[str] = ()) -> Counter:
        with self._lock:
            existing = self._claim(name, self._counters)
            if existing is not None:
                return existing
            try:
                counter = Counter(name, help, list(label_names), registry=self.registry)
            except ValueError as e:
                raise AlreadyRegisteredError(f"{name}: {e}") from e
            self._counters[name] = counter
            return counter

    def register_histogram(
        self,
        name: str,
        help: str,
        label_names: Sequence[str] = (),
        buckets: Optional[Sequence[float]] = None,
    ) -> Histogram:
        with self._lock:
            existing = self._claim(name, self._histograms)
            if existing is not None:
                return existing
            kwargs = {"buckets": tuple(buckets)} if buckets else {}
            try:
                histogram = Histogram(name, help, list(label_names), registry=self.registry, **kwargs)
            except ValueError as e:
                raise AlreadyRegisteredError(f"{name}: {e}") from e
            self._histograms[name] = histogram
            return histogram

    # -- observations ----------------------------------------------------

    def _lookup(self, name: str, kind: Dict[str, MetricObject], kind_name: str) -> MetricObject:
        with self._lock:
            metric = kind.get(name)
        if metric is None:
            raise NotRegisteredError(f"{kind_name} {name} not registered")
        return metric

    @staticmethod
    def _child(metric: MetricObject, labels: Optional[Labels]):
        return metric.labels(**labels) if labels else metric

    def set_gauge(self, name: str, labels: Optional[Labels], value: float) -> None:
        gauge = self._lookup(name, self._gauges, "gauge")
        self._child(gauge, labels).set(value)

    def inc_counter(self, name: str, labels: Optional[Labels], delta: float = 1.0) -> None:
        counter = self._lookup(name, self._counters, "counter")
        self._child(counter, labels).inc(delta)

    def observe_histogram(self, name: str, labels: Optional[Labels], value: float) -> None:
        histogram = self._lookup(name, self._histograms, "histogram")
        self._child(histogram, labels).observe(value)

    def exposition(self) -> Tuple[bytes, str]:
        """Render every registered metric in the Prometheus text format."""
        return generate_latest(self.registry), CONTENT_TYPE_LATEST
