"""Prometheus metrics for corpus and query observability, bridged to OpenTelemetry."""

from __future__ import annotations

from contextlib import contextmanager
import time
from typing import TYPE_CHECKING, Any

from opentelemetry import metrics as otel_metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader
from opentelemetry.sdk.resources import Resource
from prometheus_client import Counter, Gauge, Histogram


if TYPE_CHECKING:
    from collections.abc import Generator


_meter_holder: dict[str, Any] = {"meter": None, "provider": None}


def init_metrics(
    service_name: str = "sci-docs-mcp",
    resource_attributes: dict[str, str] | None = None,
    metric_readers: list[MetricReader] | None = None,
) -> MeterProvider:
    """Initialize OpenTelemetry metrics."""
    provider = _meter_holder.get("provider")
    if isinstance(provider, MeterProvider):
        return provider

    attributes = {"service.name": service_name}
    if resource_attributes:
        attributes.update(resource_attributes)
    resource = Resource.create(attributes)
    provider = MeterProvider(resource=resource, metric_readers=metric_readers or [])
    otel_metrics.set_meter_provider(provider)
    _meter_holder["provider"] = provider
    _meter_holder["meter"] = otel_metrics.get_meter(__name__)
    return provider


def _get_meter():
    meter = _meter_holder.get("meter")
    if meter is None:
        init_metrics()
        meter = _meter_holder.get("meter")
    return meter


def _label_key(labels: dict[str, str]) -> tuple[tuple[str, str], ...]:
    return tuple(sorted(labels.items()))


class _BoundMetric:
    def __init__(self, wrapper: MetricBridge, labels: dict[str, str]) -> None:
        self._wrapper = wrapper
        self._labels = labels

    def inc(self, amount: float = 1.0) -> None:
        self._wrapper.inc(self._labels, amount)

    def observe(self, value: float) -> None:
        self._wrapper.observe(self._labels, value)

    def set(self, value: float) -> None:
        self._wrapper.set(self._labels, value)


class MetricBridge:
    """Bridge Prometheus metrics to OTel instruments."""

    def __init__(
        self,
        prom_metric: Counter | Histogram | Gauge,
        *,
        otel_name: str,
        otel_description: str,
        otel_kind: str,
    ) -> None:
        self._prom_metric = prom_metric
        self._otel_name = otel_name
        self._otel_description = otel_description
        self._otel_kind = otel_kind
        self._otel_instrument = None
        self._last_values: dict[tuple[tuple[str, str], ...], float] = {}

    def labels(self, **labels: str) -> _BoundMetric:
        return _BoundMetric(self, labels)

    def _ensure_otel_instrument(self):
        if self._otel_instrument is not None:
            return self._otel_instrument
        meter = _get_meter()
        if self._otel_kind == "counter":
            self._otel_instrument = meter.create_counter(self._otel_name, description=self._otel_description)
        elif self._otel_kind == "histogram":
            self._otel_instrument = meter.create_histogram(self._otel_name, description=self._otel_description)
        elif self._otel_kind == "gauge":
            self._otel_instrument = meter.create_up_down_counter(self._otel_name, description=self._otel_description)
        else:
            raise ValueError(f"Unknown metric kind: {self._otel_kind}")
        return self._otel_instrument

    def inc(self, labels: dict[str, str], amount: float) -> None:
        self._prom_metric.labels(**labels).inc(amount)
        otel = self._ensure_otel_instrument()
        otel.add(amount, labels)

    def observe(self, labels: dict[str, str], value: float) -> None:
        self._prom_metric.labels(**labels).observe(value)
        otel = self._ensure_otel_instrument()
        otel.record(value, labels)

    def set(self, labels: dict[str, str], value: float) -> None:
        self._prom_metric.labels(**labels).set(value)
        otel = self._ensure_otel_instrument()
        key = _label_key(labels)
        last = self._last_values.get(key, 0.0)
        delta = value - last
        if delta:
            otel.add(delta, labels)
        self._last_values[key] = value


_QUERY_LATENCY_PROM = Histogram(
    "docs_query_latency_seconds",
    "Query latency in seconds",
    ["mode"],
    buckets=(0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25),
)

_QUERY_COUNT_PROM = Counter(
    "docs_queries_total",
    "Total queries",
    ["mode", "status"],
)

_REBUILD_COUNT_PROM = Counter(
    "docs_rebuilds_total",
    "Corpus generation builds",
    ["library", "trigger", "outcome"],
)

_PARSE_WARNING_COUNT_PROM = Counter(
    "docs_parse_warnings_total",
    "Non-fatal parse warnings",
    ["library", "parser"],
)

_CORPUS_RECORD_COUNT_PROM = Gauge(
    "docs_corpus_record_count",
    "Records in the serving generation",
    ["library"],
)

_CORPUS_STATE_PROM = Gauge(
    "docs_corpus_state",
    "Corpus freshness state (1 for the current state, 0 otherwise)",
    ["library", "state"],
)

QUERY_LATENCY = MetricBridge(
    _QUERY_LATENCY_PROM,
    otel_name="docs_query_latency_seconds",
    otel_description="Query latency in seconds",
    otel_kind="histogram",
)

QUERY_COUNT = MetricBridge(
    _QUERY_COUNT_PROM,
    otel_name="docs_queries_total",
    otel_description="Total queries",
    otel_kind="counter",
)

REBUILD_COUNT = MetricBridge(
    _REBUILD_COUNT_PROM,
    otel_name="docs_rebuilds_total",
    otel_description="Corpus generation builds",
    otel_kind="counter",
)

PARSE_WARNING_COUNT = MetricBridge(
    _PARSE_WARNING_COUNT_PROM,
    otel_name="docs_parse_warnings_total",
    otel_description="Non-fatal parse warnings",
    otel_kind="counter",
)

CORPUS_RECORD_COUNT = MetricBridge(
    _CORPUS_RECORD_COUNT_PROM,
    otel_name="docs_corpus_record_count",
    otel_description="Records in the serving generation",
    otel_kind="gauge",
)

CORPUS_STATE = MetricBridge(
    _CORPUS_STATE_PROM,
    otel_name="docs_corpus_state",
    otel_description="Corpus freshness state (1 for the current state, 0 otherwise)",
    otel_kind="gauge",
)


@contextmanager
def track_latency(histogram: MetricBridge, **labels: str) -> Generator[None, None, None]:
    """Context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        histogram.labels(**labels).observe(time.perf_counter() - start)

