"""Prometheus metrics for the index, bridged to OpenTelemetry instruments."""

from __future__ import annotations

from contextlib import contextmanager
import time
from typing import TYPE_CHECKING, Any

from opentelemetry import metrics as otel_metrics
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import (
    OTLPMetricExporter as GrpcOTLPMetricExporter,
)
from opentelemetry.exporter.otlp.proto.http.metric_exporter import (
    OTLPMetricExporter as HttpOTLPMetricExporter,
)
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest


if TYPE_CHECKING:
    from collections.abc import Generator

    from content_index.config import ObservabilityCollectorConfig


_meter_holder: dict[str, Any] = {"meter": None, "provider": None, "reader": None}


def init_metrics(
    service_name: str = "content-index",
    resource_attributes: dict[str, str] | None = None,
    metric_readers: list[PeriodicExportingMetricReader] | None = None,
) -> MeterProvider:
    """Initialize the OpenTelemetry meter provider once per process."""
    provider = _meter_holder.get("provider")
    if isinstance(provider, MeterProvider):
        return provider

    attributes = {"service.name": service_name}
    if resource_attributes:
        attributes.update(resource_attributes)
    provider = MeterProvider(resource=Resource.create(attributes), metric_readers=metric_readers or [])
    otel_metrics.set_meter_provider(provider)
    _meter_holder["provider"] = provider
    _meter_holder["meter"] = otel_metrics.get_meter(__name__)
    return provider


def configure_metrics_exporter(
    config: ObservabilityCollectorConfig | None,
    *,
    service_name: str = "content-index",
) -> bool:
    """Attach an OTLP metric reader. Returns False when export stays disabled."""
    if not config or not config.enabled:
        return False
    if _meter_holder.get("reader") is not None:
        return True

    endpoint = config.collector_endpoint
    if config.otlp_protocol == "http" and endpoint.endswith("/v1/traces"):
        endpoint = endpoint.removesuffix("/v1/traces") + "/v1/metrics"

    if config.otlp_protocol == "grpc":
        exporter = GrpcOTLPMetricExporter(
            endpoint=endpoint,
            headers=config.headers,
            timeout=config.timeout_seconds,
            insecure=config.grpc_insecure,
        )
    else:
        exporter = HttpOTLPMetricExporter(endpoint=endpoint, headers=config.headers, timeout=config.timeout_seconds)
    reader = PeriodicExportingMetricReader(exporter)

    attributes = {"service.name": service_name, **config.resource_attributes}
    provider = MeterProvider(resource=Resource.create(attributes), metric_readers=[reader])
    otel_metrics.set_meter_provider(provider)
    _meter_holder["provider"] = provider
    _meter_holder["meter"] = otel_metrics.get_meter(__name__)
    _meter_holder["reader"] = reader
    return True


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
    """Write to a Prometheus metric and its OTel twin in one call."""

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

    @property
    def prometheus_metric(self) -> Counter | Histogram | Gauge:
        return self._prom_metric

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
        self._ensure_otel_instrument().add(amount, labels)

    def observe(self, labels: dict[str, str], value: float) -> None:
        self._prom_metric.labels(**labels).observe(value)
        self._ensure_otel_instrument().record(value, labels)

    def set(self, labels: dict[str, str], value: float) -> None:
        self._prom_metric.labels(**labels).set(value)
        otel = self._ensure_otel_instrument()
        key = _label_key(labels)
        delta = value - self._last_values.get(key, 0.0)
        if delta:
            otel.add(delta, labels)
        self._last_values[key] = value


MUTATION_COUNT = MetricBridge(
    Counter("content_index_mutations_total", "Index mutations by operation and outcome", ["index", "op", "status"]),
    otel_name="content_index_mutations_total",
    otel_description="Index mutations by operation and outcome",
    otel_kind="counter",
)

INDEX_DOC_COUNT = MetricBridge(
    Gauge("content_index_documents", "Documents currently indexed", ["index"]),
    otel_name="content_index_documents",
    otel_description="Documents currently indexed",
    otel_kind="gauge",
)

SEARCH_LATENCY = MetricBridge(
    Histogram(
        "content_index_search_latency_seconds",
        "Time spent ranking a query",
        ["index"],
        buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5),
    ),
    otel_name="content_index_search_latency_seconds",
    otel_description="Time spent ranking a query",
    otel_kind="histogram",
)

BULK_FAILURES = MetricBridge(
    Counter("content_index_bulk_failures_total", "Items rejected by bulk operations", ["index", "operation"]),
    otel_name="content_index_bulk_failures_total",
    otel_description="Items rejected by bulk operations",
    otel_kind="counter",
)

OTLP_EXPORT_ERRORS = MetricBridge(
    Counter("content_index_otlp_export_errors_total", "OTLP export configuration errors", ["protocol"]),
    otel_name="content_index_otlp_export_errors_total",
    otel_description="OTLP export configuration errors",
    otel_kind="counter",
)


@contextmanager
def track_latency(histogram: MetricBridge, **labels: str) -> Generator[None, None, None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        histogram.labels(**labels).observe(time.perf_counter() - start)


def get_metrics() -> bytes:
    """Prometheus text exposition of every registered metric."""
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
