"""Prometheus metrics for search golden signals, mirrored to OpenTelemetry instruments."""

from __future__ import annotations

from contextlib import contextmanager
import time
from typing import TYPE_CHECKING, Any

from opentelemetry import metrics as otel_metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.resources import Resource
from prometheus_client import Counter, Gauge, Histogram


if TYPE_CHECKING:
    from collections.abc import Generator


_meter_holder: dict[str, Any] = {"meter": None, "provider": None}


def init_metrics(
    service_name: str = "reposearch-mcp-server",
    resource_attributes: dict[str, str] | None = None,
) -> MeterProvider:
    """Initialize the OpenTelemetry meter provider once per process."""
    provider = _meter_holder.get("provider")
    if isinstance(provider, MeterProvider):
        return provider

    attributes = {"service.name": service_name}
    if resource_attributes:
        attributes.update(resource_attributes)
    provider = MeterProvider(resource=Resource.create(attributes))
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
    """Record to a Prometheus collector and the matching OTel instrument."""

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
        self._ensure_otel_instrument().add(amount, labels)

    def observe(self, labels: dict[str, str], value: float) -> None:
        self._prom_metric.labels(**labels).observe(value)
        self._ensure_otel_instrument().record(value, labels)

    def set(self, labels: dict[str, str], value: float) -> None:
        self._prom_metric.labels(**labels).set(value)
        key = tuple(sorted(labels.items()))
        delta = value - self._last_values.get(key, 0.0)
        if delta:
            self._ensure_otel_instrument().add(delta, labels)
        self._last_values[key] = value


_REQUEST_LATENCY_PROM = Histogram(
    "mcp_request_latency_seconds",
    "MCP tool call latency in seconds",
    ["tool"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

_REQUEST_COUNT_PROM = Counter(
    "mcp_requests_total",
    "Total MCP tool calls",
    ["tool", "status"],
)

_SEARCH_LATENCY_PROM = Histogram(
    "reposearch_search_latency_seconds",
    "Directory search latency",
    ["outcome"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

_FILES_SCANNED_PROM = Counter(
    "reposearch_files_scanned_total",
    "Text files searched",
    ["outcome"],
)

_MATCHES_FOUND_PROM = Counter(
    "reposearch_matches_total",
    "Matches found, including those dropped by the output limit",
    ["outcome"],
)

_OTLP_EXPORT_ERRORS_PROM = Counter(
    "otlp_export_errors_total",
    "Total OTLP export configuration errors",
    ["protocol"],
)

_OTLP_EXPORT_STATUS_PROM = Gauge(
    "otlp_exporter_enabled",
    "OTLP exporter enabled status (1=enabled, 0=disabled)",
    ["protocol"],
)

REQUEST_LATENCY = MetricBridge(
    _REQUEST_LATENCY_PROM,
    otel_name="mcp_request_latency_seconds",
    otel_description="MCP tool call latency in seconds",
    otel_kind="histogram",
)

REQUEST_COUNT = MetricBridge(
    _REQUEST_COUNT_PROM,
    otel_name="mcp_requests_total",
    otel_description="Total MCP tool calls",
    otel_kind="counter",
)

SEARCH_LATENCY = MetricBridge(
    _SEARCH_LATENCY_PROM,
    otel_name="reposearch_search_latency_seconds",
    otel_description="Directory search latency",
    otel_kind="histogram",
)

FILES_SCANNED = MetricBridge(
    _FILES_SCANNED_PROM,
    otel_name="reposearch_files_scanned_total",
    otel_description="Text files searched",
    otel_kind="counter",
)

MATCHES_FOUND = MetricBridge(
    _MATCHES_FOUND_PROM,
    otel_name="reposearch_matches_total",
    otel_description="Matches found, including those dropped by the output limit",
    otel_kind="counter",
)

OTLP_EXPORT_ERRORS = MetricBridge(
    _OTLP_EXPORT_ERRORS_PROM,
    otel_name="otlp_export_errors_total",
    otel_description="Total OTLP export configuration errors",
    otel_kind="counter",
)

OTLP_EXPORT_STATUS = MetricBridge(
    _OTLP_EXPORT_STATUS_PROM,
    otel_name="otlp_exporter_enabled",
    otel_description="OTLP exporter enabled status (1=enabled, 0=disabled)",
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
