"""Observability: structured logging, OpenTelemetry tracing and Prometheus metrics."""

from reposearch_mcp_server.observability.context import get_trace_context, set_trace_context, trace_context
from reposearch_mcp_server.observability.logging import JsonFormatter, configure_logging
from reposearch_mcp_server.observability.metrics import (
    FILES_SCANNED,
    MATCHES_FOUND,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    SEARCH_LATENCY,
    init_metrics,
    track_latency,
)
from reposearch_mcp_server.observability.tracing import (
    build_trace_resource_attributes,
    configure_trace_exporter,
    create_span,
    get_tracer,
    init_tracing,
)


__all__ = [
    "FILES_SCANNED",
    "MATCHES_FOUND",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "SEARCH_LATENCY",
    "JsonFormatter",
    "build_trace_resource_attributes",
    "configure_logging",
    "configure_trace_exporter",
    "create_span",
    "get_trace_context",
    "get_tracer",
    "init_metrics",
    "init_tracing",
    "set_trace_context",
    "trace_context",
    "track_latency",
]
