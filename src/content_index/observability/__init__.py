"""Observability: structured logging, Prometheus/OTel metrics, tracing."""

from content_index.observability.context import get_trace_context, set_trace_context, trace_context
from content_index.observability.logging import JsonFormatter, configure_logging
from content_index.observability.metrics import (
    BULK_FAILURES,
    INDEX_DOC_COUNT,
    MUTATION_COUNT,
    SEARCH_LATENCY,
    configure_metrics_exporter,
    get_metrics,
    get_metrics_content_type,
    init_metrics,
    track_latency,
)
from content_index.observability.tracing import configure_trace_exporter, create_span, get_tracer, init_tracing


__all__ = [
    "BULK_FAILURES",
    "INDEX_DOC_COUNT",
    "MUTATION_COUNT",
    "SEARCH_LATENCY",
    "JsonFormatter",
    "configure_logging",
    "configure_metrics_exporter",
    "configure_trace_exporter",
    "create_span",
    "get_metrics",
    "get_metrics_content_type",
    "get_tracer",
    "get_trace_context",
    "init_metrics",
    "init_tracing",
    "set_trace_context",
    "trace_context",
    "track_latency",
]
