"""Observability module for OpenTelemetry-aligned tracing, metrics, and logging."""

from sci_docs_mcp.observability.context import (
    get_trace_context,
    library_context,
    set_trace_context,
    trace_context,
)
from sci_docs_mcp.observability.logging import JsonFormatter, configure_logging
from sci_docs_mcp.observability.metrics import (
    CORPUS_RECORD_COUNT,
    CORPUS_STATE,
    PARSE_WARNING_COUNT,
    QUERY_COUNT,
    QUERY_LATENCY,
    REBUILD_COUNT,
    init_metrics,
    track_latency,
)
from sci_docs_mcp.observability.tracing import create_span, get_tracer, init_tracing


__all__ = [
    "CORPUS_RECORD_COUNT",
    "CORPUS_STATE",
    "PARSE_WARNING_COUNT",
    "QUERY_COUNT",
    "QUERY_LATENCY",
    "REBUILD_COUNT",
    "JsonFormatter",
    "configure_logging",
    "create_span",
    "get_trace_context",
    "get_tracer",
    "init_metrics",
    "init_tracing",
    "library_context",
    "set_trace_context",
    "trace_context",
    "track_latency",
]
