"""
Distributed tracing using OpenTelemetry.

Spans cover connection pool activity, engine initialization and every fill
or synchronize batch, so a slow batch can be traced to the query behind it.
"""

from .context import add_span_attributes, add_span_event, trace_operation
from .tracer import get_tracer, initialize_tracing, shutdown_tracing

__all__ = [
    "initialize_tracing",
    "get_tracer",
    "shutdown_tracing",
    "trace_operation",
    "add_span_attributes",
    "add_span_event",
]
