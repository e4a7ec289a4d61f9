"""
Span helpers.

``trace_operation`` opens a span around a block; the other helpers decorate
whatever span is current without needing a reference to it.
"""

from contextlib import contextmanager

from opentelemetry import trace

from .tracer import get_tracer


@contextmanager
def trace_operation(
    operation_name: str,
    kind: trace.SpanKind = trace.SpanKind.INTERNAL,
    **attributes
):
    """
    Trace a block of work as a single span.

    Exceptions raised inside the block are recorded on the span and re-raised.

    Args:
        operation_name: Name of the span
        kind: Span kind (INTERNAL, CLIENT, SERVER, etc.)
        **attributes: Attributes set on the span, stringified

    Example:
        >>> with trace_operation("fill_batch", table="public.posts") as span:
        ...     inserted = run_batch()
        ...     span.set_attribute("rows_inserted", inserted)
    """
    tracer = get_tracer()

    with tracer.start_as_current_span(operation_name, kind=kind) as span:
        for key, value in attributes.items():
            span.set_attribute(key, str(value))

        try:
            yield span
        except Exception as e:
            span.set_attribute("error", True)
            span.set_attribute("error.type", type(e).__name__)
            span.set_attribute("error.message", str(e))
            span.record_exception(e)
            raise


def add_span_attributes(**attributes):
    """Set attributes on the current span, if one is recording."""
    current_span = trace.get_current_span()
    if current_span.is_recording():
        for key, value in attributes.items():
            current_span.set_attribute(key, str(value))


def add_span_event(name: str, **attributes):
    """
    Add an event to the current span.

    Example:
        >>> with trace_operation("synchronize_batch"):
        ...     add_span_event("rows_fetched", source=10, target=9)
    """
    current_span = trace.get_current_span()
    if current_span.is_recording():
        attrs = {k: str(v) for k, v in attributes.items()}
        current_span.add_event(name, attributes=attrs)
