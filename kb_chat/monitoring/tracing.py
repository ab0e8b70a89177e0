"""Tracing for Knowledge Base Chat using OpenTelemetry.

One span per pipeline stage: ``ingestion``, ``retrieval``, ``completion``
and ``evaluation_turn``. Component log entries carry the active trace id so
the two can be joined.

Environment variables:
- KB_ENABLE_TRACING: install an SDK tracer provider (default: false, no-op tracer)
- KB_TRACE_CONSOLE: print finished spans to stdout (default: false)
"""

import logging
import os
from contextlib import contextmanager
from typing import Any, Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor

logger = logging.getLogger(__name__)

ENABLE_TRACING = os.getenv("KB_ENABLE_TRACING", "false").lower() == "true"
TRACE_CONSOLE = os.getenv("KB_TRACE_CONSOLE", "false").lower() == "true"
SERVICE_NAME = os.getenv("OTEL_SERVICE_NAME", "kb-chat")
SERVICE_VERSION = os.getenv("SERVICE_VERSION", "dev")

_tracer: Optional[trace.Tracer] = None
_provider: Optional[TracerProvider] = None


def setup_tracing(
    service_name: str = SERVICE_NAME,
    enable_console_export: bool = TRACE_CONSOLE,
) -> trace.Tracer:
    """Install a tracer provider when tracing is enabled.

    Args:
        service_name: Name of the service for trace attribution
        enable_console_export: Whether to print finished spans to stdout

    Returns:
        Tracer instance (the API no-op tracer when tracing is disabled)
    """
    global _provider

    if not ENABLE_TRACING:
        return trace.get_tracer(service_name)

    _provider = TracerProvider(
        resource=Resource.create({
            "service.name": service_name,
            "service.version": SERVICE_VERSION,
        })
    )
    if enable_console_export:
        _provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
        logger.info("Console span export enabled")

    trace.set_tracer_provider(_provider)
    return trace.get_tracer(service_name)


def get_tracer() -> trace.Tracer:
    global _tracer
    if _tracer is None:
        _tracer = setup_tracing()
    return _tracer


def shutdown_tracing() -> None:
    """Flush pending spans; a no-op when tracing was never enabled."""
    if _provider is not None:
        _provider.shutdown()


def _attribute_value(value: Any) -> Any:
    # OpenTelemetry attributes accept only primitives
    if isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


@contextmanager
def trace_span(name: str, attributes: Optional[dict] = None):
    """Run a block inside a span named after the pipeline stage.

    Exceptions are recorded on the span and re-raised.

    Args:
        name: Stage name
        attributes: Initial span attributes; None values are skipped

    Yields:
        The active span
    """
    with get_tracer().start_as_current_span(name) as span:
        for key, value in (attributes or {}).items():
            if value is not None:
                span.set_attribute(key, _attribute_value(value))
        yield span


def get_current_trace_id() -> Optional[str]:
    """Hex trace id of the active span, or None outside a recorded span."""
    context = trace.get_current_span().get_span_context()
    if context.is_valid:
        return format(context.trace_id, "032x")
    return None
