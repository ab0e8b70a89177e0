"""Monitoring module for Knowledge Base Chat.

Provides structured component logging and tracing.
"""

from kb_chat.monitoring.logging import (
    ComponentLogger,
    log_file_for,
    new_request_context,
    read_logs,
    request_id_ctx,
    session_id_ctx,
)
from kb_chat.monitoring.tracing import (
    get_current_trace_id,
    get_tracer,
    setup_tracing,
    shutdown_tracing,
    trace_span,
)

__all__ = [
    "ComponentLogger",
    "log_file_for",
    "new_request_context",
    "read_logs",
    "request_id_ctx",
    "session_id_ctx",
    # Tracing
    "get_tracer",
    "setup_tracing",
    "shutdown_tracing",
    "trace_span",
    "get_current_trace_id",
]
