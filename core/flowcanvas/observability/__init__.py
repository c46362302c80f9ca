"""
Observability helpers: context-aware structured logging.

- Context propagation via ContextVar (execution_id follows a polling session)
- Structured JSON logging for production
- Human-readable logging for development
"""

from flowcanvas.observability.logging import (
    clear_trace_context,
    configure_logging,
    get_trace_context,
    set_trace_context,
)

__all__ = [
    "configure_logging",
    "get_trace_context",
    "set_trace_context",
    "clear_trace_context",
]
