"""
Structured logging for the Static Token Gate.

Every event is rendered as one JSON line carrying the logger name, level,
timestamp, the active OpenTelemetry span and the request correlation fields
set by :func:`set_request_id` and :func:`set_remote_user`.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any, Dict, List, Optional

import structlog
from opentelemetry import trace

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
remote_user_var: ContextVar[Optional[str]] = ContextVar("remote_user", default=None)

_CORRELATION_VARS = (
    ("request_id", request_id_var),
    ("remote_user", remote_user_var),
)

EventDict = Dict[str, Any]


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Route structlog through stdlib logging at ``log_level`` on stdout."""
    structlog.configure(
        processors=_processors(),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )


def _processors() -> List[Any]:
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        add_service_context,
        add_trace_context,
        add_correlation_context,
        structlog.processors.JSONRenderer(),
    ]


def add_service_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Use the first segment of dotted logger names (``token_gate.cache``) as service."""
    logger_name = event_dict.get("logger", "")
    if "." in logger_name:
        event_dict["service"] = logger_name.split(".", 1)[0]
    return event_dict


def add_trace_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    span = trace.get_current_span()
    if not span.is_recording():
        return event_dict

    span_context = span.get_span_context()
    if span_context.trace_id:
        event_dict["trace_id"] = f"{span_context.trace_id:032x}"
    if span_context.span_id:
        event_dict["span_id"] = f"{span_context.span_id:016x}"
    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    for field, var in _CORRELATION_VARS:
        value = var.get()
        if value:
            event_dict.setdefault(field, value)
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind a request id to the current context, generating one if absent."""
    request_id = request_id or str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_remote_user(name: Optional[str]) -> None:
    remote_user_var.set(name)


def clear_context() -> None:
    for _, var in _CORRELATION_VARS:
        var.set(None)


def mask_token(value: str, visible: int = 4) -> str:
    """Log-safe form of a credential: its first ``visible`` characters."""
    if len(value) <= visible:
        return "***"
    return value[:visible] + "..."


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
