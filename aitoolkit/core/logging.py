"""
Structured logging configuration for the toolkit.

All log entries are emitted through structlog and carry:
- timestamp (ISO 8601 format)
- level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
- service (service name identifier)
- trace_id (correlation ID, when set by the caller)
- session_id (one per AIToolkit instance)
- operation (extract / validate / summarize / decide / execute, while running)

Libraries should not configure logging on import; applications call
configure_logging() once at startup.
"""
import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

import structlog
from structlog.types import Processor

trace_id_var: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)
session_id_var: ContextVar[Optional[str]] = ContextVar("session_id", default=None)
operation_var: ContextVar[Optional[str]] = ContextVar("operation", default=None)

# Can be overridden through configure_logging(service_name=...)
SERVICE_NAME = "aitoolkit"


def add_toolkit_context(
    logger: structlog.BoundLogger,
    method_name: str,
    event_dict: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Add toolkit context (trace_id, session_id, operation, service) to log entries.
    """
    trace_id = trace_id_var.get()
    if trace_id:
        event_dict["trace_id"] = trace_id

    session_id = session_id_var.get()
    if session_id:
        event_dict.setdefault("session_id", session_id)

    operation = operation_var.get()
    if operation:
        event_dict.setdefault("operation", operation)

    event_dict["service"] = SERVICE_NAME

    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()

    return event_dict


def configure_logging(
    log_level: str = "INFO",
    service_name: Optional[str] = None,
    json_output: bool = True,
) -> None:
    """
    Configure structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        service_name: Service name identifier (defaults to SERVICE_NAME)
        json_output: JSON lines when True, human-readable console output otherwise
    """
    global SERVICE_NAME
    if service_name:
        SERVICE_NAME = service_name

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_toolkit_context,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)
    """
    return structlog.get_logger(name)


def set_trace_id(trace_id: Optional[str]) -> None:
    """Set trace ID in context for the current task."""
    trace_id_var.set(trace_id)


def get_trace_id() -> Optional[str]:
    return trace_id_var.get()


def get_session_id() -> Optional[str]:
    return session_id_var.get()


def get_operation() -> Optional[str]:
    return operation_var.get()


@contextmanager
def operation_context(operation: str, session_id: Optional[str] = None) -> Iterator[None]:
    """
    Bind operation (and optionally session_id) to every log entry emitted
    inside the block. Previous values are restored on exit.
    """
    op_token = operation_var.set(operation)
    session_token = session_id_var.set(session_id) if session_id else None
    try:
        yield
    finally:
        operation_var.reset(op_token)
        if session_token is not None:
            session_id_var.reset(session_token)


def generate_session_id() -> str:
    """
    Generate a new session ID.

    Returns:
        32 character hex string
    """
    return uuid.uuid4().hex


def generate_trace_id() -> str:
    return str(uuid.uuid4())
