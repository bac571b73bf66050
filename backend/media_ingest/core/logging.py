"""Structured JSON logging with correlation IDs.

Every record carries a correlation id: the one set by the HTTP middleware
or a Celery task, else the active trace id, else a freshly generated one.
"""

import json
import logging
import sys
import traceback
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Optional

from media_ingest.core.clock import utcnow
from media_ingest.core.tracing import get_span_id, get_trace_id

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# LogRecord attributes that are never copied into the "extra" block
_RESERVED_ATTRS = frozenset((
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "message", "taskName", "correlation_id",
))


def get_correlation_id() -> str:
    cid = correlation_id_var.get()
    if cid is None:
        trace_id = get_trace_id()
        if trace_id:
            return trace_id
        cid = str(uuid.uuid4())
        correlation_id_var.set(cid)
    return cid


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    correlation_id_var.set(None)


@contextmanager
def correlation_scope(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Bind a correlation id for the duration of a background task run."""
    cid = correlation_id or str(uuid.uuid4())
    token = correlation_id_var.set(cid)
    try:
        yield cid
    finally:
        correlation_id_var.reset(token)


class StructuredFormatter(logging.Formatter):
    """Render log records as single-line JSON documents."""

    def __init__(
        self,
        include_stack_trace: bool = True,
        include_extra_fields: bool = True,
    ):
        super().__init__()
        self.include_stack_trace = include_stack_trace
        self.include_extra_fields = include_extra_fields

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None) or get_correlation_id(),
        }

        trace_id = get_trace_id()
        span_id = get_span_id()
        if trace_id:
            log_data["trace_id"] = trace_id
        if span_id:
            log_data["span_id"] = span_id

        log_data["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        if record.exc_info and self.include_stack_trace:
            exc_type, exc_value, exc_tb = record.exc_info
            log_data["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "stack_trace": (
                    traceback.format_exception(exc_type, exc_value, exc_tb)
                    if exc_tb else None
                ),
            }

        if self.include_extra_fields:
            extra_fields = {}
            for key, value in record.__dict__.items():
                if key in _RESERVED_ATTRS:
                    continue
                try:
                    json.dumps(value)
                    extra_fields[key] = value
                except (TypeError, ValueError):
                    extra_fields[key] = str(value)
            if extra_fields:
                log_data["extra"] = extra_fields

        return json.dumps(log_data, default=str)


class CorrelationIdFilter(logging.Filter):
    """Stamp the current correlation id onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        return True


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    include_stack_trace: bool = True,
) -> None:
    """Replace root handlers with a single stdout handler.

    Args:
        level: Log level name
        json_format: Emit JSON documents instead of plain text lines
        include_stack_trace: Include formatted tracebacks for exceptions
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.addFilter(CorrelationIdFilter())

    if json_format:
        formatter: logging.Formatter = StructuredFormatter(
            include_stack_trace=include_stack_trace,
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - "
            "[%(correlation_id)s] - %(message)s"
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)


def log_error(
    logger: logging.Logger,
    message: str,
    exception: Optional[BaseException] = None,
    **extra: Any,
) -> None:
    """Log an error with structured context and an optional exception."""
    if exception:
        logger.error(message, exc_info=exception, extra=extra)
    else:
        logger.error(message, extra=extra)


def log_warning(logger: logging.Logger, message: str, **extra: Any) -> None:
    logger.warning(message, extra=extra)


def log_info(logger: logging.Logger, message: str, **extra: Any) -> None:
    logger.info(message, extra=extra)
