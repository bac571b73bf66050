"""FastAPI middleware for metrics, correlation IDs, tracing and request logs."""

import logging
import re
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware

from media_ingest.core.logging import (
    clear_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from media_ingest.core.metrics import (
    HTTP_REQUESTS_IN_PROGRESS,
    HTTP_REQUESTS_TOTAL,
    HTTP_REQUEST_DURATION_SECONDS,
)
from media_ingest.core.tracing import add_span_attributes, create_span, record_exception

_UUID_RE = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
    flags=re.IGNORECASE,
)
_NUMERIC_ID_RE = re.compile(r"/\d+(?=/|$)")

request_logger = logging.getLogger("media_ingest.requests")


def normalize_path(path: str) -> str:
    """Collapse ids in a URL path so metric labels stay low-cardinality."""
    path = _UUID_RE.sub("{id}", path)
    return _NUMERIC_ID_RE.sub("/{id}", path)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Count and time every HTTP request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        method = request.method
        path = normalize_path(request.url.path)

        HTTP_REQUESTS_IN_PROGRESS.labels(method=method, endpoint=path).inc()
        start_time = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            HTTP_REQUEST_DURATION_SECONDS.labels(
                method=method, endpoint=path
            ).observe(time.perf_counter() - start_time)
            HTTP_REQUESTS_TOTAL.labels(
                method=method, endpoint=path, status_code=str(status_code)
            ).inc()
            HTTP_REQUESTS_IN_PROGRESS.labels(method=method, endpoint=path).dec()


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Propagate or mint an X-Correlation-ID for each request."""

    CORRELATION_ID_HEADER = "X-Correlation-ID"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(
            self.CORRELATION_ID_HEADER,
            str(uuid.uuid4()),
        )
        set_correlation_id(correlation_id)

        try:
            response = await call_next(request)
            response.headers[self.CORRELATION_ID_HEADER] = correlation_id
            return response
        finally:
            clear_correlation_id()


class TracingMiddleware(BaseHTTPMiddleware):
    """Wrap each request in a SERVER span."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        method = request.method
        path = request.url.path

        with create_span(
            f"{method} {normalize_path(path)}",
            attributes={
                "http.method": method,
                "http.url": str(request.url),
                "http.route": path,
                "http.scheme": request.url.scheme,
                "http.user_agent": request.headers.get("user-agent", ""),
                "correlation_id": get_correlation_id(),
            },
            kind=trace.SpanKind.SERVER,
        ):
            try:
                response = await call_next(request)
                add_span_attributes({"http.status_code": response.status_code})
                return response
            except Exception as e:
                record_exception(e)
                raise


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log request start, completion and failure with timings."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()

        request_logger.info(
            "Request started",
            extra={
                "method": request.method,
                "path": request.url.path,
                "query": str(request.query_params),
                "client_ip": request.client.host if request.client else None,
            },
        )

        try:
            response = await call_next(request)
        except Exception as e:
            request_logger.error(
                "Request failed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
                    "error": str(e),
                },
                exc_info=True,
            )
            raise

        request_logger.info(
            "Request completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
            },
        )
        return response


__all__ = [
    "MetricsMiddleware",
    "CorrelationIdMiddleware",
    "TracingMiddleware",
    "RequestLoggingMiddleware",
    "normalize_path",
]
