"""OpenTelemetry tracing for the API and background workers."""

import logging
from typing import Optional
from contextlib import contextmanager

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.trace import Status, StatusCode, Span
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator
from opentelemetry.propagate import set_global_textmap

logger = logging.getLogger(__name__)

_tracer: Optional[trace.Tracer] = None
_provider: Optional[TracerProvider] = None


def setup_tracing(
    service_name: str,
    service_version: str,
    environment: str = "development",
    otlp_endpoint: Optional[str] = None,
    enable_console_export: bool = False,
) -> trace.Tracer:
    """Install a tracer provider for this process.

    Called once by the API on import and once per Celery worker process.

    Args:
        service_name: Name reported on every span
        service_version: Service version reported on every span
        environment: Deployment environment
        otlp_endpoint: OTLP gRPC collector endpoint, export disabled when None
        enable_console_export: Print finished spans to stdout

    Returns:
        Configured tracer instance
    """
    global _tracer, _provider

    resource = Resource.create({
        SERVICE_NAME: service_name,
        SERVICE_VERSION: service_version,
        "deployment.environment": environment,
    })
    _provider = TracerProvider(resource=resource)

    if otlp_endpoint:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        _provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint))
        )
        logger.info(f"OTLP tracing enabled, exporting to {otlp_endpoint}")

    if enable_console_export:
        _provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(_provider)
    set_global_textmap(TraceContextTextMapPropagator())

    _tracer = trace.get_tracer(service_name, service_version)
    logger.info(f"Tracing initialized for {service_name} v{service_version}")
    return _tracer


def get_tracer() -> trace.Tracer:
    """Return the configured tracer, or the global no-op one before setup."""
    if _tracer is None:
        return trace.get_tracer(__name__)
    return _tracer


def get_current_span() -> Optional[Span]:
    return trace.get_current_span()


def get_trace_id() -> Optional[str]:
    """Current trace id as 32 hex chars, or None outside a span."""
    span = get_current_span()
    if span and span.get_span_context().is_valid:
        return format(span.get_span_context().trace_id, "032x")
    return None


def get_span_id() -> Optional[str]:
    """Current span id as 16 hex chars, or None outside a span."""
    span = get_current_span()
    if span and span.get_span_context().is_valid:
        return format(span.get_span_context().span_id, "016x")
    return None


@contextmanager
def create_span(
    name: str,
    attributes: Optional[dict] = None,
    kind: trace.SpanKind = trace.SpanKind.INTERNAL,
):
    """Open a span as the current span for the duration of the block."""
    tracer = get_tracer()
    with tracer.start_as_current_span(
        name,
        kind=kind,
        attributes=attributes or {},
    ) as span:
        yield span


def add_span_attributes(attributes: dict) -> None:
    span = get_current_span()
    if span:
        for key, value in attributes.items():
            span.set_attribute(key, value)


def record_exception(exception: Exception, attributes: Optional[dict] = None) -> None:
    """Attach an exception to the current span and mark it as errored."""
    span = get_current_span()
    if span:
        span.record_exception(exception, attributes=attributes)
        span.set_status(Status(StatusCode.ERROR, str(exception)))


def shutdown_tracing() -> None:
    """Flush pending spans and shut the provider down."""
    if _provider:
        _provider.shutdown()
        logger.info("Tracing shutdown complete")
