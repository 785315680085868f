"""
OpenTelemetry tracing for LLM requests and toolkit operations.

Tracing is opt-in: until configure_tracing() is called, the global no-op
tracer provider is used and spans cost next to nothing.

Configuration:
- OTEL_SERVICE_NAME: Service name (default: aitoolkit)
- OTEL_EXPORTER_OTLP_ENDPOINT: OTLP gRPC endpoint (e.g. http://localhost:4317)
- OTEL_TRACES_SAMPLER_ARG: Sampling rate (default: 1.0)
"""
import os
from typing import Any, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from opentelemetry.trace import Status, StatusCode, Tracer

from aitoolkit.core.logging import get_logger

logger = get_logger(__name__)

TRACER_NAME = "aitoolkit"

_tracer_provider: Optional[TracerProvider] = None


def configure_tracing(
    service_name: Optional[str] = None,
    otlp_endpoint: Optional[str] = None,
    sampling_rate: float = 1.0,
) -> TracerProvider:
    """
    Install an SDK tracer provider.

    Args:
        service_name: Service name (defaults to OTEL_SERVICE_NAME or aitoolkit)
        otlp_endpoint: OTLP endpoint (defaults to OTEL_EXPORTER_OTLP_ENDPOINT).
            Spans are only exported when an endpoint is known.
        sampling_rate: Sampling rate in [0.0, 1.0]
    """
    global _tracer_provider

    service_name = service_name or os.getenv("OTEL_SERVICE_NAME", "aitoolkit")
    otlp_endpoint = otlp_endpoint or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    sampling_rate = float(os.getenv("OTEL_TRACES_SAMPLER_ARG", str(sampling_rate)))

    provider = TracerProvider(
        resource=Resource.create({"service.name": service_name}),
        sampler=TraceIdRatioBased(sampling_rate),
    )

    if otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint)))
        logger.info("tracing_otlp_enabled", endpoint=otlp_endpoint, service=service_name)
    else:
        logger.info("tracing_configured_without_exporter", service=service_name)

    trace.set_tracer_provider(provider)
    _tracer_provider = provider
    return provider


def get_tracer() -> Tracer:
    """Tracer for toolkit spans (no-op until configure_tracing() runs)."""
    return trace.get_tracer(TRACER_NAME)


def set_span_attribute(key: str, value: Any) -> None:
    span = trace.get_current_span()
    if span.is_recording() and value is not None:
        span.set_attribute(key, value)


def record_exception(exception: BaseException) -> None:
    """Attach an exception to the current span and mark it as failed."""
    span = trace.get_current_span()
    if span.is_recording():
        span.record_exception(exception)
        span.set_status(Status(StatusCode.ERROR, str(exception)))


def shutdown_tracing() -> None:
    global _tracer_provider
    if _tracer_provider is not None:
        _tracer_provider.shutdown()
        _tracer_provider = None
