"""
Unit tests for OpenTelemetry tracing helpers.
"""
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode

from aitoolkit.core.tracing import (
    configure_tracing,
    get_tracer,
    record_exception,
    set_span_attribute,
    shutdown_tracing,
)


def test_helpers_are_safe_without_active_span():
    set_span_attribute("aitoolkit.operation", "extract")
    record_exception(ValueError("ignored"))
    assert get_tracer() is not None


def test_span_attributes_and_exceptions_are_recorded(monkeypatch):
    monkeypatch.delenv("OTEL_EXPORTER_OTLP_ENDPOINT", raising=False)
    monkeypatch.delenv("OTEL_TRACES_SAMPLER_ARG", raising=False)

    provider = configure_tracing(service_name="aitoolkit-test")
    exporter = InMemorySpanExporter()
    provider.add_span_processor(SimpleSpanProcessor(exporter))

    try:
        tracer = provider.get_tracer("aitoolkit")
        with tracer.start_as_current_span("llm.request"):
            set_span_attribute("aitoolkit.operation", "decide")
            set_span_attribute("aitoolkit.skipped", None)
            record_exception(RuntimeError("provider down"))

        spans = exporter.get_finished_spans()
        assert len(spans) == 1
        span = spans[0]
        assert span.resource.attributes["service.name"] == "aitoolkit-test"
        assert span.attributes["aitoolkit.operation"] == "decide"
        assert "aitoolkit.skipped" not in span.attributes
        assert span.status.status_code == StatusCode.ERROR
        assert span.events[0].name == "exception"
    finally:
        shutdown_tracing()
