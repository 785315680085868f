"""
Unit tests for Prometheus metrics recording.
"""
from aitoolkit.core.metrics import (
    action_executions_total,
    get_metrics,
    get_metrics_content_type,
    llm_errors_total,
    llm_requests_total,
    operations_total,
    record_action_execution,
    record_llm_error,
    record_llm_request,
    record_llm_tokens,
    record_operation,
    llm_tokens_total,
)


def test_record_llm_request_defaults_operation_label():
    before = llm_requests_total.labels(engine="openai", model="gpt-4", operation="unknown")._value.get()
    record_llm_request("openai", "gpt-4", None, 0.2)
    after = llm_requests_total.labels(engine="openai", model="gpt-4", operation="unknown")._value.get()
    assert after == before + 1


def test_record_llm_error():
    before = llm_errors_total.labels(engine="anthropic", reason="timeout")._value.get()
    record_llm_error("anthropic", "timeout")
    assert llm_errors_total.labels(engine="anthropic", reason="timeout")._value.get() == before + 1


def test_zero_token_counts_are_skipped():
    before = llm_tokens_total.labels(engine="openai", model="m-zero", direction="output")._value.get()
    record_llm_tokens("openai", "m-zero", 5, 0)
    assert llm_tokens_total.labels(engine="openai", model="m-zero", direction="output")._value.get() == before
    assert llm_tokens_total.labels(engine="openai", model="m-zero", direction="input")._value.get() >= 5


def test_record_operation_status_labels():
    success_before = operations_total.labels(operation="extract", status="success")._value.get()
    failure_before = operations_total.labels(operation="extract", status="failure")._value.get()

    record_operation("extract", 0.5, True, 0.8)
    record_operation("extract", 0.5, False)

    assert operations_total.labels(operation="extract", status="success")._value.get() == success_before + 1
    assert operations_total.labels(operation="extract", status="failure")._value.get() == failure_before + 1


def test_non_numeric_confidence_does_not_raise():
    record_operation("decide", 0.1, True, "high")


def test_record_action_execution():
    before = action_executions_total.labels(action="notify", outcome="success")._value.get()
    record_action_execution("notify", True)
    assert action_executions_total.labels(action="notify", outcome="success")._value.get() == before + 1


def test_metrics_exposition():
    record_operation("summarize", 0.3, True, 1.0)
    body = get_metrics().decode("utf-8")

    assert "aitoolkit_operations_total" in body
    assert "aitoolkit_operation_duration_seconds" in body
    assert get_metrics_content_type().startswith("text/plain")
