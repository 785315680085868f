"""
Prometheus metrics for the toolkit.

Metrics Categories:
- LLM request metrics: rate, errors, latency, token usage per engine
- Operation metrics: outcome, latency and confidence of extract / validate /
  summarize / decide
- Parser and action metrics: parse failures, action execution outcomes

All metrics follow Prometheus naming conventions:
- Counters: _total suffix
- Histograms: _seconds suffix for durations
"""
from typing import Optional

from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    REGISTRY,
    CONTENT_TYPE_LATEST,
)

from aitoolkit.core.logging import get_logger

logger = get_logger(__name__)

registry = REGISTRY

# ============================================================================
# LLM REQUEST METRICS
# ============================================================================

llm_requests_total = Counter(
    "aitoolkit_llm_requests_total",
    "Total number of LLM provider requests",
    ["engine", "model", "operation"],
    registry=registry,
)

llm_request_duration_seconds = Histogram(
    "aitoolkit_llm_request_duration_seconds",
    "LLM provider request latency in seconds",
    ["engine", "operation"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
    registry=registry,
)

llm_errors_total = Counter(
    "aitoolkit_llm_errors_total",
    "Total number of failed LLM provider requests",
    ["engine", "reason"],
    registry=registry,
)

llm_tokens_total = Counter(
    "aitoolkit_llm_tokens_total",
    "Total number of tokens reported by LLM providers",
    ["engine", "model", "direction"],  # direction: input | output
    registry=registry,
)

# ============================================================================
# OPERATION METRICS
# ============================================================================

operations_total = Counter(
    "aitoolkit_operations_total",
    "Total number of toolkit operations",
    ["operation", "status"],  # status: success | failure
    registry=registry,
)

operation_duration_seconds = Histogram(
    "aitoolkit_operation_duration_seconds",
    "Toolkit operation latency in seconds",
    ["operation"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
    registry=registry,
)

operation_confidence = Histogram(
    "aitoolkit_operation_confidence",
    "Distribution of confidence values reported by operations",
    ["operation"],
    buckets=[0.0, 0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0],
    registry=registry,
)

# ============================================================================
# PARSER / ACTION METRICS
# ============================================================================

parse_failures_total = Counter(
    "aitoolkit_parse_failures_total",
    "Total number of LLM responses that could not be parsed as JSON",
    registry=registry,
)

action_executions_total = Counter(
    "aitoolkit_action_executions_total",
    "Total number of dispatched actions",
    ["action", "outcome"],  # outcome: success | failure
    registry=registry,
)


def record_llm_request(engine: str, model: str, operation: Optional[str], duration_seconds: float) -> None:
    op = operation or "unknown"
    llm_requests_total.labels(engine=engine, model=model, operation=op).inc()
    llm_request_duration_seconds.labels(engine=engine, operation=op).observe(duration_seconds)


def record_llm_error(engine: str, reason: str) -> None:
    """
    Record a failed provider request.

    Args:
        engine: Engine name (openai, anthropic)
        reason: Short machine-readable reason (timeout, http_error, circuit_open, ...)
    """
    llm_errors_total.labels(engine=engine, reason=reason).inc()


def record_llm_tokens(engine: str, model: str, input_tokens: int, output_tokens: int) -> None:
    if input_tokens > 0:
        llm_tokens_total.labels(engine=engine, model=model, direction="input").inc(input_tokens)
    if output_tokens > 0:
        llm_tokens_total.labels(engine=engine, model=model, direction="output").inc(output_tokens)


def record_operation(
    operation: str,
    duration_seconds: float,
    success: bool,
    confidence: Optional[float] = None,
) -> None:
    """
    Record the outcome of a toolkit operation.

    Args:
        operation: extract, validate, summarize or decide
        duration_seconds: Wall clock duration
        success: Whether the operation produced usable output
        confidence: Optional confidence value in [0.0, 1.0]
    """
    status = "success" if success else "failure"
    operations_total.labels(operation=operation, status=status).inc()
    operation_duration_seconds.labels(operation=operation).observe(duration_seconds)
    if confidence is not None:
        try:
            operation_confidence.labels(operation=operation).observe(float(confidence))
        except (TypeError, ValueError):
            logger.debug("operation_confidence_not_numeric", operation=operation, confidence=confidence)


def record_parse_failure() -> None:
    parse_failures_total.inc()


def record_action_execution(action: str, success: bool) -> None:
    outcome = "success" if success else "failure"
    action_executions_total.labels(action=action, outcome=outcome).inc()


def get_metrics() -> bytes:
    """
    Render all metrics in Prometheus text format.
    """
    return generate_latest(registry)


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
