"""
Unit tests for structured logging configuration.

Tests verify:
- Logging configuration works for JSON and console output
- Context variables (trace_id, session_id, operation) are set and restored
- The toolkit processor adds context to log entries
- ID generation works
"""
import logging
from io import StringIO

from aitoolkit.core import logging as logging_module
from aitoolkit.core.logging import (
    SERVICE_NAME,
    add_toolkit_context,
    configure_logging,
    generate_session_id,
    generate_trace_id,
    get_logger,
    get_operation,
    get_session_id,
    get_trace_id,
    operation_context,
    set_trace_id,
)


class TestLoggingConfiguration:
    def test_configure_logging_json_output(self):
        output = StringIO()
        configure_logging(log_level="INFO", json_output=True)

        root_logger = logging.getLogger()
        handler = logging.StreamHandler(output)
        handler.setLevel(logging.INFO)
        root_logger.addHandler(handler)
        root_logger.setLevel(logging.INFO)

        try:
            get_logger("aitoolkit.test").info("test_message", test_field="test_value")
            handler.flush()
        finally:
            root_logger.removeHandler(handler)

        assert "test_message" in output.getvalue()
        assert "test_value" in output.getvalue()

    def test_configure_logging_console_output(self):
        configure_logging(log_level="INFO", json_output=False)
        get_logger(__name__).info("test_message", test_field="test_value")

    def test_service_name_default(self):
        assert SERVICE_NAME == "aitoolkit"


class TestContextVariables:
    def test_trace_id(self):
        set_trace_id("trace-123")
        try:
            assert get_trace_id() == "trace-123"
        finally:
            set_trace_id(None)
        assert get_trace_id() is None

    def test_operation_context_sets_and_restores(self):
        assert get_operation() is None

        with operation_context("extract", "session-1"):
            assert get_operation() == "extract"
            assert get_session_id() == "session-1"

            with operation_context("validate"):
                assert get_operation() == "validate"
                assert get_session_id() == "session-1"

            assert get_operation() == "extract"

        assert get_operation() is None
        assert get_session_id() is None

    def test_operation_context_restores_on_error(self):
        try:
            with operation_context("decide", "s"):
                raise ValueError("boom")
        except ValueError:
            pass
        assert get_operation() is None


class TestProcessor:
    def test_adds_context_fields(self):
        set_trace_id("t-1")
        try:
            with operation_context("summarize", "s-1"):
                event = add_toolkit_context(None, "info", {"event": "x"})
        finally:
            set_trace_id(None)

        assert event["trace_id"] == "t-1"
        assert event["session_id"] == "s-1"
        assert event["operation"] == "summarize"
        assert event["service"] == logging_module.SERVICE_NAME
        assert "timestamp" in event

    def test_explicit_fields_are_not_overwritten(self):
        with operation_context("extract", "s-1"):
            event = add_toolkit_context(None, "info", {"event": "x", "operation": "custom"})
        assert event["operation"] == "custom"

    def test_no_context_fields_outside_operations(self):
        event = add_toolkit_context(None, "info", {"event": "x"})
        assert "trace_id" not in event
        assert "operation" not in event


def test_id_generation():
    session_id = generate_session_id()
    assert len(session_id) == 32
    assert session_id != generate_session_id()
    assert len(generate_trace_id()) == 36
