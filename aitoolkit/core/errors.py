"""
Exception types raised by the toolkit.

Contract errors (bad registration, bad decision shape, missing configuration)
are raised immediately and are not retried. Provider failures and handler
failures are reported inside result envelopes instead.
"""
from typing import Any, Dict, Optional


class ToolkitError(Exception):
    """
    Base class for all toolkit errors.

    Invariants:
    - message is a non-empty string
    - details is always a dict (empty when there is nothing to add)
    """

    default_code = "toolkit_error"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        safe_message = message.strip() if isinstance(message, str) else ""
        if not safe_message:
            safe_message = "Unknown toolkit error"
        super().__init__(safe_message)
        self.message = safe_message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
            "error_type": self.__class__.__name__,
        }


class ConfigurationError(ToolkitError):
    default_code = "configuration_error"


class EngineNotConfiguredError(ConfigurationError):
    """Raised when an LLM engine is requested that has no API key or is unknown."""

    default_code = "engine_not_configured"


class CloudModeUnavailableError(ConfigurationError):
    """Raised when only a toolkit token is configured and no engine key."""

    default_code = "cloud_mode_unavailable"


class ExecutorNotConfiguredError(ConfigurationError):
    default_code = "executor_not_configured"


class UnknownDomainError(ToolkitError):
    default_code = "unknown_domain"


class ActionError(ToolkitError):
    """Base class for action registry contract errors."""

    default_code = "action_error"


class InvalidHandlerError(ActionError):
    default_code = "invalid_handler"


class DuplicateActionError(ActionError):
    default_code = "duplicate_action"


class InvalidDecisionError(ActionError):
    default_code = "invalid_decision"


class UnknownActionError(ActionError):
    default_code = "unknown_action"


class InvalidParametersError(ActionError):
    default_code = "invalid_parameters"


__all__ = [
    "ToolkitError",
    "ConfigurationError",
    "EngineNotConfiguredError",
    "CloudModeUnavailableError",
    "ExecutorNotConfiguredError",
    "UnknownDomainError",
    "ActionError",
    "InvalidHandlerError",
    "DuplicateActionError",
    "InvalidDecisionError",
    "UnknownActionError",
    "InvalidParametersError",
]
