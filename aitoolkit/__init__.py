"""
aitoolkit: the four fundamental LLM operations (extract, validate, summarize,
decide) and a registry for executing the resulting decisions.

Usage:
    from aitoolkit import AIToolkit, create_ai

    toolkit = AIToolkit(engines={"openai": "sk-..."})
    result = await toolkit.extract(email_text, {"sender": "string", "amount": "number"})

    security = create_ai("security")
    decision = await security.decide(alert, ["block_ip", "escalate", "ignore"])
"""
from aitoolkit.core.config import ConfigLoader, ToolkitConfig, load_config
from aitoolkit.core.errors import (
    ActionError,
    ConfigurationError,
    DuplicateActionError,
    EngineNotConfiguredError,
    ExecutorNotConfiguredError,
    InvalidDecisionError,
    InvalidHandlerError,
    InvalidParametersError,
    ToolkitError,
    UnknownActionError,
    UnknownDomainError,
)
from aitoolkit.services.actions.registry import ActionDescriptor, ActionRegistry
from aitoolkit.services.llm.parser import ResponseParser, is_parse_failure, parse_response
from aitoolkit.services.presets import PRESETS
from aitoolkit.services.schema import (
    DecideResult,
    Decision,
    ExecutionResult,
    ExtractResult,
    SummarizeResult,
    ValidateResult,
)
from aitoolkit.services.toolkit import AIToolkit, configure, create_ai

__version__ = "1.0.0"

__all__ = [
    "AIToolkit",
    "configure",
    "create_ai",
    "PRESETS",
    "ConfigLoader",
    "ToolkitConfig",
    "load_config",
    "ActionRegistry",
    "ActionDescriptor",
    "ResponseParser",
    "parse_response",
    "is_parse_failure",
    "ExtractResult",
    "ValidateResult",
    "SummarizeResult",
    "DecideResult",
    "Decision",
    "ExecutionResult",
    "ToolkitError",
    "ConfigurationError",
    "EngineNotConfiguredError",
    "ExecutorNotConfiguredError",
    "UnknownDomainError",
    "ActionError",
    "InvalidHandlerError",
    "DuplicateActionError",
    "InvalidDecisionError",
    "UnknownActionError",
    "InvalidParametersError",
]
