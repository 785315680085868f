"""
Registry of application actions that decisions can dispatch to.

Malformed requests (bad handler, duplicate name, bad decision shape, unknown
action, rejected parameters) raise ActionError subclasses. Failures inside a
handler are business outcomes: they are caught and returned as
ExecutionResult(success=False, error=...).

The registry is not synchronized. Concurrent execute() calls only read
descriptors and are safe; do not register/unregister while dispatches that
depend on the catalog are in flight.
"""
import copy
import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from aitoolkit.core.errors import (
    DuplicateActionError,
    InvalidDecisionError,
    InvalidHandlerError,
    InvalidParametersError,
    UnknownActionError,
)
from aitoolkit.core.logging import get_logger
from aitoolkit.core.metrics import record_action_execution
from aitoolkit.services.schema import ExecutionResult

logger = get_logger(__name__)

ActionHandler = Callable[[Dict[str, Any]], Any]
ParameterValidator = Callable[[Dict[str, Any]], bool]


def _always_valid(parameters: Dict[str, Any]) -> bool:
    return True


@dataclass(frozen=True)
class ActionDescriptor:
    name: str
    handler: ActionHandler
    description: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    examples: List[Any] = field(default_factory=list)
    requires_confirmation: bool = False
    validate: ParameterValidator = _always_valid


def _metadata_value(metadata: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in metadata:
            return metadata[key]
    return None


def _decision_field(decision: Any, key: str) -> Any:
    if isinstance(decision, Mapping):
        return decision.get(key)
    return getattr(decision, key, None)


class ActionRegistry:
    """Name-keyed catalog of action handlers with validated dispatch."""

    def __init__(self) -> None:
        self._actions: Dict[str, ActionDescriptor] = {}

    def register(
        self,
        name: str,
        handler: ActionHandler,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> "ActionRegistry":
        """
        Register a handler under name.

        Args:
            name: Unique action name
            handler: Callable taking the parameter mapping; may be async
            metadata: Optional description, parameters, examples,
                requires_confirmation (or requiresConfirmation), validate

        Returns:
            The registry, for chaining.

        Raises:
            InvalidHandlerError: handler is not callable
            DuplicateActionError: name is already registered
        """
        if not callable(handler):
            raise InvalidHandlerError(
                f'Handler for action "{name}" must be callable',
                details={"action": name},
            )

        if name in self._actions:
            raise DuplicateActionError(
                f"Action {name} already registered",
                details={"action": name},
            )

        metadata = metadata or {}
        validate = _metadata_value(metadata, "validate")
        if validate is not None and not callable(validate):
            raise InvalidHandlerError(
                f'Validator for action "{name}" must be callable',
                details={"action": name},
            )

        self._actions[name] = ActionDescriptor(
            name=name,
            handler=handler,
            description=_metadata_value(metadata, "description") or f"Execute {name}",
            parameters=dict(_metadata_value(metadata, "parameters") or {}),
            examples=list(_metadata_value(metadata, "examples") or []),
            requires_confirmation=bool(
                _metadata_value(metadata, "requires_confirmation", "requiresConfirmation")
            ),
            validate=validate or _always_valid,
        )
        logger.debug("action_registered", action=name)
        return self

    def unregister(self, name: str) -> bool:
        return self._actions.pop(name, None) is not None

    def has(self, name: str) -> bool:
        return name in self._actions

    def get(self, name: str) -> Optional[ActionDescriptor]:
        return self._actions.get(name)

    def clear(self) -> None:
        self._actions.clear()

    def size(self) -> int:
        return len(self._actions)

    def __len__(self) -> int:
        return len(self._actions)

    def __contains__(self, name: object) -> bool:
        return name in self._actions

    def list(self) -> List[Dict[str, str]]:
        """Snapshot of {name, description} pairs in registration order."""
        return [
            {"name": descriptor.name, "description": descriptor.description}
            for descriptor in self._actions.values()
        ]

    def get_available_actions(self) -> List[Dict[str, Any]]:
        """
        Describe the action space for a decision call.

        Records are keyed by "action" (not "name") and are deep copies, so
        callers may modify them freely.
        """
        return [
            {
                "action": descriptor.name,
                "description": descriptor.description,
                "parameters": copy.deepcopy(descriptor.parameters),
                "examples": copy.deepcopy(descriptor.examples),
            }
            for descriptor in self._actions.values()
        ]

    async def execute(self, decision: Any) -> ExecutionResult:
        """
        Validate a decision and run its handler.

        Args:
            decision: Mapping or object with "action" and optional "parameters"
                (a DecideResult works as-is)

        Returns:
            ExecutionResult; success=False with the handler's message when the
            handler raises.

        Raises:
            InvalidDecisionError: decision missing, without an action, or the
                action is not a string
            UnknownActionError: action not registered
            InvalidParametersError: the action's validator rejected the parameters
        """
        action_name = _decision_field(decision, "action") if decision is not None else None
        if not action_name:
            raise InvalidDecisionError("Invalid decision: missing action")
        if not isinstance(action_name, str):
            raise InvalidDecisionError(
                "Invalid decision: action must be a string",
                details={"action_type": type(action_name).__name__},
            )

        descriptor = self._actions.get(action_name)
        if descriptor is None:
            raise UnknownActionError(
                f"Unknown action: {action_name}",
                details={"action": action_name, "available": list(self._actions)},
            )

        parameters = _decision_field(decision, "parameters") or {}

        try:
            accepted = descriptor.validate(parameters)
        except Exception as exc:
            raise InvalidParametersError(
                f"Invalid parameters for action: {action_name}",
                details={"action": action_name, "validator_error": str(exc)},
            ) from exc
        if not accepted:
            raise InvalidParametersError(
                f"Invalid parameters for action: {action_name}",
                details={"action": action_name},
            )

        if descriptor.requires_confirmation:
            # TODO: route through a pluggable approval callback once one exists.
            logger.warning("action_requires_confirmation", action=action_name)

        try:
            result = descriptor.handler(parameters)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            record_action_execution(action_name, success=False)
            logger.warning(
                "action_execution_failed",
                action=action_name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return ExecutionResult(
                success=False,
                action=action_name,
                error=str(exc) or type(exc).__name__,
            )

        record_action_execution(action_name, success=True)
        logger.info("action_executed", action=action_name)
        return ExecutionResult(success=True, action=action_name, result=result)
