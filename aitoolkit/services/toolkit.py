"""
AIToolkit: the four operations (extract, validate, summarize, decide) plus
action execution.

Responsibilities:
- Build prompts (base prompt, stored context, per-call context)
- Call the configured LLM engine and recover JSON from its answer
- Wrap everything in result envelopes; provider and parse failures become
  success=False instead of exceptions
- Dispatch decisions to registered actions

Instances are explicit context objects: construct one per configuration and
pass it where it is needed. There is no process-global toolkit.
"""
import inspect
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

from aitoolkit.core.config import ConfigLoader, ToolkitConfig, merge_config, normalize_options
from aitoolkit.core.errors import ExecutorNotConfiguredError, UnknownDomainError
from aitoolkit.core.logging import generate_session_id, get_logger, operation_context
from aitoolkit.core.metrics import record_operation
from aitoolkit.services.actions.registry import ActionHandler, ActionRegistry
from aitoolkit.services.llm.client import LLMClient
from aitoolkit.services.llm.parser import ResponseParser, is_parse_failure
from aitoolkit.services.presets import DOMAIN_ALIASES, PRESETS, resolve_preset
from aitoolkit.services.prompts import (
    Messages,
    compose_system_prompt,
    decide_prompt,
    extract_prompt,
    extraction_check_prompt,
    summarize_prompt,
    to_json,
    validate_prompt,
)
from aitoolkit.services.schema import (
    DecideResult,
    ExecutionResult,
    ExtractResult,
    OperationResult,
    SummarizeResult,
    ValidateResult,
)

logger = get_logger(__name__)

REQUEST_OPTION_KEYS = frozenset({"engine", "model", "temperature", "max_tokens"})

# Only these fields ever leave the process in operation logs
LOGGED_FIELDS = (
    "duration",
    "success",
    "error",
    "confidence",
    "score",
    "engine",
    "schema_size",
    "action_count",
    "chosen_action",
    "input_length",
    "output_length",
)


def _field(value: Any, *keys: str) -> Any:
    if not isinstance(value, Mapping):
        return None
    for key in keys:
        if key in value:
            return value[key]
    return None


def _as_float(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else to_json(value)


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class AIToolkit:
    """
    Stateful toolkit bound to one configuration.

    Pass either a resolved ToolkitConfig or keyword options (merged over
    defaults, config file and environment by config_loader), not both.

    Example:
        >>> security = AIToolkit(preset="security", engines={"openai": "sk-..."})
        >>> result = await security.decide(alert, ["block_ip", "ignore"])
    """

    def __init__(
        self,
        config: Optional[ToolkitConfig] = None,
        *,
        llm_client: Optional[LLMClient] = None,
        registry: Optional[ActionRegistry] = None,
        config_loader: Optional[ConfigLoader] = None,
        **options: Any,
    ):
        if config is not None and options:
            raise TypeError(
                "Pass either config or keyword options, not both "
                f"(got {', '.join(sorted(options))})"
            )

        if config is None:
            options = normalize_options(options)
            preset = options.get("preset")
            if preset:
                preset = options["preset"] = DOMAIN_ALIASES.get(preset, preset)
                if preset in PRESETS:
                    options = {**resolve_preset(preset), **options}
                else:
                    logger.warning("unknown_preset_ignored", preset=preset, available=list(PRESETS))
            config = (config_loader or ConfigLoader()).load(options)

        self.config = config
        self.base_prompt = config.base_prompt
        self.context: Dict[str, Any] = {}
        self.session_id = generate_session_id()
        self.parser = ResponseParser(debug=config.debug)
        self._llm_client = llm_client or LLMClient(config)

        if registry is not None:
            self.registry: Optional[ActionRegistry] = registry
        else:
            self.registry = ActionRegistry() if config.with_executor else None

        self.last_result: Optional[OperationResult] = None

    @property
    def validate_outputs(self) -> bool:
        return self.config.validate_outputs

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------

    def add_context(self, key: str, value: Any) -> "AIToolkit":
        self.context[key] = value
        return self

    def remove_context(self, key: str) -> "AIToolkit":
        self.context.pop(key, None)
        return self

    def clear_context(self) -> "AIToolkit":
        self.context.clear()
        return self

    def get_context_string(self) -> str:
        if not self.context:
            return ""
        parts = [f"{key}: {to_json(value)}" for key, value in self.context.items()]
        return "\nContext:\n" + "\n".join(parts)

    def build_messages(
        self,
        system_prompt: str,
        user_prompt: str,
        additional_context: Any = None,
    ) -> Messages:
        system = compose_system_prompt(
            system_prompt,
            base_prompt=self.base_prompt,
            context_string=self.get_context_string(),
            additional_context=additional_context,
        )
        return Messages(system=system, user=user_prompt)

    def with_context(self, additional_prompt: str) -> "AIToolkit":
        """New toolkit whose base prompt is extended with additional_prompt."""
        new_prompt = f"{self.base_prompt}\n\n{additional_prompt}" if self.base_prompt else additional_prompt
        return AIToolkit(
            config=self.config.model_copy(update={"base_prompt": new_prompt}),
            llm_client=self._llm_client,
        )

    def for_domain(self, domain: str) -> "AIToolkit":
        """
        New toolkit specialised for a preset domain.

        Raises:
            UnknownDomainError if domain is not a preset name.
        """
        if domain not in PRESETS:
            raise UnknownDomainError(
                f"Unknown domain: {domain}. Available: {', '.join(PRESETS)}",
                details={"domain": domain, "available": list(PRESETS)},
            )
        options = merge_config(self.config.to_options(), resolve_preset(domain))
        options["preset"] = domain
        return AIToolkit(
            config=ToolkitConfig.model_validate(options),
            llm_client=self._llm_client,
        )

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def parse_json(self, response: Any) -> Any:
        return self.parser.parse(response)

    @staticmethod
    def _request_options(options: Mapping[str, Any]) -> Dict[str, Any]:
        normalized = normalize_options(options)
        unknown = set(normalized) - REQUEST_OPTION_KEYS
        if unknown:
            raise TypeError(f"Unexpected request options: {', '.join(sorted(unknown))}")
        return normalized

    async def _request(self, messages: Messages, operation: str, options: Mapping[str, Any]) -> str:
        engine = options.get("engine") or self.config.default_engine
        return await self._llm_client.complete(
            messages,
            engine=engine,
            model=options.get("model") or self.config.get_model(engine),
            temperature=options.get("temperature", self.config.temperature),
            max_tokens=options.get("max_tokens", self.config.max_tokens),
            operation=operation,
        )

    def _previous_value(self) -> Any:
        last = self.last_result
        if last is None:
            return None
        data = getattr(last, "data", None)
        return data if data else last.to_dict()

    def _track(self, operation: str, start: float, success: bool, confidence: Optional[float] = None, **fields: Any) -> None:
        duration = time.perf_counter() - start
        if self.config.telemetry:
            record_operation(operation, duration, success, confidence)
        if self.config.logging:
            payload = {"duration": round(duration, 4), "success": success, "confidence": confidence, **fields}
            logger.info(
                "toolkit_operation",
                **{key: payload[key] for key in LOGGED_FIELDS if payload.get(key) is not None},
            )

    def _fail(self, operation: str, start: float, exc: Exception) -> str:
        logger.warning(
            "operation_failed",
            error=str(exc),
            error_type=type(exc).__name__,
        )
        self._track(operation, start, False, error=type(exc).__name__)
        return str(exc) or type(exc).__name__

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def extract(
        self,
        data: Any,
        schema: Any,
        *,
        validate: bool = False,
        additional_context: Any = None,
        **options: Any,
    ) -> ExtractResult:
        """
        Structure unstructured data according to schema.

        Args:
            data: Input text or value
            schema: Mapping of field name to description (or a list of field names)
            validate: Run a second LLM pass that checks the extraction
            additional_context: Extra context for this call only
            **options: engine, model, temperature, max_tokens
        """
        request_options = self._request_options(options)
        start = time.perf_counter()

        with operation_context("extract", self.session_id):
            try:
                messages = self.build_messages(*extract_prompt(data, schema), additional_context)
                response = await self._request(messages, "extract", request_options)
                extracted = self.parse_json(response)

                validation = None
                if self.validate_outputs or validate:
                    validation = await self.validate_extraction(extracted, schema, data)

                failed = is_parse_failure(extracted)
                result = ExtractResult(
                    success=not failed,
                    data=None if failed else extracted,
                    confidence=self.calculate_confidence(extracted, schema),
                    validation=validation,
                )
            except Exception as exc:
                return ExtractResult(success=False, data=None, confidence=0.0, error=self._fail("extract", start, exc))

            self.last_result = result
            self._track(
                "extract",
                start,
                result.success,
                result.confidence,
                schema_size=len(schema) if hasattr(schema, "__len__") else None,
                engine=request_options.get("engine") or self.config.default_engine,
            )
            return result

    async def validate(
        self,
        criteria: str,
        subject: Any = None,
        reference: Any = None,
        *,
        additional_context: Any = None,
        **options: Any,
    ) -> ValidateResult:
        """
        Assess subject against criteria.

        When subject is empty the previous result is validated instead.
        """
        request_options = self._request_options(options)
        start = time.perf_counter()

        with operation_context("validate", self.session_id):
            try:
                if isinstance(criteria, str) and not subject and self.last_result is not None:
                    subject = self._previous_value()

                messages = self.build_messages(*validate_prompt(criteria, subject, reference), additional_context)
                response = await self._request(messages, "validate", request_options)
                validation = self.parse_json(response)

                recommendation = _field(validation, "recommendation")
                result = ValidateResult(
                    success=not is_parse_failure(validation),
                    score=_as_float(_field(validation, "score")),
                    reasoning=_as_text(_field(validation, "reasoning")),
                    confidence=_as_float(_field(validation, "confidence")),
                    recommendation=str(recommendation) if recommendation is not None else None,
                )
            except Exception as exc:
                return ValidateResult(success=False, reasoning=str(exc), error=self._fail("validate", start, exc))

            self.last_result = result
            self._track("validate", start, result.success, result.confidence, score=result.score)
            return result

    async def summarize(
        self,
        content: Any = None,
        *,
        max_length: int = 200,
        focus: str = "key_insights",
        additional_context: Any = None,
        **options: Any,
    ) -> SummarizeResult:
        """
        Condense content into a summary and key points.

        When content is empty the previous result is summarized instead.
        """
        request_options = self._request_options(options)
        start = time.perf_counter()

        with operation_context("summarize", self.session_id):
            try:
                if not content and self.last_result is not None:
                    content = self._previous_value()

                messages = self.build_messages(*summarize_prompt(content, max_length, focus), additional_context)
                response = await self._request(messages, "summarize", request_options)
                summary = self.parse_json(response)

                key_points = _field(summary, "keyPoints", "key_points") or []
                result = SummarizeResult(
                    success=not is_parse_failure(summary),
                    summary=_as_text(_field(summary, "summary")),
                    key_points=key_points if isinstance(key_points, list) else [key_points],
                    confidence=_as_float(_field(summary, "confidence")),
                )
            except Exception as exc:
                return SummarizeResult(success=False, error=self._fail("summarize", start, exc))

            self.last_result = result
            self._track(
                "summarize",
                start,
                result.success,
                result.confidence,
                input_length=len(to_json(content)),
                output_length=len(result.summary),
            )
            return result

    async def decide(
        self,
        context: Any,
        actions: Optional[Sequence[Any]] = None,
        *,
        additional_context: Any = None,
        **options: Any,
    ) -> DecideResult:
        """
        Choose the best action for context.

        Args:
            context: Situation to decide on; the previous result when empty
            actions: Action names or records from get_available_actions();
                defaults to the registered actions
        """
        request_options = self._request_options(options)
        start = time.perf_counter()

        if actions is None:
            actions = self.available_actions()

        with operation_context("decide", self.session_id):
            try:
                if not context and self.last_result is not None:
                    context = self._previous_value()

                messages = self.build_messages(*decide_prompt(context, actions), additional_context)
                response = await self._request(messages, "decide", request_options)
                decision = self.parse_json(response)

                action = _field(decision, "action")
                parameters = _field(decision, "parameters")
                result = DecideResult(
                    success=not is_parse_failure(decision),
                    action=str(action) if action else None,
                    reasoning=_as_text(_field(decision, "reasoning")),
                    confidence=_as_float(_field(decision, "confidence")),
                    parameters=parameters if isinstance(parameters, dict) else {},
                )
            except Exception as exc:
                return DecideResult(success=False, reasoning=str(exc), error=self._fail("decide", start, exc))

            self.last_result = result
            self._track(
                "decide",
                start,
                result.success,
                result.confidence,
                action_count=len(actions),
                chosen_action=result.action,
            )

            if self.config.audit:
                logger.info(
                    "decision_audit",
                    context=context,
                    available_actions=list(actions),
                    decision=result.model_dump(),
                    timestamp=datetime.now(timezone.utc).isoformat(),
                )

            return result

    async def validate_extraction(self, extracted: Any, schema: Any, original_data: Any) -> Any:
        """Second LLM pass judging an extraction; returns the parsed verdict."""
        messages = extraction_check_prompt(extracted, schema, original_data)
        response = await self._request(messages, "validate_extraction", {})
        return self.parse_json(response)

    @staticmethod
    def calculate_confidence(extracted: Any, schema: Any) -> float:
        """Share of schema fields with a non-empty value in extracted."""
        if not extracted or is_parse_failure(extracted):
            return 0.0

        if isinstance(schema, Mapping):
            keys = list(schema)
        elif isinstance(schema, (list, tuple)):
            keys = [key for key in schema if isinstance(key, str)]
        else:
            keys = []

        if not keys or not isinstance(extracted, Mapping):
            return 0.0

        filled = 0
        for key in keys:
            value = extracted.get(key)
            if value is not None and value != "":
                filled += 1
        return filled / len(keys)

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    async def chain(self, *operations: Any) -> Any:
        """
        Run operations in order, feeding each the previous result.

        Each operation is either a callable taking the previous result, or a
        tuple (method_name, *args) calling that toolkit method with the
        previous result appended as the last positional argument. Unknown
        method names are skipped.
        """
        result = None
        for operation in operations:
            if callable(operation):
                result = await _resolve(operation(result))
            elif isinstance(operation, (list, tuple)) and operation:
                method_name, *args = operation
                method = getattr(self, method_name, None) if not str(method_name).startswith("_") else None
                if callable(method):
                    result = await _resolve(method(*args, result))
                else:
                    logger.debug("chain_step_skipped", method=method_name)
        return result

    def pipeline(self, *steps: Any) -> Callable[[Any], Awaitable[Any]]:
        """
        Build a reusable async pipeline.

        Steps are callables taking (toolkit, value), or mappings
        {"method": name, "args": [...]} calling method(value, *args).
        """

        async def run(value: Any) -> Any:
            result = value
            for step in steps:
                if callable(step):
                    result = await _resolve(step(self, result))
                elif isinstance(step, Mapping) and step.get("method"):
                    method = getattr(self, step["method"])
                    result = await _resolve(method(result, *step.get("args", [])))
            return result

        return run

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def register_action(
        self,
        name: str,
        handler: ActionHandler,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> ActionRegistry:
        if self.registry is None:
            self.registry = ActionRegistry()
        return self.registry.register(name, handler, metadata)

    def available_actions(self) -> List[Dict[str, Any]]:
        return self.registry.get_available_actions() if self.registry is not None else []

    async def execute(self, decision: Any = None) -> ExecutionResult:
        """
        Dispatch a decision to its registered action.

        With no decision, the last decide() result is used if it named an action.

        Raises:
            ExecutorNotConfiguredError when no action has been registered
            ActionError subclasses for malformed or unknown decisions
        """
        if self.registry is None:
            raise ExecutorNotConfiguredError(
                "Executor not configured. Initialize with with_executor=True or register an action."
            )

        if decision is None and self.last_result is not None and getattr(self.last_result, "action", None):
            decision = self.last_result

        with operation_context("execute", self.session_id):
            return await self.registry.execute(decision)


def configure(**options: Any) -> AIToolkit:
    """Build a toolkit from options (file, env and defaults fill the rest)."""
    return AIToolkit(**options)


def create_ai(domain: str, **options: Any) -> AIToolkit:
    """
    Build a toolkit for a preset domain.

    Accepts preset names and the short alias "support".

    Raises:
        UnknownDomainError if domain is not a preset.
    """
    preset = DOMAIN_ALIASES.get(domain, domain)
    if preset not in PRESETS:
        raise UnknownDomainError(
            f"Unknown domain: {domain}. Available: {', '.join(PRESETS)}",
            details={"domain": domain, "available": list(PRESETS)},
        )
    return AIToolkit(preset=preset, **options)
