"""
Async LLM client for the toolkit operations.

Design constraints:
- No provider SDKs: plain HTTP (httpx) against the providers' REST APIs
- One circuit breaker per engine
- Every request is counted, timed and traced

Supported engines:
- openai:    POST {api_base}/chat/completions (OpenAI-compatible servers work too)
- anthropic: POST {api_base}/messages
"""
import time
from typing import Any, Dict, Optional

import httpx

from aitoolkit.core.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError
from aitoolkit.core.config import SUPPORTED_ENGINES, ToolkitConfig
from aitoolkit.core.errors import CloudModeUnavailableError, EngineNotConfiguredError
from aitoolkit.core.logging import get_logger
from aitoolkit.core.metrics import record_llm_error, record_llm_request, record_llm_tokens
from aitoolkit.core.tracing import get_tracer, record_exception, set_span_attribute
from aitoolkit.services.prompts import Messages

logger = get_logger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class LLMResponseError(Exception):
    """Raised when a provider answers with a body we cannot read text from."""

    def __init__(self, engine: str, message: str, raw: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.engine = engine
        self.raw = raw


class LLMClient:
    """Async HTTP client for chat completions across engines."""

    def __init__(self, config: ToolkitConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport
        self._breakers: Dict[str, CircuitBreaker] = {
            engine: CircuitBreaker(name=f"llm_{engine}") for engine in SUPPORTED_ENGINES
        }

    def circuit_breaker(self, engine: str) -> CircuitBreaker:
        return self._breakers[engine]

    def _require_engine(self, engine: str) -> str:
        """
        Return the API key for engine.

        Raises:
            CloudModeUnavailableError when only a toolkit token is configured
            EngineNotConfiguredError when the engine is unknown or has no key
        """
        if self.config.cloud_mode:
            raise CloudModeUnavailableError(
                "Cloud mode requires an AI Toolkit token service, which is not available. "
                "Configure an engine API key instead."
            )
        if engine not in SUPPORTED_ENGINES:
            raise EngineNotConfiguredError(
                f"Unknown engine: {engine}",
                details={"engine": engine, "supported": list(SUPPORTED_ENGINES)},
            )
        api_key = self.config.get_api_key(engine)
        if not api_key:
            raise EngineNotConfiguredError(
                f"AI engine {engine} not configured. Pass an API key or set "
                f"{engine.upper()}_API_KEY.",
                details={"engine": engine},
            )
        return api_key

    async def _post(self, url: str, headers: Dict[str, str], payload: Dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self.config.timeout_seconds,
            transport=self._transport,
        ) as client:
            response = await client.post(url, headers=headers, json=payload)
        response.raise_for_status()
        return response

    def _build_request(
        self,
        engine: str,
        api_key: str,
        messages: Messages,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> tuple:
        base = self.config.get_api_base(engine)
        if engine == "openai":
            headers = {
                "Content-Type": "application/json",
                "Authorization": f"Bearer {api_key}",
            }
            payload = {
                "model": model,
                "messages": [
                    {"role": "system", "content": messages.system},
                    {"role": "user", "content": messages.user},
                ],
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
            return f"{base}/chat/completions", headers, payload

        headers = {
            "Content-Type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        payload = {
            "model": model,
            "system": messages.system,
            "messages": [{"role": "user", "content": messages.user}],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        return f"{base}/messages", headers, payload

    @staticmethod
    def _read_text(engine: str, data: Dict[str, Any]) -> str:
        try:
            if engine == "openai":
                return data["choices"][0]["message"]["content"] or ""
            return data["content"][0]["text"] or ""
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMResponseError(engine, f"Unexpected {engine} response shape", raw=data) from exc

    @staticmethod
    def _read_usage(engine: str, data: Dict[str, Any]) -> tuple:
        usage = data.get("usage") or {}
        if engine == "openai":
            return int(usage.get("prompt_tokens") or 0), int(usage.get("completion_tokens") or 0)
        return int(usage.get("input_tokens") or 0), int(usage.get("output_tokens") or 0)

    async def complete(
        self,
        messages: Messages,
        *,
        engine: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        operation: Optional[str] = None,
    ) -> str:
        """
        Run one chat completion and return the response text.

        Args:
            messages: System and user prompt
            engine: openai | anthropic (defaults to config.default_engine)
            model: Model override (defaults to config.models[engine])
            temperature: Sampling temperature override
            max_tokens: Completion token limit override
            operation: Operation label for metrics and logs

        Raises:
            ConfigurationError subclasses when the engine cannot be used,
            CircuitBreakerOpenError, httpx errors, LLMResponseError.
            Operations catch these and report success=False.
        """
        engine = engine or self.config.default_engine
        api_key = self._require_engine(engine)
        model = model or self.config.get_model(engine)
        temperature = self.config.temperature if temperature is None else temperature
        max_tokens = max_tokens or self.config.max_tokens

        url, headers, payload = self._build_request(engine, api_key, messages, model, temperature, max_tokens)

        tracer = get_tracer()
        with tracer.start_as_current_span("llm.request") as span:
            span.set_attribute("llm.engine", engine)
            span.set_attribute("llm.model", model)
            set_span_attribute("aitoolkit.operation", operation)

            start = time.perf_counter()
            sent = True
            try:
                response = await self._breakers[engine].call_async(self._post, url, headers, payload)
            except CircuitBreakerOpenError as exc:
                sent = False
                record_llm_error(engine, "circuit_open")
                record_exception(exc)
                logger.warning("llm_circuit_open", engine=engine, operation=operation)
                raise
            except httpx.TimeoutException as exc:
                record_llm_error(engine, "timeout")
                record_exception(exc)
                logger.warning(
                    "llm_timeout",
                    engine=engine,
                    operation=operation,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                raise
            except httpx.HTTPStatusError as exc:
                record_llm_error(engine, f"http_{exc.response.status_code}")
                record_exception(exc)
                logger.warning(
                    "llm_http_status_error",
                    engine=engine,
                    operation=operation,
                    status_code=exc.response.status_code,
                    error=str(exc),
                )
                raise
            except httpx.HTTPError as exc:
                record_llm_error(engine, "http_error")
                record_exception(exc)
                logger.warning(
                    "llm_http_error",
                    engine=engine,
                    operation=operation,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                raise
            finally:
                # Rejected by an open circuit: nothing reached the provider
                if sent:
                    record_llm_request(engine, model, operation, time.perf_counter() - start)

            data = response.json()
            text = self._read_text(engine, data)

            input_tokens, output_tokens = self._read_usage(engine, data)
            record_llm_tokens(engine, model, input_tokens, output_tokens)
            span.set_attribute("llm.input_tokens", input_tokens)
            span.set_attribute("llm.output_tokens", output_tokens)

        logger.debug(
            "llm_request_completed",
            engine=engine,
            model=model,
            operation=operation,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
        return text
