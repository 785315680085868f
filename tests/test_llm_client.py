"""
Unit tests for the httpx-based LLM client.

Requests are served by httpx.MockTransport; no network access.
"""
import json

import httpx
import pytest

from aitoolkit.core.circuit_breaker import CircuitBreakerOpenError, CircuitState
from aitoolkit.core.config import ToolkitConfig
from aitoolkit.core.errors import CloudModeUnavailableError, EngineNotConfiguredError
from aitoolkit.core.metrics import llm_errors_total, llm_requests_total, llm_tokens_total
from aitoolkit.services.llm.client import LLMClient, LLMResponseError
from aitoolkit.services.prompts import Messages

MESSAGES = Messages(system="You are terse.", user="Say hi")


def make_client(handler, **config):
    options = {"engines": {"openai": "sk-openai", "anthropic": "sk-ant"}, **config}
    return LLMClient(ToolkitConfig.model_validate(options), transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_openai_request_and_response():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "choices": [{"message": {"content": '{"ok": true}'}}],
                "usage": {"prompt_tokens": 12, "completion_tokens": 3},
            },
        )

    client = make_client(handler)
    before = llm_tokens_total.labels(engine="openai", model="gpt-4o-mini", direction="input")._value.get()

    text = await client.complete(MESSAGES, engine="openai", model="gpt-4o-mini", temperature=0.1, max_tokens=20)

    assert text == '{"ok": true}'
    assert seen["url"] == "https://api.openai.com/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-openai"
    assert seen["body"] == {
        "model": "gpt-4o-mini",
        "messages": [
            {"role": "system", "content": "You are terse."},
            {"role": "user", "content": "Say hi"},
        ],
        "temperature": 0.1,
        "max_tokens": 20,
    }
    after = llm_tokens_total.labels(engine="openai", model="gpt-4o-mini", direction="input")._value.get()
    assert after == before + 12


@pytest.mark.asyncio
async def test_anthropic_request_and_response():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"content": [{"type": "text", "text": "hello"}]})

    client = make_client(handler, api_bases={"anthropic": "https://proxy.internal/v1/"})

    text = await client.complete(MESSAGES, engine="anthropic")

    assert text == "hello"
    assert seen["url"] == "https://proxy.internal/v1/messages"
    assert seen["headers"]["x-api-key"] == "sk-ant"
    assert seen["headers"]["anthropic-version"] == "2023-06-01"
    assert seen["body"]["system"] == "You are terse."
    assert seen["body"]["messages"] == [{"role": "user", "content": "Say hi"}]
    assert seen["body"]["model"] == "claude-3-sonnet-20240229"
    assert seen["body"]["temperature"] == 0.3
    assert seen["body"]["max_tokens"] == 1000


@pytest.mark.asyncio
async def test_missing_key_raises_before_any_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    client = LLMClient(ToolkitConfig(), transport=httpx.MockTransport(handler))

    with pytest.raises(EngineNotConfiguredError):
        await client.complete(MESSAGES, engine="openai")
    assert calls == []


@pytest.mark.asyncio
async def test_unknown_engine():
    client = make_client(lambda request: httpx.Response(200, json={}))
    with pytest.raises(EngineNotConfiguredError) as exc_info:
        await client.complete(MESSAGES, engine="gemini")
    assert exc_info.value.details["engine"] == "gemini"


@pytest.mark.asyncio
async def test_cloud_mode_is_unavailable():
    config = ToolkitConfig(token="tok", cloud_mode=True)
    client = LLMClient(config, transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})))

    with pytest.raises(CloudModeUnavailableError):
        await client.complete(MESSAGES)


@pytest.mark.asyncio
async def test_http_error_is_counted_and_raised():
    client = make_client(lambda request: httpx.Response(429, json={"error": "slow down"}))
    before = llm_errors_total.labels(engine="openai", reason="http_429")._value.get()

    with pytest.raises(httpx.HTTPStatusError):
        await client.complete(MESSAGES, engine="openai")

    assert llm_errors_total.labels(engine="openai", reason="http_429")._value.get() == before + 1


@pytest.mark.asyncio
async def test_unexpected_body_shape():
    client = make_client(lambda request: httpx.Response(200, json={"choices": []}))
    with pytest.raises(LLMResponseError):
        await client.complete(MESSAGES, engine="openai")


@pytest.mark.asyncio
async def test_breaker_opens_after_repeated_failures():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500, json={})

    client = make_client(handler)

    for _ in range(10):
        with pytest.raises(httpx.HTTPStatusError):
            await client.complete(MESSAGES, engine="openai")

    assert client.circuit_breaker("openai").state == CircuitState.OPEN

    requests = llm_requests_total.labels(engine="openai", model="gpt-4", operation="unknown")
    sent_before = requests._value.get()

    with pytest.raises(CircuitBreakerOpenError):
        await client.complete(MESSAGES, engine="openai")
    assert len(calls) == 10
    # Rejected calls count as errors, not as requests
    assert requests._value.get() == sent_before

    # Breakers are per engine
    assert client.circuit_breaker("anthropic").state == CircuitState.CLOSED
