"""Tests for the HTTP completion backends, using httpx mock transports."""

import asyncio
import json

import httpx
import pytest

from FlexResearch.infrastructure import CompletionError, CompletionErrorKind
from FlexResearch.llm_backends import (
    AnthropicBackend,
    ModelParameters,
    OpenAIBackend,
    create_backend,
    parse_backend_name,
)


def transport(status, body, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status, json=body)
    return httpx.MockTransport(handler)


def call(backend, system="be brief", prompt="hello"):
    async def run():
        try:
            return await backend.acomplete(system, prompt, ModelParameters(temperature=0.3, max_tokens=50))
        finally:
            await backend.aclose()
    return asyncio.run(run())


def test_anthropic_success_tracks_usage():
    seen = []
    body = {
        "content": [{"type": "text", "text": "Hi "}, {"type": "text", "text": "there"}],
        "usage": {"input_tokens": 12, "output_tokens": 3},
    }
    backend = AnthropicBackend("claude-test", api_key="k", transport=transport(200, body, seen))

    assert call(backend) == "Hi there"

    payload = json.loads(seen[0].content)
    assert seen[0].url.path == "/v1/messages"
    assert seen[0].headers["x-api-key"] == "k"
    assert payload["system"][0]["text"] == "be brief"
    assert payload["max_tokens"] == 50
    assert backend.token_usage["total_tokens"] == 15


@pytest.mark.parametrize("status,kind", [
    (429, CompletionErrorKind.RATE_LIMITED),
    (500, CompletionErrorKind.OTHER),
])
def test_anthropic_status_maps_to_kind(status, kind):
    backend = AnthropicBackend("m", api_key="k", transport=transport(status, {"error": {"message": "nope"}}))

    with pytest.raises(CompletionError) as exc:
        call(backend)

    assert exc.value.kind == kind
    assert "nope" in exc.value.message


@pytest.mark.parametrize("backend_cls", [AnthropicBackend, OpenAIBackend])
@pytest.mark.parametrize("content", [b"<html>gateway timeout</html>", b"[1, 2]"])
def test_unreadable_success_body_is_other(backend_cls, content):
    handler = lambda request: httpx.Response(200, content=content)
    backend = backend_cls("m", api_key="k", transport=httpx.MockTransport(handler))

    with pytest.raises(CompletionError) as exc:
        call(backend)

    assert exc.value.kind == CompletionErrorKind.OTHER


def test_openai_success():
    seen = []
    body = {"choices": [{"message": {"content": "answer"}}]}
    backend = OpenAIBackend("gpt-test", api_key="k", transport=transport(200, body, seen))

    assert call(backend, system=None) == "answer"

    payload = json.loads(seen[0].content)
    assert payload["messages"] == [{"role": "user", "content": "hello"}]
    assert seen[0].headers["authorization"] == "Bearer k"


def test_openai_rate_limit():
    backend = OpenAIBackend("m", api_key="k", transport=transport(429, {}))

    with pytest.raises(CompletionError) as exc:
        call(backend)

    assert exc.value.rate_limited


def test_transport_errors_are_other():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    backend = OpenAIBackend("m", api_key="k", transport=httpx.MockTransport(handler))

    with pytest.raises(CompletionError) as exc:
        call(backend)

    assert exc.value.kind == CompletionErrorKind.OTHER


def test_backend_names(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "k")

    assert parse_backend_name("Anthropic:claude-x") == ("anthropic", "claude-x")
    assert isinstance(create_backend("openai:gpt-4o"), OpenAIBackend)
    with pytest.raises(ValueError):
        parse_backend_name("no-provider")
    with pytest.raises(ValueError):
        create_backend("mystery:model")


def test_missing_api_key(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

    with pytest.raises(RuntimeError):
        AnthropicBackend("m")
