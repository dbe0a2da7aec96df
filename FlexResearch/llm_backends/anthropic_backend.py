from __future__ import annotations

import os
import time
from typing import Optional

import httpx

from .base import CompletionService, ModelParameters
from ..infrastructure.errors import CompletionError, CompletionErrorKind
from ..utils import console
from ..utils.timing import timing


class AnthropicBackend(CompletionService):
    """
    Minimal Anthropic Messages API backend using HTTPX.

    Features:
    - Prompt caching for system prompts
    - Token usage tracking
    - HTTP 429 reported as a rate-limited CompletionError
    """

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        timeout: float = 180.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.model = model
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        if not self.api_key:
            raise RuntimeError("ANTHROPIC_API_KEY not set")

        self._client = httpx.AsyncClient(
            base_url="https://api.anthropic.com/v1",
            timeout=timeout,
            transport=transport,
        )

        self._total_input_tokens = 0
        self._total_output_tokens = 0
        self._total_cache_creation_tokens = 0
        self._total_cache_read_tokens = 0

    @property
    def token_usage(self) -> dict:
        """Return current token usage statistics."""
        return {
            "input_tokens": self._total_input_tokens,
            "output_tokens": self._total_output_tokens,
            "cache_creation_tokens": self._total_cache_creation_tokens,
            "cache_read_tokens": self._total_cache_read_tokens,
            "total_tokens": self._total_input_tokens + self._total_output_tokens,
        }

    def _update_token_usage(self, usage: dict) -> None:
        self._total_input_tokens += usage.get("input_tokens", 0)
        self._total_output_tokens += usage.get("output_tokens", 0)
        self._total_cache_creation_tokens += usage.get("cache_creation_input_tokens", 0)
        self._total_cache_read_tokens += usage.get("cache_read_input_tokens", 0)

    async def acomplete(
        self,
        system: Optional[str],
        prompt: str,
        params: ModelParameters,
        use_cache: bool = True,
    ) -> str:
        start_time = time.perf_counter()
        model = params.model or self.model

        payload = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": params.temperature,
            "max_tokens": params.max_tokens or 4096,
        }
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": "2023-06-01",
        }

        if system:
            if use_cache:
                payload["system"] = [
                    {
                        "type": "text",
                        "text": system,
                        "cache_control": {"type": "ephemeral"},
                    }
                ]
            else:
                payload["system"] = system

        try:
            resp = await self._client.post("/messages", json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise CompletionError(
                f"Anthropic request failed: {type(e).__name__}",
                CompletionErrorKind.OTHER,
                context={"model": model},
                original_error=e,
            ) from e

        if resp.status_code != 200:
            try:
                error_data = resp.json()
                error_msg = error_data.get("error", {}).get("message", str(error_data))
            except ValueError:
                error_msg = resp.text[:500]
            console.debug(f"Anthropic API error ({resp.status_code})", error_msg)

            kind = (
                CompletionErrorKind.RATE_LIMITED
                if resp.status_code == 429
                else CompletionErrorKind.OTHER
            )
            raise CompletionError(
                f"Anthropic API error ({resp.status_code}): {error_msg}",
                kind,
                context={"model": model, "status_code": resp.status_code},
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise CompletionError(
                "Anthropic API returned a non-JSON response body",
                CompletionErrorKind.OTHER,
                context={"model": model, "status_code": resp.status_code},
                original_error=e,
            ) from e
        if not isinstance(data, dict):
            raise CompletionError(
                "Anthropic API returned an unexpected response body",
                CompletionErrorKind.OTHER,
                context={"model": model, "status_code": resp.status_code},
            )

        text_blocks = [
            block.get("text", "")
            for block in data.get("content", [])
            if block.get("type") == "text"
        ]

        if "usage" in data:
            self._update_token_usage(data["usage"])

        duration_ms = (time.perf_counter() - start_time) * 1000
        timing().record("acomplete", "completion", duration_ms, model=model, provider="anthropic")

        return "".join(text_blocks)

    async def aclose(self) -> None:
        await self._client.aclose()
