from __future__ import annotations

import os
import time
from typing import Optional

import httpx

from .base import CompletionService, ModelParameters
from ..infrastructure.errors import CompletionError, CompletionErrorKind
from ..utils.timing import timing


class OpenAIBackend(CompletionService):
    """
    Minimal OpenAI Chat Completions backend using HTTPX.
    """

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.model = model
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not self.api_key:
            raise RuntimeError("OPENAI_API_KEY not set")

        self._client = httpx.AsyncClient(
            base_url="https://api.openai.com/v1",
            timeout=timeout,
            transport=transport,
        )

    async def acomplete(
        self,
        system: Optional[str],
        prompt: str,
        params: ModelParameters,
    ) -> str:
        start_time = time.perf_counter()
        model = params.model or self.model

        payload = {
            "model": model,
            "messages": self.build_messages(system, prompt),
            "temperature": params.temperature,
        }
        if params.max_tokens is not None:
            payload["max_tokens"] = params.max_tokens

        try:
            resp = await self._client.post(
                "/chat/completions",
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            kind = (
                CompletionErrorKind.RATE_LIMITED
                if e.response.status_code == 429
                else CompletionErrorKind.OTHER
            )
            raise CompletionError(
                f"OpenAI API error ({e.response.status_code})",
                kind,
                context={"model": model, "status_code": e.response.status_code},
                original_error=e,
            ) from e
        except httpx.HTTPError as e:
            raise CompletionError(
                f"OpenAI request failed: {type(e).__name__}",
                CompletionErrorKind.OTHER,
                context={"model": model},
                original_error=e,
            ) from e

        try:
            content = resp.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise CompletionError(
                "OpenAI API returned an unreadable response body",
                CompletionErrorKind.OTHER,
                context={"model": model, "status_code": resp.status_code},
                original_error=e,
            ) from e

        duration_ms = (time.perf_counter() - start_time) * 1000
        timing().record("acomplete", "completion", duration_ms, model=model, provider="openai")

        return content or ""

    async def aclose(self) -> None:
        await self._client.aclose()
