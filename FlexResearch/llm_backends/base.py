from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Literal, Optional, TypedDict

from pydantic import BaseModel, Field


MessageRole = Literal["system", "user", "assistant"]


class ChatMessage(TypedDict):
    role: MessageRole
    content: str


class ModelParameters(BaseModel):
    """Sampling parameters for one completion call."""

    model: Optional[str] = Field(default=None, description="Override the backend's default model")
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)

    model_config = {"extra": "forbid", "frozen": True}


class CompletionService(ABC):
    """
    Abstract interface for the external generative-text service.

    Implementations return the response text or raise CompletionError with
    kind `rate_limited` (HTTP 429 or equivalent) or `other`. They do not retry
    on their own; the CompletionGateway owns the single rate-limit retry.
    """

    @abstractmethod
    async def acomplete(
        self,
        system: Optional[str],
        prompt: str,
        params: ModelParameters,
    ) -> str:
        ...

    async def aclose(self) -> None:
        """Release any held connections."""
        return None

    @staticmethod
    def build_messages(system: Optional[str], prompt: str) -> List[ChatMessage]:
        messages: List[ChatMessage] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return messages


def parse_backend_name(name: str) -> tuple[str, str]:
    """
    Parse backend string like 'openai:gpt-4o' -> ('openai', 'gpt-4o').
    """
    if ":" not in name:
        raise ValueError(f"Backend must look like 'provider:model', got {name!r}")
    provider, model = name.split(":", 1)
    return provider.strip().lower(), model.strip()


def create_backend(
    name: str,
    api_key: str | None = None,
    timeout: float = 180.0,
) -> CompletionService:
    """Instantiate a completion backend from a 'provider:model' string."""
    provider, model = parse_backend_name(name)

    if provider == "anthropic":
        from .anthropic_backend import AnthropicBackend
        return AnthropicBackend(model, api_key=api_key, timeout=timeout)
    if provider == "openai":
        from .openai_backend import OpenAIBackend
        return OpenAIBackend(model, api_key=api_key, timeout=timeout)

    raise ValueError(f"Unknown completion provider: {provider}")
