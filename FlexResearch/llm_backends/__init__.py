"""
Completion backends for FlexResearch.

- CompletionService: abstract collaborator interface
- AnthropicBackend: Claude Messages API
- OpenAIBackend: OpenAI Chat Completions API
- CompletionGateway: admission-gated call path with one rate-limit retry
"""

from .base import ChatMessage, CompletionService, ModelParameters, create_backend, parse_backend_name
from .anthropic_backend import AnthropicBackend
from .openai_backend import OpenAIBackend
from .gateway import CompletionGateway

__all__ = [
    "ChatMessage",
    "CompletionService",
    "ModelParameters",
    "create_backend",
    "parse_backend_name",
    "AnthropicBackend",
    "OpenAIBackend",
    "CompletionGateway",
]
