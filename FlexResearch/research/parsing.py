"""
Recovering JSON from free-form completion text.

Structured re-statements usually arrive as bare JSON, but models also wrap
them in a ```json fence or surround them with prose. Tried in that order.
"""

from __future__ import annotations

import json
import re
from typing import Any, Type, TypeVar

from pydantic import BaseModel, ValidationError


M = TypeVar("M", bound=BaseModel)

_FENCE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL)
_SPANS = {
    dict: re.compile(r"\{.*\}", re.DOTALL),
    list: re.compile(r"\[.*\]", re.DOTALL),
}


class MalformedOutputError(ValueError):
    """Completion text could not be read as the expected structure."""


def extract_json(text: str, expect: type = dict) -> Any:
    """
    Parse `text` as JSON of type `expect` (dict or list).

    Raises:
        MalformedOutputError: no candidate parses to the expected type
    """
    if not text or not text.strip():
        raise MalformedOutputError("empty response")

    candidates = [text.strip()]
    fence = _FENCE.search(text)
    if fence:
        candidates.append(fence.group(1))
    span = _SPANS[expect].search(text)
    if span:
        candidates.append(span.group(0))

    for candidate in candidates:
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(value, expect):
            return value

    raise MalformedOutputError(f"no {expect.__name__} JSON found in response")


def parse_model(text: str, model: Type[M]) -> M:
    """Extract a JSON object from `text` and validate it as `model`."""
    data = extract_json(text, dict)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise MalformedOutputError(f"{model.__name__} validation failed: {e.error_count()} errors") from e
