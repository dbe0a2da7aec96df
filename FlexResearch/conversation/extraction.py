"""
Structured extraction strategies for the configuration conversation.

A strategy reads the turn history and returns field updates for the
configuration snapshot plus a sufficiency flag. Two are provided:
- LLMExtractionStrategy: asks the completion service for JSON
- KeywordExtractionStrategy: offline keyword and pattern heuristics

`merge_updates` applies updates without ever clearing a field: a key that is
missing, None, an empty string or an empty collection leaves the snapshot
untouched.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Mapping, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError

from ..infrastructure.cancellation import CancellationToken, Deadline
from ..models.research import ConfigurationSnapshot, ResearchDimension
from ..research.parsing import MalformedOutputError, extract_json
from ..utils import console
from .prompts import extraction_prompt, render_history
from .templates import DOMAIN_KEYWORDS, suggest_domain

if TYPE_CHECKING:
    from ..llm_backends.gateway import CompletionGateway
    from .session import ConversationTurn


CONTEXT_FIELDS = ("domain", "audience", "perspective", "constraints")
TOP_LEVEL_FIELDS = ("topic", "dimensions", "output_format")

_ALIASES = {
    "outputFormat": "output_format",
    "isComplete": "is_complete",
    "evaluationCriteria": "evaluation_criteria",
    "dataPoints": "data_points",
    "objectives": "evaluation_criteria",
}


class ExtractionResult(BaseModel):
    """Field updates found in the history, and whether the config is complete."""

    updates: dict[str, Any] = Field(default_factory=dict)
    is_complete: bool = False


class ExtractionStrategy(ABC):
    """Interface for turning a conversation into snapshot updates."""

    name: str = "base"

    @abstractmethod
    async def extract(
        self,
        turns: Sequence["ConversationTurn"],
        snapshot: ConfigurationSnapshot,
        cancel: Optional[CancellationToken] = None,
        deadline: Optional[Deadline] = None,
    ) -> ExtractionResult:
        ...


def _is_absent(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    if isinstance(value, (list, tuple, dict)) and not value:
        return True
    return False


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", text.lower()).strip("_") or "dimension"


def _str_list(value: Any) -> list[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    return [str(v) for v in value if not _is_absent(v)]


def coerce_dimensions(raw: Any) -> list[ResearchDimension]:
    """Accept names or dimension objects; unusable entries are dropped."""
    if isinstance(raw, (str, dict)):
        raw = [raw]
    if not isinstance(raw, list):
        return []

    dimensions: list[ResearchDimension] = []
    seen: set[str] = set()
    for index, item in enumerate(raw, 1):
        if isinstance(item, str):
            if not item.strip():
                continue
            data = {"name": item.strip()}
        elif isinstance(item, dict):
            data = {_ALIASES.get(k, k): v for k, v in item.items()}
            if _is_absent(data.get("name")):
                continue
        else:
            continue

        dim_id = str(data.get("id") or _slug(str(data["name"])))
        if dim_id in seen:
            dim_id = f"{dim_id}_{index}"
        seen.add(dim_id)

        try:
            dimensions.append(ResearchDimension(
                id=dim_id,
                name=str(data["name"]),
                description=str(data.get("description") or ""),
                evaluation_criteria=_str_list(data.get("evaluation_criteria")),
                data_points=_str_list(data.get("data_points")),
                weight=data.get("weight"),
            ))
        except (ValidationError, TypeError):
            continue

    return dimensions


def normalize_updates(raw: Mapping[str, Any]) -> dict[str, Any]:
    """
    Clean a raw extraction payload into snapshot updates.

    Unknown keys are dropped, aliases are mapped to field names, and absent
    values are removed so they cannot overwrite anything.
    """
    data = {_ALIASES.get(k, k): v for k, v in raw.items()}
    updates: dict[str, Any] = {}

    for key in ("topic", "domain", "perspective", "output_format"):
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            updates[key] = value.strip()

    audience = data.get("audience")
    if isinstance(audience, str):
        audience = [audience]
    if isinstance(audience, list):
        audience = [str(a).strip() for a in audience if str(a).strip()]
        if audience:
            updates["audience"] = audience

    constraints = data.get("constraints")
    if isinstance(constraints, str) and constraints.strip():
        constraints = {"notes": constraints.strip()}
    if isinstance(constraints, dict) and constraints:
        updates["constraints"] = constraints

    dimensions = coerce_dimensions(data.get("dimensions"))
    if dimensions:
        updates["dimensions"] = dimensions

    return updates


def merge_updates(snapshot: ConfigurationSnapshot, updates: Mapping[str, Any]) -> ConfigurationSnapshot:
    """Return a copy of `snapshot` with present updates applied (last write wins)."""
    merged = snapshot.model_copy(deep=True)
    for key, value in updates.items():
        if _is_absent(value):
            continue
        if key in CONTEXT_FIELDS:
            setattr(merged.context, key, list(value) if key == "audience" else value)
        elif key in TOP_LEVEL_FIELDS:
            setattr(merged, key, list(value) if key == "dimensions" else value)
    return merged


class LLMExtractionStrategy(ExtractionStrategy):
    """Extraction by a temperature-0 completion call returning JSON."""

    name = "llm"

    def __init__(self, gateway: "CompletionGateway"):
        self.gateway = gateway

    async def extract(
        self,
        turns: Sequence["ConversationTurn"],
        snapshot: ConfigurationSnapshot,
        cancel: Optional[CancellationToken] = None,
        deadline: Optional[Deadline] = None,
    ) -> ExtractionResult:
        text = await self.gateway.complete_for(
            "extract", None, extraction_prompt(render_history(turns)), cancel, deadline
        )
        try:
            data = extract_json(text, dict)
        except MalformedOutputError as e:
            console.debug("Extraction output not usable", str(e))
            return ExtractionResult()

        complete = data.get("is_complete", data.get("isComplete")) is True
        return ExtractionResult(updates=normalize_updates(data), is_complete=complete)


OUTPUT_FORMAT_KEYWORDS: dict[str, list[str]] = {
    "executive_summary": ["executive summary", "exec summary", "one-pager", "brief summary"],
    "comparison": ["compare", "comparison", "versus", " vs "],
    "deep_dive": ["deep dive", "deep-dive", "in-depth", "in depth"],
    "recommendation": ["recommend", "recommendation", "what should we"],
    "survey": ["overview", "survey", "landscape scan"],
    "synthesis": ["synthesis", "synthesize", "synthesise"],
}

PERSPECTIVE_KEYWORDS: dict[str, list[str]] = {
    "business": ["business", "commercial", "revenue"],
    "technical": ["technical", "engineering", "implementation"],
    "academic": ["academic", "scholarly", "scientific"],
    "policy": ["policy", "regulatory", "government"],
    "investor": ["investor", "investment", "funding"],
}

_AUDIENCE = re.compile(
    r"\b(?:for|audience is|intended for|aimed at)\s+(?:an?\s+|the\s+|our\s+|my\s+)?"
    r"([a-z][a-z ,&/-]{2,80}?)(?=[.;:!?\n]|$)",
    re.IGNORECASE,
)
_CONFIRM = re.compile(
    r"\b(that's all|that is all|looks good|sounds good|go ahead|proceed|confirm(?:ed)?|"
    r"let's start|start the research|ready to go)\b",
    re.IGNORECASE,
)


def _first_match(text: str, table: Mapping[str, Sequence[str]]) -> Optional[str]:
    lowered = f" {text.lower()} "
    for key, words in table.items():
        if any(w in lowered for w in words):
            return key
    return None


class KeywordExtractionStrategy(ExtractionStrategy):
    """
    Offline extraction from keywords and simple patterns.

    Makes no completion calls. Domain comes from the keyword hint over all
    initiator text; audience, output format and perspective from the latest
    initiator turn; completion from a confirmation phrase in that turn.
    """

    name = "keyword"

    def __init__(self, keywords: Mapping[str, Sequence[str]] = DOMAIN_KEYWORDS):
        self.keywords = keywords

    async def extract(
        self,
        turns: Sequence["ConversationTurn"],
        snapshot: ConfigurationSnapshot,
        cancel: Optional[CancellationToken] = None,
        deadline: Optional[Deadline] = None,
    ) -> ExtractionResult:
        initiator = [t.text for t in turns if t.role.value == "initiator"]
        if not initiator:
            return ExtractionResult()
        latest = initiator[-1]

        raw: dict[str, Any] = {
            "domain": suggest_domain(" ".join(initiator), self.keywords),
            "output_format": _first_match(latest, OUTPUT_FORMAT_KEYWORDS),
            "perspective": _first_match(latest, PERSPECTIVE_KEYWORDS),
        }

        match = _AUDIENCE.search(latest)
        if match:
            parts = re.split(r",|\band\b|&|/", match.group(1))
            raw["audience"] = [p.strip().replace(" ", "_") for p in parts if p.strip()]

        return ExtractionResult(
            updates=normalize_updates(raw),
            is_complete=bool(_CONFIRM.search(latest)),
        )
