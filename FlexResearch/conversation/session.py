"""
ConversationSession: per-session state machine that accumulates a research
configuration across turns.

States:
- active: accepting turns
- completed: extraction reported the configuration sufficient
- abandoned: closed by an explicit caller decision

Every transition starts from `active`. Finalization is allowed in any state
and never changes it.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Mapping, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError

from ..infrastructure.cancellation import CancellationToken, Deadline
from ..infrastructure.errors import (
    CompletionError,
    InvalidTransitionError,
    SessionNotActiveError,
)
from ..models.research import (
    ConfigurationSnapshot,
    OutputFormat,
    QualityCheckConfig,
    ResearchConfig,
    ResearchContext,
    ResearchDimension,
    ResearchDomain,
)
from ..research.parsing import MalformedOutputError, extract_json
from ..utils import console
from .extraction import ExtractionResult, ExtractionStrategy, LLMExtractionStrategy, merge_updates
from .prompts import (
    clarify_system_prompt,
    clarify_user_prompt,
    converse_system_prompt,
    converse_user_prompt,
    dimensions_prompt,
    render_history,
)
from .templates import (
    DEFAULT_QUALITY_CHECKS,
    DOMAIN_KEYWORDS,
    FALLBACK_DIMENSIONS,
    ResearchTemplate,
    get_template,
    suggest_domain,
)

if TYPE_CHECKING:
    from ..llm_backends.gateway import CompletionGateway


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class TurnRole(str, Enum):
    INITIATOR = "initiator"
    RESPONDER = "responder"


class ConversationTurn(BaseModel):
    """One exchange within a session."""

    role: TurnRole
    text: str
    timestamp: datetime = Field(default_factory=datetime.now)

    model_config = {"extra": "forbid", "frozen": True}


class TurnResult(BaseModel):
    """Outcome of one continue turn."""

    response: str
    snapshot: ConfigurationSnapshot
    complete: bool


class ConversationSession:
    """
    Accumulates a ConfigurationSnapshot over a multi-turn conversation.

    Concurrent turns on the same session are not supported; callers serialise
    turns per session.

    Args:
        gateway: Admission-gated completion path
        extraction: Strategy producing snapshot updates (LLM by default)
        keywords: Domain keyword lists used for the start-time hint
        session_id: Explicit id (a UUID is generated otherwise)
    """

    def __init__(
        self,
        gateway: "CompletionGateway",
        extraction: Optional[ExtractionStrategy] = None,
        keywords: Mapping[str, Sequence[str]] = DOMAIN_KEYWORDS,
        session_id: Optional[str] = None,
    ):
        self.gateway = gateway
        self.extraction = extraction or LLMExtractionStrategy(gateway)
        self.keywords = keywords

        self.session_id = session_id or str(uuid.uuid4())
        self.turns: list[ConversationTurn] = []
        self.status = SessionStatus.ACTIVE
        self.suggested_template: Optional[str] = None
        self.created_at = datetime.now()
        self.updated_at = self.created_at

        self._snapshot = ConfigurationSnapshot()

    # === Transitions ===

    async def start(
        self,
        initial_text: str,
        cancel: Optional[CancellationToken] = None,
        deadline: Optional[Deadline] = None,
    ) -> str:
        """
        Seed topic and domain hint, then ask for a clarifying response.

        Returns the responder text. On failure the session is left without
        turns and the error propagates.
        """
        if self.turns:
            raise InvalidTransitionError(f"Session {self.session_id}", "started", "started")

        hint = suggest_domain(initial_text, self.keywords)
        self.suggested_template = hint
        self._snapshot.topic = initial_text
        if hint:
            self._snapshot.context.domain = hint

        self._append(TurnRole.INITIATOR, initial_text)
        try:
            response = await self.gateway.complete_for(
                "clarify",
                clarify_system_prompt(initial_text, hint),
                clarify_user_prompt(initial_text),
                cancel,
                deadline,
            )
        except BaseException:
            self.turns.clear()
            raise

        self._append(TurnRole.RESPONDER, response)
        return response

    async def continue_turn(
        self,
        text: str,
        cancel: Optional[CancellationToken] = None,
        deadline: Optional[Deadline] = None,
    ) -> TurnResult:
        """
        Add an initiator turn, get a continuation and an extraction pass.

        Raises:
            SessionNotActiveError: session is completed or abandoned (no call made)
        """
        if self.status != SessionStatus.ACTIVE:
            raise SessionNotActiveError(self.session_id, self.status.value)

        mark = len(self.turns)
        self._append(TurnRole.INITIATOR, text)
        history = render_history(self.turns)

        try:
            response = await self.gateway.complete_for(
                "converse",
                converse_system_prompt(self._snapshot),
                converse_user_prompt(history),
                cancel,
                deadline,
            )
            extraction = await self.extraction.extract(
                list(self.turns), self.snapshot(), cancel, deadline
            )
        except BaseException:
            del self.turns[mark:]
            raise

        self._append(TurnRole.RESPONDER, response)
        self._apply(extraction)
        return TurnResult(response=response, snapshot=self.snapshot(), complete=extraction.is_complete)

    def abandon(self) -> None:
        """Close an active session by explicit decision."""
        if self.status != SessionStatus.ACTIVE:
            raise InvalidTransitionError(f"Session {self.session_id}", self.status.value, SessionStatus.ABANDONED.value)
        self.status = SessionStatus.ABANDONED
        self.updated_at = datetime.now()

    async def finalize(
        self,
        cancel: Optional[CancellationToken] = None,
        deadline: Optional[Deadline] = None,
    ) -> ResearchConfig:
        """
        Produce an immutable ResearchConfig from whatever has accumulated.

        Missing pieces get defaults; dimensions may require one completion
        call when neither the snapshot nor a matching template supplies them.

        Raises:
            SessionNotActiveError: session was abandoned (no call made)
        """
        if self.status == SessionStatus.ABANDONED:
            raise SessionNotActiveError(self.session_id, self.status.value)

        snap = self.snapshot()
        template = get_template(self.suggested_template)

        if snap.dimensions:
            dimensions = tuple(snap.dimensions)
        elif template is not None and snap.context.domain == template.domain.value:
            dimensions = template.default_dimensions
        else:
            dimensions = await self._generate_dimensions(cancel, deadline)

        quality_checks = self._quality_checks(snap, template)
        ctx = snap.context

        return ResearchConfig(
            id=str(uuid.uuid4()),
            topic=snap.topic or "",
            context=ResearchContext(
                domain=ResearchDomain.coerce(ctx.domain) if ctx.domain else ResearchDomain.CUSTOM,
                audience=tuple(ctx.audience) or ("general",),
                perspective=ctx.perspective or "balanced",
                constraints=ctx.constraints,
            ),
            dimensions=dimensions,
            output_format=OutputFormat.coerce(snap.output_format) if snap.output_format else OutputFormat.SYNTHESIS,
            quality_checks=quality_checks,
            session_id=self.session_id,
        )

    # === Views ===

    def snapshot(self) -> ConfigurationSnapshot:
        """Deep copy of the current partial configuration."""
        return self._snapshot.model_copy(deep=True)

    @property
    def active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    def summary(self) -> dict:
        return {
            "session_id": self.session_id,
            "status": self.status.value,
            "turns": len(self.turns),
            "suggested_template": self.suggested_template,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    # === Internals ===

    def _append(self, role: TurnRole, text: str) -> None:
        self.turns.append(ConversationTurn(role=role, text=text))
        self.updated_at = datetime.now()

    def _apply(self, extraction: ExtractionResult) -> None:
        self._snapshot = merge_updates(self._snapshot, extraction.updates)
        if extraction.is_complete:
            self.status = SessionStatus.COMPLETED
        self.updated_at = datetime.now()

    def _quality_checks(
        self,
        snap: ConfigurationSnapshot,
        template: Optional[ResearchTemplate],
    ) -> tuple[QualityCheckConfig, ...]:
        if snap.quality_checks:
            return tuple(snap.quality_checks)
        if template is not None:
            return template.default_quality_checks
        return DEFAULT_QUALITY_CHECKS

    async def _generate_dimensions(
        self,
        cancel: Optional[CancellationToken],
        deadline: Optional[Deadline],
    ) -> tuple[ResearchDimension, ...]:
        """Ask the service for 3-5 dimensions, falling back to fixed ones."""
        try:
            text = await self.gateway.complete_for(
                "plan", None, dimensions_prompt(render_history(self.turns)), cancel, deadline
            )
        except CompletionError as e:
            console.warning("Dimension generation failed, using defaults", e.message)
            return FALLBACK_DIMENSIONS

        try:
            raw = extract_json(text, list)
        except MalformedOutputError:
            try:
                raw = extract_json(text, dict).get("dimensions")
            except MalformedOutputError:
                raw = None

        if not isinstance(raw, list) or not raw:
            console.debug("Dimension output not usable, using defaults")
            return FALLBACK_DIMENSIONS

        weight = 1 / len(raw)
        dimensions = []
        try:
            for index, item in enumerate(raw, 1):
                item = item if isinstance(item, dict) else {"name": str(item)}
                dimensions.append(ResearchDimension(
                    id=f"dimension_{index}",
                    name=str(item.get("name") or f"Dimension {index}"),
                    description=str(item.get("description") or ""),
                    evaluation_criteria=item.get("evaluation_criteria") or item.get("evaluationCriteria") or [],
                    data_points=item.get("data_points") or item.get("dataPoints") or [],
                    weight=weight,
                ))
        except ValidationError:
            console.debug("Dimension output failed validation, using defaults")
            return FALLBACK_DIMENSIONS

        return tuple(dimensions)
