"""
ResearchManager: entry points from topic to synthesis.

Flow:
1. start_session / continue_session: configuration conversation
2. finalize: freeze the snapshot into a ResearchConfig and preview it
   (or create_plan: build a plan directly from caller-defined areas)
3. modify_plan: adjust a stored plan before running it
4. run_batch: execute one work unit per dimension, optionally review,
   then synthesize
5. get_run / get_recommendation: read a finished run back by batch id

All completion calls share one AdmissionController through one
CompletionGateway.
"""

from __future__ import annotations

import asyncio
import threading
import uuid
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ValidationError

from ..config.settings import Settings, get_settings
from ..conversation.extraction import ExtractionStrategy, coerce_dimensions
from ..conversation.registry import SessionRegistry
from ..conversation.session import ConversationSession, SessionStatus
from ..conversation.templates import DEFAULT_QUALITY_CHECKS, get_template, suggest_domain
from ..infrastructure.cancellation import CancellationToken, Deadline, SleepFn
from ..infrastructure.errors import (
    CompletionError,
    ConfigNotFoundError,
    ErrorCategory,
    FlexResearchError,
    OperationCancelledError,
    RunNotFoundError,
)
from ..llm_backends.base import CompletionService, create_backend
from ..llm_backends.gateway import CompletionGateway
from ..models.research import (
    ConfigurationSnapshot,
    OutputFormat,
    QualityCheckConfig,
    QualityReviewResult,
    Recommendations,
    ResearchConfig,
    ResearchContext,
    ResearchDomain,
    ResearchSynthesis,
)
from ..research.preview import render_plan_preview
from ..research.quality_review import QualityReviewer
from ..research.synthesis import SynthesisAgent
from ..runtime.admission import AdmissionController
from ..runtime.batch import BatchOrchestrator
from ..runtime.executor import WorkUnitExecutor
from ..runtime.runlog import (
    AdmissionWaitEvent,
    ConfigFinalizedEvent,
    RunLog,
    SessionAbandonedEvent,
    SessionCompletedEvent,
    SessionStartedEvent,
    TurnCompletedEvent,
)
from ..runtime.workunit import Batch, ExecutionMode
from ..utils import console


class SessionStarted(BaseModel):
    session_id: str
    response: str
    suggested_template: Optional[str] = None


class TurnOutcome(BaseModel):
    response: str
    snapshot: ConfigurationSnapshot
    complete: bool


class FinalizedPlan(BaseModel):
    config_id: str
    config: ResearchConfig
    preview: str


class ResearchRun(BaseModel):
    """Everything produced by one run_batch call."""

    config: ResearchConfig
    batch: Batch
    synthesis: ResearchSynthesis
    quality_review: Optional[QualityReviewResult] = None


class ConfigStore:
    """Finalized plans keyed by config id."""

    def __init__(self):
        self._configs: dict[str, ResearchConfig] = {}
        self._lock = threading.Lock()

    def put(self, config: ResearchConfig) -> ResearchConfig:
        with self._lock:
            self._configs[config.id] = config
        return config

    def get(self, config_id: str) -> ResearchConfig:
        with self._lock:
            config = self._configs.get(config_id)
        if config is None:
            raise ConfigNotFoundError(config_id)
        return config

    def __contains__(self, config_id: object) -> bool:
        with self._lock:
            return config_id in self._configs

    def __len__(self) -> int:
        with self._lock:
            return len(self._configs)


class ResearchManager:
    """
    Owns the session registry, the config store and the execution stack.

    Args:
        service: Completion backend
        admission: Shared admission controller (built from defaults if None)
        rate_limit_backoff: Fixed wait before the single rate-limit retry
        max_concurrent: Default concurrency cap for run_batch
        mode: Default execution mode for run_batch
        inter_slice_pause: Pause between concurrent slices
        extraction: Extraction strategy for new sessions (LLM if None)
        runlog: Event log (in-memory if None)
        sleep: Coroutine used for backoff and slice pauses
    """

    def __init__(
        self,
        service: CompletionService,
        admission: Optional[AdmissionController] = None,
        rate_limit_backoff: float = 5.0,
        max_concurrent: int = 3,
        mode: str = "concurrent",
        inter_slice_pause: float = 2.0,
        extraction: Optional[ExtractionStrategy] = None,
        runlog: Optional[RunLog] = None,
        purposes: Optional[Mapping[str, Any]] = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.runlog = runlog or RunLog(run_id=uuid.uuid4().hex[:12])
        self.admission = admission or AdmissionController(sleep=sleep)
        if self.admission.on_wait is None:
            self.admission.on_wait = self._record_admission_wait

        self.gateway = CompletionGateway(
            service,
            self.admission,
            rate_limit_backoff=rate_limit_backoff,
            purposes=purposes,
            sleep=sleep,
        )
        self.extraction = extraction
        self.default_mode = ExecutionMode.parse(mode)
        self.default_max_concurrent = max_concurrent

        self.sessions = SessionRegistry()
        self.configs = ConfigStore()
        self.runs: dict[str, ResearchRun] = {}

        self.executor = WorkUnitExecutor(self.gateway, runlog=self.runlog)
        self.orchestrator = BatchOrchestrator(
            self.executor,
            inter_slice_pause=inter_slice_pause,
            sleep=sleep,
            runlog=self.runlog,
        )
        self.synthesis_agent = SynthesisAgent(self.gateway)
        self.reviewer = QualityReviewer(self.gateway)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        service: Optional[CompletionService] = None,
        output_dir: Optional[Path] = None,
        **kwargs,
    ) -> "ResearchManager":
        """Build the full stack from Settings (the singleton by default)."""
        settings = settings or get_settings()
        if service is None:
            service = create_backend(
                settings.completion.backend,
                timeout=settings.completion.timeout_seconds,
            )
        runlog = RunLog(run_id=uuid.uuid4().hex[:12], output_dir=output_dir)
        return cls(
            service,
            admission=AdmissionController.from_settings(
                settings.admission, sleep=kwargs.get("sleep", asyncio.sleep)
            ),
            rate_limit_backoff=settings.completion.rate_limit_backoff,
            max_concurrent=settings.batch.max_concurrent,
            mode=settings.batch.mode,
            inter_slice_pause=settings.batch.inter_slice_pause,
            runlog=runlog,
            purposes=settings.purposes,
            **kwargs,
        )

    # === Configuration conversation ===

    async def start_session(
        self,
        topic: str,
        cancel: Optional[CancellationToken] = None,
        deadline: Optional[Deadline] = None,
    ) -> SessionStarted:
        """Create a session from a topic; it is registered only once started."""
        session = ConversationSession(self.gateway, extraction=self.extraction)
        response = await session.start(topic, cancel, deadline)
        self.sessions.add(session)

        self.runlog.append(SessionStartedEvent(
            session_id=session.session_id,
            topic=topic,
            suggested_template=session.suggested_template,
        ))
        return SessionStarted(
            session_id=session.session_id,
            response=response,
            suggested_template=session.suggested_template,
        )

    async def continue_session(
        self,
        session_id: str,
        text: str,
        cancel: Optional[CancellationToken] = None,
        deadline: Optional[Deadline] = None,
    ) -> TurnOutcome:
        session = self.sessions.get(session_id)
        result = await session.continue_turn(text, cancel, deadline)

        self.runlog.append(TurnCompletedEvent(
            session_id=session_id,
            turn_count=len(session.turns),
            complete=result.complete,
        ))
        if session.status == SessionStatus.COMPLETED:
            self.runlog.append(SessionCompletedEvent(session_id=session_id))

        return TurnOutcome(response=result.response, snapshot=result.snapshot, complete=result.complete)

    def abandon_session(self, session_id: str) -> None:
        self.sessions.abandon(session_id)
        self.runlog.append(SessionAbandonedEvent(session_id=session_id))

    async def finalize(
        self,
        session_id: str,
        cancel: Optional[CancellationToken] = None,
        deadline: Optional[Deadline] = None,
    ) -> FinalizedPlan:
        session = self.sessions.get(session_id)
        return self._store_plan(await session.finalize(cancel, deadline))

    def create_plan(
        self,
        topic: str,
        areas: Sequence[Union[str, Mapping[str, Any]]],
        goal: Optional[str] = None,
        domain: Optional[str] = None,
        audience: Optional[Sequence[str]] = None,
        perspective: Optional[str] = None,
        output_format: Optional[str] = None,
        quality_checks: Optional[Sequence[QualityCheckConfig]] = None,
    ) -> FinalizedPlan:
        """
        Build and store a plan from caller-defined evaluation areas.

        No conversation and no completion call is involved. Each area is a
        name or a dimension object (`objectives` is accepted for
        `evaluation_criteria`). Areas without a weight share the plan
        equally. The domain falls back to the keyword hint on the topic.

        Raises:
            FlexResearchError: no usable area was given
        """
        dimensions = coerce_dimensions(list(areas))
        if not dimensions:
            raise FlexResearchError(
                "A research plan needs at least one evaluation area",
                category=ErrorCategory.FATAL,
                context={"topic": topic},
            )
        share = 1 / len(dimensions)
        dimensions = [d if d.weight is not None else d.model_copy(update={"weight": share}) for d in dimensions]

        domain_value = domain or suggest_domain(topic)
        template = get_template(domain_value)
        if quality_checks is None:
            quality_checks = template.default_quality_checks if template else DEFAULT_QUALITY_CHECKS

        config = ResearchConfig(
            id=str(uuid.uuid4()),
            topic=topic,
            context=ResearchContext(
                domain=ResearchDomain.coerce(domain_value) if domain_value else ResearchDomain.CUSTOM,
                audience=tuple(audience or ()) or ("general",),
                perspective=perspective or "balanced",
                constraints={"goal": goal} if goal else None,
            ),
            dimensions=tuple(dimensions),
            output_format=OutputFormat.coerce(output_format) if output_format else OutputFormat.SYNTHESIS,
            quality_checks=tuple(quality_checks),
        )
        return self._store_plan(config)

    def _store_plan(self, config: ResearchConfig) -> FinalizedPlan:
        self.configs.put(config)
        self.runlog.append(ConfigFinalizedEvent(
            session_id=config.session_id,
            config_id=config.id,
            dimension_count=len(config.dimensions),
        ))
        console.success(f"Research plan ready: {len(config.dimensions)} dimensions", config.id)
        return FinalizedPlan(config_id=config.id, config=config, preview=render_plan_preview(config))

    def modify_plan(self, config_id: str, modifications: Mapping[str, Any]) -> ResearchConfig:
        """
        Shallow-merge `modifications` into a stored plan.

        `context` is merged key by key; every other field is replaced. The
        id is kept and the result is re-validated.
        """
        config = self.configs.get(config_id)
        data = config.model_dump()
        changes = dict(modifications)
        changes.pop("id", None)

        context = changes.pop("context", None)
        if context:
            data["context"] = {**data["context"], **dict(context)}
        data.update(changes)

        try:
            updated = ResearchConfig.model_validate(data)
        except ValidationError as e:
            raise FlexResearchError(
                f"Invalid plan modification for {config_id}",
                category=ErrorCategory.FATAL,
                context={"errors": e.error_count()},
                original_error=e,
            ) from e
        return self.configs.put(updated)

    def get_config(self, config_id: str) -> ResearchConfig:
        return self.configs.get(config_id)

    # === Execution ===

    async def run_batch(
        self,
        config_id: str,
        mode: Optional[str] = None,
        max_concurrent: Optional[int] = None,
        include_quality_review: bool = False,
        cancel: Optional[CancellationToken] = None,
        deadline: Optional[Deadline] = None,
    ) -> ResearchRun:
        """
        Run every dimension of a stored plan, then review and synthesize.

        Unit failures are reported inside the returned batch. A failed quality
        review is skipped with a warning; a failed synthesis carries `error`.
        """
        config = self.configs.get(config_id)
        batch = Batch.from_config(
            config,
            mode=mode or self.default_mode,
            max_concurrent=max_concurrent or self.default_max_concurrent,
        )

        await self.orchestrator.run(batch, config, cancel, deadline)

        review = None
        if include_quality_review and batch.completed_units:
            try:
                review = await self.reviewer.review(config, batch.results(), cancel, deadline)
            except (CompletionError, OperationCancelledError) as e:
                console.warning("Quality review skipped", e.message)

        synthesis = await self.synthesis_agent.synthesize(config, batch, review, cancel, deadline)

        run = ResearchRun(config=config, batch=batch, synthesis=synthesis, quality_review=review)
        self.runs[batch.id] = run
        return run

    def get_run(self, batch_id: str) -> ResearchRun:
        run = self.runs.get(batch_id)
        if run is None:
            raise RunNotFoundError(batch_id)
        return run

    def get_recommendation(self, batch_id: str) -> Recommendations:
        """
        Primary and supporting recommendations of a finished run.

        Raises:
            RunNotFoundError: no run under this batch id
            FlexResearchError: the run's synthesis failed, so nothing was recommended
        """
        synthesis = self.get_run(batch_id).synthesis
        if synthesis.error:
            raise FlexResearchError(
                f"No recommendation available for run {batch_id}",
                category=ErrorCategory.DEGRADED,
                context={"batch_id": batch_id, "error": synthesis.error},
            )
        return synthesis.recommendations

    async def aclose(self) -> None:
        await self.gateway.aclose()

    def _record_admission_wait(self, wait_seconds: float, in_window: int) -> None:
        self.runlog.append(AdmissionWaitEvent(wait_seconds=wait_seconds, in_window=in_window))
