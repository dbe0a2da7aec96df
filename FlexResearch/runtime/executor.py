"""
WorkUnitExecutor: runs one research work unit to a terminal state.

A unit makes two gated completion calls: research, then structuring. If the
structured re-statement cannot be parsed the unit still completes with a
degraded result built from the raw research text. Every other failure is
recorded on the unit; nothing but task cancellation escapes execute().
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, Field

from ..infrastructure.cancellation import CancellationToken, Deadline
from ..infrastructure.errors import CompletionError, CompletionErrorKind, FlexResearchError
from ..models.research import DimensionResults, ResearchConfig, ResearchDimension
from ..research.parsing import MalformedOutputError, parse_model
from ..research.prompts import unit_research_prompt, unit_structuring_prompt, unit_system_prompt
from ..utils import console
from .runlog import RunLog, UnitCompletedEvent, UnitFailedEvent, UnitStartedEvent
from .workunit import WorkUnit

if TYPE_CHECKING:
    from ..llm_backends.gateway import CompletionGateway


DEGRADED_CONFIDENCE = 0.6
DEFAULT_CONFIDENCE = 0.7
SUMMARY_CHARS = 500


class StructuredFindings(BaseModel):
    """Expected shape of the structuring call's JSON."""

    findings: Optional[dict[str, Any]] = None
    evidence: list[str] = Field(default_factory=list)
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    sources: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "ignore"}


def degraded_result(dimension: ResearchDimension, research_text: str) -> DimensionResults:
    """Fallback result keeping the raw research text."""
    return DimensionResults(
        dimension_id=dimension.id,
        findings={
            "raw": research_text,
            "summary": research_text[:SUMMARY_CHARS] + "...",
        },
        evidence=[],
        confidence=DEGRADED_CONFIDENCE,
        sources=[],
        metadata={"parse_error": True, "timestamp": datetime.now().isoformat()},
        parse_failure=True,
    )


class WorkUnitExecutor:
    """
    Executes single work units against the completion gateway.

    Args:
        gateway: Admission-gated completion path
        depth: "comprehensive" or "basic" research instructions
        include_sources: Ask the research call to cite sources
        runlog: Optional event log for unit lifecycle events
    """

    def __init__(
        self,
        gateway: "CompletionGateway",
        depth: str = "comprehensive",
        include_sources: bool = True,
        runlog: Optional[RunLog] = None,
    ):
        self.gateway = gateway
        self.depth = depth
        self.include_sources = include_sources
        self.runlog = runlog

    async def execute(
        self,
        unit: WorkUnit,
        config: ResearchConfig,
        cancel: Optional[CancellationToken] = None,
        deadline: Optional[Deadline] = None,
    ) -> WorkUnit:
        """Run `unit` to completed or failed and return it."""
        unit.mark_running()
        console.unit_start(unit.dimension.name)
        self._log(UnitStartedEvent(batch_id=unit.batch_id, unit_id=unit.id, dimension_id=unit.dimension.id))

        try:
            result = await self._research(unit.dimension, config, cancel, deadline)
        except asyncio.CancelledError:
            self._fail(unit, "Execution cancelled")
            raise
        except CompletionError as e:
            self._fail(unit, f"Completion failed ({e.kind.value}): {e.message}")
            return unit
        except FlexResearchError as e:
            self._fail(unit, e.message)
            return unit
        except Exception as e:
            self._fail(unit, f"{type(e).__name__}: {e}")
            return unit

        unit.mark_completed(result)
        console.unit_complete(unit.dimension.name, result.confidence, degraded=result.parse_failure)
        self._log(UnitCompletedEvent(
            batch_id=unit.batch_id,
            unit_id=unit.id,
            confidence=result.confidence,
            degraded=result.parse_failure,
        ))
        return unit

    async def _research(
        self,
        dimension: ResearchDimension,
        config: ResearchConfig,
        cancel: Optional[CancellationToken],
        deadline: Optional[Deadline],
    ) -> DimensionResults:
        research_text = await self.gateway.complete_for(
            "research",
            unit_system_prompt(config, dimension),
            unit_research_prompt(config, dimension, self.depth, self.include_sources),
            cancel,
            deadline,
        )
        if not research_text or not research_text.strip():
            raise CompletionError("Research call returned no text", CompletionErrorKind.OTHER)

        structured_text = await self.gateway.complete_for(
            "structure",
            None,
            unit_structuring_prompt(research_text, dimension),
            cancel,
            deadline,
        )
        return self.build_result(dimension, research_text, structured_text)

    def build_result(
        self,
        dimension: ResearchDimension,
        research_text: str,
        structured_text: str,
    ) -> DimensionResults:
        """Structured result, or the degraded fallback on malformed output."""
        try:
            structured = parse_model(structured_text, StructuredFindings)
        except MalformedOutputError as e:
            console.debug(f"Unstructured findings for {dimension.name}", str(e))
            return degraded_result(dimension, research_text)

        return DimensionResults(
            dimension_id=dimension.id,
            findings=structured.findings or {"raw": research_text},
            evidence=structured.evidence,
            confidence=structured.confidence if structured.confidence is not None else DEFAULT_CONFIDENCE,
            sources=structured.sources,
            metadata={
                **structured.metadata,
                "research_depth": self.depth,
                "timestamp": datetime.now().isoformat(),
            },
        )

    def _fail(self, unit: WorkUnit, reason: str) -> None:
        unit.mark_failed(reason)
        console.unit_failed(unit.dimension.name, reason)
        self._log(UnitFailedEvent(batch_id=unit.batch_id, unit_id=unit.id, error=reason))

    def _log(self, event) -> None:
        if self.runlog is not None:
            self.runlog.append(event)
