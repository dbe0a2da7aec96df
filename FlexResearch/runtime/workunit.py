"""
WorkUnit and Batch: the units of research work and their container.

Provides:
- UnitStatus: monotonic lifecycle pending -> running -> completed | failed
- WorkUnit: one dimension of one research plan
- Batch: ordered units plus execution mode and concurrency cap
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..infrastructure.errors import InvalidTransitionError
from ..models.research import DimensionResults, ResearchConfig, ResearchDimension


class UnitStatus(str, Enum):
    """Status of a work unit."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# pending -> failed covers units cancelled before they ever started
_ALLOWED_TRANSITIONS: dict[UnitStatus, set[UnitStatus]] = {
    UnitStatus.PENDING: {UnitStatus.RUNNING, UnitStatus.FAILED},
    UnitStatus.RUNNING: {UnitStatus.COMPLETED, UnitStatus.FAILED},
    UnitStatus.COMPLETED: set(),
    UnitStatus.FAILED: set(),
}


class ExecutionMode(str, Enum):
    CONCURRENT = "concurrent"
    SEQUENTIAL = "sequential"

    @classmethod
    def parse(cls, value: "str | ExecutionMode") -> "ExecutionMode":
        """Accept 'parallel' as an alias of 'concurrent'."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        if normalized == "parallel":
            return cls.CONCURRENT
        return cls(normalized)


class WorkUnit(BaseModel):
    """
    One independently schedulable piece of research work.

    Attributes:
        id: Unique identifier
        batch_id: Owning batch
        dimension: Facet this unit researches
        status: Current lifecycle state
        result: Structured findings once completed
        error: Diagnostic reason once failed
        degraded: Completed with a fallback result
        started_at: When execution started
        completed_at: When a terminal state was reached
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Unit identifier")
    batch_id: str = Field(..., description="Owning batch")
    dimension: ResearchDimension = Field(..., description="Dimension researched")

    status: UnitStatus = Field(default=UnitStatus.PENDING, description="Current status")
    result: Optional[DimensionResults] = Field(default=None, description="Findings if completed")
    error: Optional[str] = Field(default=None, description="Reason if failed")
    degraded: bool = Field(default=False, description="Completed with a fallback result")

    started_at: Optional[datetime] = Field(default=None, description="Start time")
    completed_at: Optional[datetime] = Field(default=None, description="Terminal time")

    model_config = {"extra": "forbid"}

    @property
    def terminal(self) -> bool:
        return self.status in (UnitStatus.COMPLETED, UnitStatus.FAILED)

    def _transition(self, target: UnitStatus) -> None:
        if target not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(f"WorkUnit {self.id}", self.status.value, target.value)
        self.status = target

    def mark_running(self) -> None:
        self._transition(UnitStatus.RUNNING)
        self.started_at = datetime.now()

    def mark_completed(self, result: DimensionResults) -> None:
        self._transition(UnitStatus.COMPLETED)
        self.result = result
        self.degraded = result.parse_failure
        self.completed_at = datetime.now()

    def mark_failed(self, error: str) -> None:
        self._transition(UnitStatus.FAILED)
        self.error = error
        self.completed_at = datetime.now()


class Batch(BaseModel):
    """
    Ordered work units executed together under one orchestration call.

    `slices_run` counts slices in concurrent mode and units in sequential
    mode, as actually executed.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Batch identifier")
    config_id: str = Field(..., description="Configuration the units were derived from")
    units: list[WorkUnit] = Field(default_factory=list, description="Units in execution order")
    mode: ExecutionMode = Field(default=ExecutionMode.CONCURRENT)
    max_concurrent: int = Field(default=3, ge=1, description="Concurrency cap per slice")
    slices_run: int = Field(default=0, description="Slices executed")

    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = {"extra": "forbid"}

    @classmethod
    def from_config(
        cls,
        config: ResearchConfig,
        mode: "str | ExecutionMode" = ExecutionMode.CONCURRENT,
        max_concurrent: int = 3,
    ) -> "Batch":
        """One pending unit per dimension, in plan order."""
        batch = cls(
            config_id=config.id,
            mode=ExecutionMode.parse(mode),
            max_concurrent=max_concurrent,
        )
        batch.units = [
            WorkUnit(batch_id=batch.id, dimension=dim)
            for dim in config.dimensions
        ]
        return batch

    def slices(self) -> list[list[WorkUnit]]:
        """Consecutive slices of at most max_concurrent units."""
        m = self.max_concurrent
        return [self.units[i:i + m] for i in range(0, len(self.units), m)]

    @property
    def all_terminal(self) -> bool:
        return all(u.terminal for u in self.units)

    @property
    def completed_units(self) -> list[WorkUnit]:
        return [u for u in self.units if u.status == UnitStatus.COMPLETED]

    @property
    def failed_units(self) -> list[WorkUnit]:
        return [u for u in self.units if u.status == UnitStatus.FAILED]

    def results(self) -> dict[str, DimensionResults]:
        """Results of completed units keyed by dimension id."""
        return {u.dimension.id: u.result for u in self.completed_units if u.result is not None}

    def summary(self) -> dict[str, Any]:
        status_counts: dict[str, int] = {}
        for unit in self.units:
            status_counts[unit.status.value] = status_counts.get(unit.status.value, 0) + 1

        return {
            "batch_id": self.id,
            "mode": self.mode.value,
            "max_concurrent": self.max_concurrent,
            "total_units": len(self.units),
            "status_counts": status_counts,
            "degraded": sum(1 for u in self.units if u.degraded),
            "slices_run": self.slices_run,
        }
