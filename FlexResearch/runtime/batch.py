"""
BatchOrchestrator: runs every unit of a batch to a terminal state.

Sequential mode runs units one at a time in batch order. Concurrent mode
launches consecutive slices of at most `max_concurrent` units, waits for the
whole slice, pauses, then moves on. One unit's failure never stops another
unit from running, and run() always returns the full batch.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional

from ..infrastructure.cancellation import (
    CancellationToken,
    Deadline,
    SleepFn,
    interruptible_sleep,
)
from ..infrastructure.errors import OperationCancelledError
from ..models.research import ResearchConfig
from ..utils import console
from .executor import WorkUnitExecutor
from .runlog import (
    BatchCompletedEvent,
    BatchStartedEvent,
    RunLog,
    SliceStartedEvent,
    UnitFailedEvent,
)
from .workunit import Batch, ExecutionMode, UnitStatus, WorkUnit


logger = logging.getLogger("flexresearch.batch")

NOT_STARTED_REASON = "Cancelled before start"


class BatchOrchestrator:
    """
    Executes batches with per-unit failure isolation.

    Args:
        executor: Runs individual units
        inter_slice_pause: Seconds between concurrent slices (not after the last)
        sleep: Coroutine used for the pause
        runlog: Optional event log for batch and slice events
    """

    def __init__(
        self,
        executor: WorkUnitExecutor,
        inter_slice_pause: float = 2.0,
        sleep: SleepFn = asyncio.sleep,
        runlog: Optional[RunLog] = None,
    ):
        self.executor = executor
        self.inter_slice_pause = inter_slice_pause
        self._sleep = sleep
        self.runlog = runlog

    async def run(
        self,
        batch: Batch,
        config: ResearchConfig,
        cancel: Optional[CancellationToken] = None,
        deadline: Optional[Deadline] = None,
    ) -> Batch:
        """Run all units; every unit of the returned batch is terminal."""
        batch.started_at = datetime.now()
        batch.slices_run = 0
        console.batch_start(len(batch.units), batch.mode.value, batch.max_concurrent)
        self._log(BatchStartedEvent(
            batch_id=batch.id,
            config_id=batch.config_id,
            mode=batch.mode.value,
            unit_count=len(batch.units),
            max_concurrent=batch.max_concurrent,
        ))

        try:
            if batch.mode == ExecutionMode.SEQUENTIAL:
                await self._run_sequential(batch, config, cancel, deadline)
            else:
                await self._run_concurrent(batch, config, cancel, deadline)
        finally:
            self._fail_unstarted(batch)
            batch.completed_at = datetime.now()

        completed, failed = len(batch.completed_units), len(batch.failed_units)
        logger.info("Batch %s finished: %d completed, %d failed", batch.id, completed, failed)
        console.batch_complete(completed, failed)
        self._log(BatchCompletedEvent(
            batch_id=batch.id,
            completed=completed,
            failed=failed,
            slices_run=batch.slices_run,
        ))
        return batch

    async def _run_sequential(
        self,
        batch: Batch,
        config: ResearchConfig,
        cancel: Optional[CancellationToken],
        deadline: Optional[Deadline],
    ) -> None:
        for index, unit in enumerate(batch.units):
            if self._stopped(cancel, deadline):
                return
            batch.slices_run += 1
            self._log(SliceStartedEvent(batch_id=batch.id, slice_index=index, unit_ids=[unit.id]))
            try:
                await self.executor.execute(unit, config, cancel, deadline)
            except Exception as e:
                self._isolate(unit, e)
            console.progress(index + 1, len(batch.units), unit.dimension.name)

    async def _run_concurrent(
        self,
        batch: Batch,
        config: ResearchConfig,
        cancel: Optional[CancellationToken],
        deadline: Optional[Deadline],
    ) -> None:
        slices = batch.slices()
        for index, units in enumerate(slices):
            if self._stopped(cancel, deadline):
                return

            batch.slices_run += 1
            self._log(SliceStartedEvent(batch_id=batch.id, slice_index=index, unit_ids=[u.id for u in units]))
            console.debug(f"Slice {index + 1}/{len(slices)}", f"{len(units)} units")

            outcomes = await asyncio.gather(
                *(self.executor.execute(unit, config, cancel, deadline) for unit in units),
                return_exceptions=True,
            )
            for unit, outcome in zip(units, outcomes):
                if isinstance(outcome, BaseException):
                    self._isolate(unit, outcome)

            if index < len(slices) - 1:
                try:
                    await interruptible_sleep(self.inter_slice_pause, self._sleep, cancel, deadline)
                except OperationCancelledError:
                    return

    def _stopped(self, cancel: Optional[CancellationToken], deadline: Optional[Deadline]) -> bool:
        return (cancel is not None and cancel.cancelled) or (deadline is not None and deadline.expired)

    def _isolate(self, unit: WorkUnit, error: BaseException) -> None:
        """Record an exception that escaped the executor on its unit."""
        if unit.terminal:
            return
        reason = f"{type(error).__name__}: {error}"
        if unit.status == UnitStatus.PENDING:
            unit.mark_running()
        unit.mark_failed(reason)
        console.unit_failed(unit.dimension.name, reason)
        self._log(UnitFailedEvent(batch_id=unit.batch_id, unit_id=unit.id, error=reason))

    def _fail_unstarted(self, batch: Batch) -> None:
        for unit in batch.units:
            if unit.status == UnitStatus.PENDING:
                unit.mark_failed(NOT_STARTED_REASON)
                self._log(UnitFailedEvent(batch_id=batch.id, unit_id=unit.id, error=NOT_STARTED_REASON))
            elif unit.status == UnitStatus.RUNNING:
                # Only reachable when the run task itself was cancelled mid-unit
                unit.mark_failed("Execution cancelled")

    def _log(self, event) -> None:
        if self.runlog is not None:
            self.runlog.append(event)
