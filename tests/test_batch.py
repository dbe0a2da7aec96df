"""Tests for BatchOrchestrator: slicing, isolation, parity, cancellation."""

import asyncio
import math

import pytest
from pydantic import ValidationError

from FlexResearch.infrastructure import CancellationToken, CompletionError
from FlexResearch.models import ResearchConfig, ResearchDimension
from FlexResearch.runtime import (
    Batch,
    BatchOrchestrator,
    ExecutionMode,
    RunLog,
    UnitStatus,
    WorkUnitExecutor,
)
from FlexResearch.runtime.batch import NOT_STARTED_REASON
from FlexResearch.runtime.runlog import EventType

from conftest import (
    RESEARCH_PROMPT,
    UNIT_STRUCTURE_PROMPT,
    FakeCompletionService,
    make_config,
    structured_findings,
)


class TrackingService(FakeCompletionService):
    """Records the peak number of overlapping calls."""

    def __init__(self):
        super().__init__(routes=[(UNIT_STRUCTURE_PROMPT, structured_findings())], default="research text")
        self.in_flight = 0
        self.peak = 0

    async def acomplete(self, system, prompt, params):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            for _ in range(3):
                await asyncio.sleep(0)
            return await super().acomplete(system, prompt, params)
        finally:
            self.in_flight -= 1


def run_batch(gateway, clock, k, mode, m=3, cancel=None, sleep=None, runlog=None):
    config = make_config(k)
    batch = Batch.from_config(config, mode=mode, max_concurrent=m)
    orchestrator = BatchOrchestrator(
        WorkUnitExecutor(gateway, runlog=runlog),
        inter_slice_pause=2.0,
        sleep=sleep or clock.sleep,
        runlog=runlog,
    )
    return asyncio.run(orchestrator.run(batch, config, cancel=cancel))


@pytest.mark.parametrize("k,m", [(1, 3), (3, 3), (5, 2), (7, 3)])
def test_concurrent_mode_runs_ceil_k_over_m_slices(gateway, clock, service, k, m):
    service.route(UNIT_STRUCTURE_PROMPT, structured_findings())

    batch = run_batch(gateway, clock, k, "concurrent", m)

    slices = math.ceil(k / m)
    assert batch.slices_run == slices
    assert clock.sleeps == [2.0] * (slices - 1)
    assert all(u.status == UnitStatus.COMPLETED for u in batch.units)


def test_sequential_mode_counts_each_unit(gateway, clock, service):
    batch = run_batch(gateway, clock, 4, "sequential")

    assert batch.mode == ExecutionMode.SEQUENTIAL
    assert batch.slices_run == 4
    assert clock.sleeps == []


def test_call_count_is_identical_across_modes(admission, clock):
    from FlexResearch.llm_backends import CompletionGateway

    counts = {}
    for mode in ("concurrent", "sequential"):
        service = FakeCompletionService(routes=[(UNIT_STRUCTURE_PROMPT, structured_findings())])
        gateway = CompletionGateway(service, admission, sleep=clock.sleep)
        run_batch(gateway, clock, 5, mode, m=2)
        counts[mode] = len(service.calls)

    assert counts["concurrent"] == counts["sequential"] == 10


def test_concurrency_never_exceeds_slice_size(admission, clock):
    from FlexResearch.llm_backends import CompletionGateway

    service = TrackingService()
    gateway = CompletionGateway(service, admission, sleep=clock.sleep)

    batch = run_batch(gateway, clock, 7, "concurrent", m=3)

    assert service.peak <= 3
    assert service.peak > 1
    assert len(batch.completed_units) == 7


def test_one_failure_does_not_stop_other_units(gateway, clock, service):
    service.route(UNIT_STRUCTURE_PROMPT, structured_findings())
    service.route("dimension: Dimension 2\n", CompletionError("dimension two failed"))

    batch = run_batch(gateway, clock, 4, "concurrent", m=2)

    statuses = {u.dimension.id: u.status for u in batch.units}
    assert statuses["dim_2"] == UnitStatus.FAILED
    assert [s for d, s in statuses.items() if d != "dim_2"] == [UnitStatus.COMPLETED] * 3
    assert batch.all_terminal
    assert set(batch.results()) == {"dim_1", "dim_3", "dim_4"}


def test_failure_isolation_in_sequential_mode(gateway, clock, service):
    service.route("dimension: Dimension 1\n", CompletionError("first failed"))

    batch = run_batch(gateway, clock, 3, "sequential")

    assert batch.units[0].status == UnitStatus.FAILED
    assert all(u.status == UnitStatus.COMPLETED for u in batch.units[1:])


def test_cancel_before_start_fails_every_unit(gateway, clock, service):
    token = CancellationToken()
    token.cancel()

    batch = run_batch(gateway, clock, 3, "concurrent", cancel=token)

    assert batch.slices_run == 0
    assert all(u.status == UnitStatus.FAILED for u in batch.units)
    assert all(u.error == NOT_STARTED_REASON for u in batch.units)
    assert service.calls == []


def test_cancel_during_pause_stops_later_slices(gateway, clock, service):
    token = CancellationToken()

    async def cancelling_sleep(delay):
        token.cancel("operator")

    batch = run_batch(gateway, clock, 5, "concurrent", m=2, cancel=token, sleep=cancelling_sleep)

    assert batch.slices_run == 1
    assert [u.status for u in batch.units[:2]] == [UnitStatus.COMPLETED] * 2
    assert all(u.error == NOT_STARTED_REASON for u in batch.units[2:])
    assert len(service.calls) == 4


def test_batch_events(gateway, clock, service):
    runlog = RunLog(run_id="batch-test")

    batch = run_batch(gateway, clock, 3, "concurrent", m=2, runlog=runlog)

    events = runlog.query_by_batch(batch.id)
    assert events[0].event_type == EventType.BATCH_STARTED
    assert events[-1].event_type == EventType.BATCH_COMPLETED
    assert events[-1].slices_run == 2
    assert len(runlog.query_by_type(EventType.SLICE_STARTED)) == 2
    assert len(runlog.query_by_type(EventType.UNIT_COMPLETED)) == 3


def test_slices_are_consecutive():
    batch = Batch.from_config(make_config(5), max_concurrent=2)

    assert [[u.dimension.id for u in s] for s in batch.slices()] == [
        ["dim_1", "dim_2"],
        ["dim_3", "dim_4"],
        ["dim_5"],
    ]
    assert ExecutionMode.parse("parallel") == ExecutionMode.CONCURRENT


def test_units_get_their_own_ids():
    config = make_config(3)

    first = Batch.from_config(config)
    second = Batch.from_config(config)

    ids = [u.id for u in first.units] + [u.id for u in second.units]
    assert len(set(ids)) == 6
    assert [u.dimension.id for u in first.units] == ["dim_1", "dim_2", "dim_3"]


def test_plan_rejects_duplicate_dimension_ids():
    with pytest.raises(ValidationError):
        ResearchConfig(
            id="config-dup",
            topic="Home battery storage",
            dimensions=(
                ResearchDimension(id="same", name="Pricing"),
                ResearchDimension(id="same", name="Adoption"),
            ),
        )
