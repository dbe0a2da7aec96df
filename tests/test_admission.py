"""Tests for the sliding-window AdmissionController."""

import asyncio

import pytest

from FlexResearch.infrastructure import CancellationToken, Deadline, OperationCancelledError
from FlexResearch.runtime import AdmissionController

from conftest import VirtualClock


def make_controller(clock: VirtualClock, n: int = 2, window: float = 1.0, **kwargs) -> AdmissionController:
    return AdmissionController(
        max_requests=n,
        window_seconds=window,
        buffer_seconds=0.1,
        clock=clock,
        sleep=clock.sleep,
        **kwargs,
    )


def test_third_call_waits_for_window_plus_buffer(clock):
    controller = make_controller(clock)

    async def run():
        return [await controller.admit() for _ in range(3)]

    times = asyncio.run(run())

    assert times[:2] == [0.0, 0.0]
    assert times[2] == pytest.approx(1.1)
    assert clock.sleeps == [pytest.approx(1.1)]
    assert controller.total_waits == 1


def test_concurrent_callers_admitted_in_window_order(clock):
    controller = make_controller(clock)

    async def run():
        return await asyncio.gather(*(controller.admit() for _ in range(3)))

    times = sorted(asyncio.run(run()))

    assert times[0] == times[1] == 0.0
    assert times[2] == pytest.approx(1.1)


def test_window_never_exceeds_limit(clock):
    controller = make_controller(clock, n=3, window=2.0)

    async def run():
        return await asyncio.gather(*(controller.admit() for _ in range(10)))

    times = sorted(asyncio.run(run()))

    for t in times:
        in_window = [s for s in times if t - 2.0 < s <= t]
        assert len(in_window) <= 3
    assert controller.total_admitted == 10


def test_entries_exactly_one_window_old_are_purged(clock):
    controller = make_controller(clock, n=1, window=1.0)

    async def run():
        await controller.admit()
        clock.now = 1.0
        return await controller.admit()

    assert asyncio.run(run()) == 1.0
    assert clock.sleeps == []


def test_on_wait_observer_reports_suspensions(clock):
    seen = []
    controller = make_controller(clock, n=1, on_wait=lambda wait, in_window: seen.append((wait, in_window)))

    async def run():
        await controller.admit()
        await controller.admit()

    asyncio.run(run())

    assert seen == [(pytest.approx(1.1), 1)]


def test_remaining_counts_free_slots(clock):
    controller = make_controller(clock, n=3)

    async def run():
        await controller.admit()

    asyncio.run(run())
    assert controller.remaining() == 2
    assert controller.window_snapshot() == [0.0]

    clock.now = 5.0
    assert controller.remaining() == 3


def test_cancelled_token_rejects_admission(clock):
    controller = make_controller(clock)
    token = CancellationToken()
    token.cancel("user stopped")

    with pytest.raises(OperationCancelledError):
        asyncio.run(controller.admit(cancel=token))
    assert controller.total_admitted == 0


def test_wait_past_deadline_fails_without_sleeping(clock):
    controller = make_controller(clock, n=1)
    deadline = Deadline(0.5, clock)

    async def run():
        await controller.admit(deadline=deadline)
        await controller.admit(deadline=deadline)

    with pytest.raises(OperationCancelledError) as exc:
        asyncio.run(run())
    assert exc.value.reason == "deadline"
    assert clock.sleeps == []


def test_token_interrupts_wait_in_progress():
    controller = AdmissionController(max_requests=1, window_seconds=30.0)
    token = CancellationToken()

    async def run():
        await controller.admit()
        waiter = asyncio.ensure_future(controller.admit(cancel=token))
        await asyncio.sleep(0.01)
        token.cancel("shutdown")
        await waiter

    with pytest.raises(OperationCancelledError):
        asyncio.run(run())
    assert controller.total_admitted == 1


@pytest.mark.parametrize("kwargs", [
    {"max_requests": 0},
    {"window_seconds": 0},
    {"buffer_seconds": -1},
])
def test_rejects_invalid_limits(kwargs):
    with pytest.raises(ValueError):
        AdmissionController(**kwargs)
