"""Tests for the timing collector."""

import asyncio
import io

from rich.console import Console as RichConsole

from FlexResearch.runtime import AdmissionController
from FlexResearch.utils import TimingCollector, enable_timing, timing


def test_disabled_by_default():
    timing().record("acomplete", "completion", 12.0)

    assert timing().records() == []
    assert timing().summary() == {}


def test_env_switch_enables(monkeypatch):
    monkeypatch.setenv("FLEXRESEARCH_TIMING", "1")
    TimingCollector.reset()

    assert timing().enabled


def test_summary_per_category():
    enable_timing()
    timing().record("acomplete", "completion", 100.0, provider="anthropic")
    timing().record("acomplete", "completion", 300.0, provider="anthropic")
    timing().record("admit_wait", "admission", 50.0)

    summary = timing().summary()

    assert summary["completion"] == {"count": 2, "total_ms": 400.0, "max_ms": 300.0}
    assert summary["admission"]["count"] == 1
    assert timing().records()[0].metadata == {"provider": "anthropic"}


def test_admission_waits_are_timed(clock):
    enable_timing()
    controller = AdmissionController(max_requests=1, window_seconds=1.0, clock=clock, sleep=clock.sleep)

    async def run():
        await controller.admit()
        await controller.admit()

    asyncio.run(run())

    [record] = timing().records()
    assert record.operation == "admit_wait"
    assert record.metadata == {"requested_s": 1.1}


def test_render_table():
    enable_timing()
    timing().record("acomplete", "completion", 1500.0)
    out = RichConsole(file=io.StringIO(), width=100)

    timing().render(out)

    text = out.file.getvalue()
    assert "completion" in text
    assert "1.50" in text


def test_render_empty():
    out = RichConsole(file=io.StringIO(), width=100)

    timing().render(out)

    assert "No timing records" in out.file.getvalue()
