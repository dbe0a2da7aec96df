"""
FlexResearch Test Configuration

Shared fixtures: a scripted completion service, a virtual clock for
admission timing, and helpers for building plans.
"""

import asyncio
import json
from typing import Any, Callable, Optional, Union

import pytest

from FlexResearch.config import SettingsLoader
from FlexResearch.llm_backends import CompletionGateway, CompletionService, ModelParameters
from FlexResearch.models import QualityCheckConfig, ResearchConfig, ResearchDimension
from FlexResearch.runtime import AdmissionController
from FlexResearch.utils import Console, TimingCollector


Reply = Union[str, Exception, Callable[[Optional[str], str], str]]

RESEARCH_PROMPT = 'Research "'
UNIT_STRUCTURE_PROMPT = "Extract and structure the research findings"
SYNTHESIS_PROMPT = "Synthesize research findings"
SYNTHESIS_STRUCTURE_PROMPT = "Extract structured synthesis"
SUMMARY_PROMPT = "Create a concise executive summary"
REVIEW_PROMPT = "Review this research and provide"
REVIEW_STRUCTURE_PROMPT = "Extract structured quality review"
CLARIFY_PROMPT = "The user wants to research"
CONVERSE_PROMPT = "Conversation history:"
EXTRACT_PROMPT = "Extract structured configuration"
DIMENSIONS_PROMPT = "generate 3-5 research dimensions"
SUGGEST_PROMPT = "Based on this quality review"


class FakeCompletionService(CompletionService):
    """
    Scripted completion service.

    Routes are (substring, reply) pairs checked in order against the prompt;
    a reply is a string, an exception to raise, or a callable of
    (system, prompt). Unmatched prompts get `default`.
    """

    def __init__(self, routes=None, default: str = "ok"):
        self.routes: list[tuple[str, Reply]] = list(routes or [])
        self.default = default
        self.calls: list[tuple[Optional[str], str, ModelParameters]] = []
        self.closed = False

    def route(self, marker: str, reply: Reply) -> "FakeCompletionService":
        self.routes.insert(0, (marker, reply))
        return self

    def calls_matching(self, marker: str) -> list[str]:
        return [prompt for _, prompt, _ in self.calls if marker in prompt]

    async def acomplete(self, system: Optional[str], prompt: str, params: ModelParameters) -> str:
        self.calls.append((system, prompt, params))
        await asyncio.sleep(0)
        for marker, reply in self.routes:
            if marker in prompt:
                if isinstance(reply, Exception):
                    raise reply
                if callable(reply):
                    return reply(system, prompt)
                return reply
        return self.default

    async def aclose(self) -> None:
        self.closed = True


class VirtualClock:
    """Monotonic clock advanced only by its own sleep."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        target = self.now + delay
        self.sleeps.append(delay)
        await asyncio.sleep(0)
        self.now = max(self.now, target)


def structured_findings(confidence: float = 0.85, **extra: Any) -> str:
    payload = {
        "findings": {"theme": "observed pattern"},
        "evidence": ["data point one", "data point two"],
        "confidence": confidence,
        "sources": ["industry report"],
        "metadata": {"notes": "structured"},
    }
    payload.update(extra)
    return json.dumps(payload)


def make_config(
    dimension_count: int = 3,
    output_format: str = "comparison",
    quality_checks=None,
) -> ResearchConfig:
    dimensions = tuple(
        ResearchDimension(
            id=f"dim_{i}",
            name=f"Dimension {i}",
            description=f"Facet number {i}",
            evaluation_criteria=["criterion"],
            data_points=["data"],
            weight=1 / dimension_count,
        )
        for i in range(1, dimension_count + 1)
    )
    return ResearchConfig(
        id="config-1",
        topic="Home battery storage",
        dimensions=dimensions,
        output_format=output_format,
        quality_checks=tuple(quality_checks or ()),
    )


@pytest.fixture(autouse=True)
def quiet_console():
    """Silence styled console output and reset singletons around each test."""
    Console.set_quiet(True)
    Console.set_verbose(False)
    SettingsLoader.reset()
    TimingCollector.reset()
    yield
    Console.set_quiet(False)
    SettingsLoader.reset()
    TimingCollector.reset()


@pytest.fixture
def clock() -> VirtualClock:
    return VirtualClock()


@pytest.fixture
def service() -> FakeCompletionService:
    return FakeCompletionService()


@pytest.fixture
def admission(clock) -> AdmissionController:
    return AdmissionController(max_requests=100, window_seconds=60.0, clock=clock, sleep=clock.sleep)


@pytest.fixture
def gateway(service, admission, clock) -> CompletionGateway:
    return CompletionGateway(service, admission, rate_limit_backoff=5.0, sleep=clock.sleep)


@pytest.fixture
def quality_checks():
    return [
        QualityCheckConfig(type="completeness", criteria=["coverage"], threshold=0.8),
        QualityCheckConfig(type="bias", criteria=["balance"], threshold=0.75),
    ]
