"""Tests for CompletionGateway: admission, rate-limit retry, cancellation."""

import asyncio

import pytest

from FlexResearch.infrastructure import (
    CancellationToken,
    CompletionError,
    CompletionErrorKind,
    Deadline,
    OperationCancelledError,
)
from FlexResearch.llm_backends import CompletionGateway, ModelParameters

from conftest import FakeCompletionService


def rate_limited() -> CompletionError:
    return CompletionError("429 Too Many Requests", CompletionErrorKind.RATE_LIMITED)


class FlakyService(FakeCompletionService):
    """Fails with the given errors first, then answers."""

    def __init__(self, *errors):
        super().__init__(default="answer")
        self.errors = list(errors)

    async def acomplete(self, system, prompt, params):
        self.calls.append((system, prompt, params))
        if self.errors:
            raise self.errors.pop(0)
        return self.default


def test_every_call_is_admitted(gateway, service, admission):
    async def run():
        for _ in range(3):
            await gateway.complete(None, "hello", ModelParameters())

    asyncio.run(run())
    assert admission.total_admitted == 3
    assert gateway.call_count == 3
    assert len(service.calls) == 3


def test_rate_limited_call_retries_once_after_backoff(admission, clock):
    service = FlakyService(rate_limited())
    gateway = CompletionGateway(service, admission, rate_limit_backoff=5.0, sleep=clock.sleep)

    result = asyncio.run(gateway.complete(None, "hello", ModelParameters()))

    assert result == "answer"
    assert len(service.calls) == 2
    assert clock.sleeps == [5.0]
    assert admission.total_admitted == 2
    assert gateway.rate_limit_retries == 1


def test_second_rate_limit_propagates(admission, clock):
    service = FlakyService(rate_limited(), rate_limited())
    gateway = CompletionGateway(service, admission, sleep=clock.sleep)

    with pytest.raises(CompletionError) as exc:
        asyncio.run(gateway.complete(None, "hello", ModelParameters()))

    assert exc.value.rate_limited
    assert len(service.calls) == 2


def test_other_failures_are_not_retried(admission, clock):
    service = FlakyService(CompletionError("server error"))
    gateway = CompletionGateway(service, admission, sleep=clock.sleep)

    with pytest.raises(CompletionError) as exc:
        asyncio.run(gateway.complete(None, "hello", ModelParameters()))

    assert exc.value.kind == CompletionErrorKind.OTHER
    assert len(service.calls) == 1
    assert clock.sleeps == []


def test_purpose_parameters(gateway, service):
    asyncio.run(gateway.complete_for("extract", None, "json please"))

    params = service.calls[0][2]
    assert params.temperature == 0.0
    assert params.max_tokens == 1000
    assert gateway.params_for("research").max_tokens == 4000


def test_cancelled_token_prevents_call(gateway, service):
    token = CancellationToken()
    token.cancel()

    with pytest.raises(OperationCancelledError):
        asyncio.run(gateway.complete(None, "hello", ModelParameters(), cancel=token))
    assert service.calls == []


def test_token_interrupts_call_in_flight(admission):
    class SlowService(FakeCompletionService):
        async def acomplete(self, system, prompt, params):
            self.calls.append((system, prompt, params))
            await asyncio.sleep(30)
            return "late"

    service = SlowService()
    gateway = CompletionGateway(service, admission)
    token = CancellationToken()

    async def run():
        call = asyncio.ensure_future(gateway.complete(None, "slow", ModelParameters(), cancel=token))
        await asyncio.sleep(0.01)
        token.cancel("user")
        return await call

    with pytest.raises(OperationCancelledError):
        asyncio.run(run())
    assert len(service.calls) == 1


def test_deadline_bounds_call_duration(admission):
    class SlowService(FakeCompletionService):
        async def acomplete(self, system, prompt, params):
            await asyncio.sleep(30)
            return "late"

    gateway = CompletionGateway(SlowService(), admission)

    async def run():
        return await gateway.complete(None, "slow", ModelParameters(), deadline=Deadline.within(0.05))

    with pytest.raises(OperationCancelledError) as exc:
        asyncio.run(run())
    assert exc.value.reason == "deadline"


def test_aclose_closes_service(gateway, service):
    asyncio.run(gateway.aclose())
    assert service.closed
