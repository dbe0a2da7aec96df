"""
CompletionGateway: the single path from FlexResearch to a completion service.

Every call is admitted by the shared AdmissionController first. A
rate-limited failure from the service triggers one fixed backoff and one
self-retry (which is admitted again); any other failure is surfaced as is.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Mapping, Optional

from .base import CompletionService, ModelParameters
from ..config.settings import DEFAULT_PURPOSES, PurposeParameters
from ..infrastructure.cancellation import (
    CancellationToken,
    Deadline,
    SleepFn,
    interruptible_sleep,
    raise_if_cancelled,
)
from ..infrastructure.errors import CompletionError, OperationCancelledError
from ..utils import console

if TYPE_CHECKING:
    from ..runtime.admission import AdmissionController


logger = logging.getLogger("flexresearch.completion")


class CompletionGateway:
    """
    Admission-gated wrapper around a CompletionService.

    Args:
        service: Backend that performs the call
        admission: Shared AdmissionController
        rate_limit_backoff: Seconds to wait before the single rate-limit retry
        purposes: Sampling parameters per call purpose
        sleep: Coroutine used for the backoff wait
    """

    def __init__(
        self,
        service: CompletionService,
        admission: AdmissionController,
        rate_limit_backoff: float = 5.0,
        purposes: Optional[Mapping[str, PurposeParameters]] = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.service = service
        self.admission = admission
        self.rate_limit_backoff = rate_limit_backoff
        self.purposes = dict(purposes or DEFAULT_PURPOSES)
        self._sleep = sleep

        self.call_count = 0
        self.rate_limit_retries = 0

    def params_for(self, purpose: str) -> ModelParameters:
        """Model parameters configured for a call purpose."""
        p = self.purposes.get(purpose) or DEFAULT_PURPOSES[purpose]
        return ModelParameters(temperature=p.temperature, max_tokens=p.max_tokens)

    async def complete(
        self,
        system: Optional[str],
        prompt: str,
        params: ModelParameters,
        cancel: Optional[CancellationToken] = None,
        deadline: Optional[Deadline] = None,
    ) -> str:
        """
        Admit, call, and retry once on a rate-limited failure.

        Raises:
            CompletionError: service failure, or a second rate-limited failure
            OperationCancelledError: token fired or deadline passed
        """
        for attempt in (1, 2):
            await self.admission.admit(cancel, deadline)
            try:
                return await self._call(system, prompt, params, cancel, deadline)
            except CompletionError as e:
                if not e.rate_limited or attempt == 2:
                    raise
                self.rate_limit_retries += 1
                logger.warning("Rate limited by service, retrying in %.1fs", self.rate_limit_backoff)
                console.warning(
                    "Completion service rate limit hit",
                    f"retrying once in {self.rate_limit_backoff:.1f}s",
                )
                await interruptible_sleep(self.rate_limit_backoff, self._sleep, cancel, deadline)

        raise AssertionError("unreachable")

    async def complete_for(
        self,
        purpose: str,
        system: Optional[str],
        prompt: str,
        cancel: Optional[CancellationToken] = None,
        deadline: Optional[Deadline] = None,
    ) -> str:
        """Shorthand for complete() with the parameters of a named purpose."""
        return await self.complete(system, prompt, self.params_for(purpose), cancel, deadline)

    async def _call(
        self,
        system: Optional[str],
        prompt: str,
        params: ModelParameters,
        cancel: Optional[CancellationToken],
        deadline: Optional[Deadline],
    ) -> str:
        raise_if_cancelled(cancel, deadline)
        self.call_count += 1

        if cancel is None and deadline is None:
            return await self.service.acomplete(system, prompt, params)

        call = asyncio.ensure_future(self.service.acomplete(system, prompt, params))
        waiters = {call}
        if cancel is not None:
            waiters.add(asyncio.ensure_future(cancel.wait()))
        timeout = deadline.remaining() if deadline is not None else None

        try:
            done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in waiters:
                if not task.done():
                    task.cancel()

        if call in done:
            return call.result()

        raise_if_cancelled(cancel, deadline)
        raise OperationCancelledError("Deadline exceeded during completion call", reason="deadline")

    async def aclose(self) -> None:
        await self.service.aclose()
