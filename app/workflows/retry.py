from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import structlog

from app.core.config import Settings, get_settings
from app.workflows.errors import StepExhaustedError, TransientGatewayError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounded exponential backoff for external calls.

    delay = min(base * 2^(attempt-1), max) + uniform(0, jitter)
    Only TransientGatewayError is retried; anything else propagates at once.
    """

    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 8.0
    jitter_seconds: float = 0.5

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> RetryPolicy:
        resolved = settings or get_settings()
        return cls(
            max_attempts=max(1, resolved.workflow_max_attempts),
            base_delay_seconds=resolved.workflow_retry_base_seconds,
            max_delay_seconds=resolved.workflow_retry_max_seconds,
            jitter_seconds=resolved.workflow_retry_jitter_seconds,
        )

    def delay_for(self, attempt: int, *, jitter: Callable[[float, float], float] = random.uniform) -> float:
        backoff = min(self.base_delay_seconds * (2 ** max(0, attempt - 1)), self.max_delay_seconds)
        if self.jitter_seconds <= 0:
            return backoff
        return backoff + jitter(0.0, self.jitter_seconds)

    async def run(
        self,
        step: str,
        operation: Callable[[], Awaitable[T]],
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> T:
        last_error: TransientGatewayError | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except TransientGatewayError as exc:
                last_error = exc
                will_retry = attempt < self.max_attempts
                logger.warning(
                    "workflow_step_transient_error",
                    step=step,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    will_retry=will_retry,
                    error=str(exc),
                )
                if will_retry:
                    await sleep(self.delay_for(attempt))

        cause = last_error or TransientGatewayError("no attempts made")
        raise StepExhaustedError(step, cause) from cause
