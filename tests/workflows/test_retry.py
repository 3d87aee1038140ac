from __future__ import annotations

import pytest

from app.workflows.errors import GatewayRejectedError, StepExhaustedError, TransientGatewayError
from app.workflows.retry import RetryPolicy


def _no_jitter(low: float, high: float) -> float:  # noqa: ARG001
    return 0.0


def test_delay_doubles_and_caps() -> None:
    policy = RetryPolicy(max_attempts=5, base_delay_seconds=1.0, max_delay_seconds=8.0, jitter_seconds=0.5)

    delays = [policy.delay_for(attempt, jitter=_no_jitter) for attempt in range(1, 6)]

    assert delays == [1.0, 2.0, 4.0, 8.0, 8.0]
    assert policy.delay_for(1, jitter=lambda low, high: high) == 1.5


@pytest.mark.asyncio
async def test_run_retries_transient_errors_until_success() -> None:
    policy = RetryPolicy(max_attempts=3, base_delay_seconds=1.0, max_delay_seconds=8.0, jitter_seconds=0.0)
    sleeps: list[float] = []
    calls = {"count": 0}

    async def flaky() -> str:
        calls["count"] += 1
        if calls["count"] < 3:
            raise TransientGatewayError("HTTP 503")
        return "tx-1"

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    result = await policy.run("mint.submit", flaky, sleep=fake_sleep)

    assert result == "tx-1"
    assert calls["count"] == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_run_raises_step_exhausted_after_last_attempt() -> None:
    policy = RetryPolicy(max_attempts=2, base_delay_seconds=0.1, max_delay_seconds=1.0, jitter_seconds=0.0)

    async def always_down() -> None:
        raise TransientGatewayError("timeout")

    async def fake_sleep(seconds: float) -> None:
        return None

    with pytest.raises(StepExhaustedError) as exc_info:
        await policy.run("forge.pin", always_down, sleep=fake_sleep)

    assert exc_info.value.step == "forge.pin"
    assert isinstance(exc_info.value.cause, TransientGatewayError)


@pytest.mark.asyncio
async def test_run_does_not_retry_rejections() -> None:
    policy = RetryPolicy(max_attempts=5, jitter_seconds=0.0)
    calls = {"count": 0}

    async def rejected() -> None:
        calls["count"] += 1
        raise GatewayRejectedError("HTTP 400")

    with pytest.raises(GatewayRejectedError):
        await policy.run("mint.submit", rejected)

    assert calls["count"] == 1
