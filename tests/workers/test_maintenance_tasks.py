from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from app.workers.celery_app import celery_app
from app.workers.tasks import eligibility_expiry, seasons, sessions_maintenance
from tests.game.session_fakes import make_settings

UTC = timezone.utc


class _FakeRedis:
    def __init__(self) -> None:
        self.closed = False

    async def aclose(self) -> None:
        self.closed = True


def test_run_eligibility_expiry_task_wrapper(monkeypatch) -> None:
    async def fake_async() -> dict[str, int]:
        return {"expired_total": 4}

    monkeypatch.setattr(eligibility_expiry, "run_eligibility_expiry_async", fake_async)

    assert eligibility_expiry.run_eligibility_expiry() == {"expired_total": 4}


def test_run_abandoned_session_sweep_task_wrapper(monkeypatch) -> None:
    async def fake_async() -> dict[str, int]:
        return {"due_total": 2, "completed_total": 1, "forfeited_total": 1}

    monkeypatch.setattr(sessions_maintenance, "run_abandoned_session_sweep_async", fake_async)

    assert sessions_maintenance.run_abandoned_session_sweep()["due_total"] == 2


def test_run_season_rollover_task_wrapper(monkeypatch) -> None:
    async def fake_async() -> dict[str, object]:
        return {"rolled_over": False, "active_season_id": "S20260101"}

    monkeypatch.setattr(seasons, "run_season_rollover_async", fake_async)

    assert seasons.run_season_rollover() == {"rolled_over": False, "active_season_id": "S20260101"}


@pytest.mark.asyncio
async def test_daily_reset_clears_previous_day_keys(monkeypatch) -> None:
    redis_client = _FakeRedis()
    reset_days: list[date] = []

    class _Store:
        def __init__(self, client: _FakeRedis) -> None:
            assert client is redis_client

        async def reset_daily_keys(self, day_key: date) -> int:
            reset_days.append(day_key)
            return 12

    monkeypatch.setattr(sessions_maintenance, "get_game_settings", lambda: make_settings())
    monkeypatch.setattr(sessions_maintenance, "build_redis_client", lambda: redis_client)
    monkeypatch.setattr(sessions_maintenance, "RedisRateLockStore", _Store)

    result = await sessions_maintenance.run_daily_reset_async(now_utc=datetime(2026, 3, 2, 0, 5, tzinfo=UTC))

    assert result == {"day_key": "2026-03-01", "deleted": 12}
    assert reset_days == [date(2026, 3, 1)]
    assert redis_client.closed is True


def test_beat_schedule_registers_maintenance_jobs() -> None:
    tasks = {entry["task"] for entry in celery_app.conf.beat_schedule.values()}

    assert {
        "app.workers.tasks.eligibility_expiry.run_eligibility_expiry",
        "app.workers.tasks.sessions_maintenance.run_abandoned_session_sweep",
        "app.workers.tasks.sessions_maintenance.run_daily_reset",
        "app.workers.tasks.seasons.run_season_rollover",
        "app.workers.tasks.seasons.run_leaderboard_snapshot",
        "app.workers.tasks.workflows.resume_stalled_workflows",
    } <= tasks
    assert all(entry["options"]["queue"] == "q_normal" for entry in celery_app.conf.beat_schedule.values())
