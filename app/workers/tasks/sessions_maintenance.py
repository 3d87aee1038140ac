from __future__ import annotations

from datetime import datetime, timedelta, timezone

import structlog
from celery.schedules import crontab

from app.core.game_settings import get_game_settings
from app.core.rate_lock_store import RedisRateLockStore, build_redis_client
from app.game.sessions.rules import session_day_key
from app.game.sessions.service import GameSessionService
from app.game.sessions.state_store import RedisSessionStateStore
from app.workers.asyncio_runner import run_async_job
from app.workers.celery_app import celery_app

logger = structlog.get_logger(__name__)
SWEEP_BATCH_SIZE = 200


async def run_abandoned_session_sweep_async(*, batch_size: int = SWEEP_BATCH_SIZE) -> dict[str, int]:
    redis_client = build_redis_client()
    try:
        return await GameSessionService.sweep_abandoned_sessions(
            lock_store=RedisRateLockStore(redis_client),
            state_store=RedisSessionStateStore(redis_client),
            now_utc=datetime.now(timezone.utc),
            limit=batch_size,
        )
    finally:
        await redis_client.aclose()


async def run_daily_reset_async(*, now_utc: datetime | None = None) -> dict[str, object]:
    """Clears counters and seen-question sets of the day that just ended."""
    settings = get_game_settings()
    resolved_now = now_utc or datetime.now(timezone.utc)
    previous_day = session_day_key(
        resolved_now - timedelta(days=1),
        timezone_name=settings.daily_reset_timezone,
        reset_hour=settings.daily_reset_hour,
    )
    redis_client = build_redis_client()
    try:
        deleted = await RedisRateLockStore(redis_client).reset_daily_keys(previous_day)
    finally:
        await redis_client.aclose()
    return {"day_key": previous_day.isoformat(), "deleted": deleted}


@celery_app.task(name="app.workers.tasks.sessions_maintenance.run_abandoned_session_sweep")
def run_abandoned_session_sweep() -> dict[str, int]:
    return run_async_job(run_abandoned_session_sweep_async())


@celery_app.task(name="app.workers.tasks.sessions_maintenance.run_daily_reset")
def run_daily_reset() -> dict[str, object]:
    return run_async_job(run_daily_reset_async())


celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
celery_app.conf.beat_schedule.update(
    {
        "abandoned-session-sweep-every-30-seconds": {
            "task": "app.workers.tasks.sessions_maintenance.run_abandoned_session_sweep",
            "schedule": 30.0,
            "options": {"queue": "q_normal"},
        },
        "daily-key-reset": {
            "task": "app.workers.tasks.sessions_maintenance.run_daily_reset",
            "schedule": crontab(hour=0, minute=5),
            "options": {"queue": "q_normal"},
        },
    }
)
