from __future__ import annotations

from datetime import datetime, timezone

import structlog
from celery.schedules import crontab

from app.db.session import SessionLocal
from app.game.leaderboard.service import LeaderboardService
from app.game.seasons.service import SeasonService
from app.workers.asyncio_runner import run_async_job
from app.workers.celery_app import celery_app

logger = structlog.get_logger(__name__)


async def run_season_rollover_async() -> dict[str, object]:
    now_utc = datetime.now(timezone.utc)
    async with SessionLocal.begin() as session:
        season = await SeasonService.ensure_initial_season(session, now_utc=now_utc)
        rolled = await SeasonService.rollover(session, now_utc=now_utc)
    if rolled is None:
        return {"rolled_over": False, "active_season_id": season.id}
    return {
        "rolled_over": True,
        "archived_season_id": rolled.archived_season_id,
        "active_season_id": rolled.new_season_id,
        "snapshot_entries": rolled.snapshot_entries,
        "carried_entries": rolled.carried_entries,
    }


async def run_leaderboard_snapshot_async() -> dict[str, object]:
    now_utc = datetime.now(timezone.utc)
    async with SessionLocal.begin() as session:
        season = await SeasonService.get_current_season(session)
        if season is None:
            logger.info("leaderboard_snapshot_skipped_no_season")
            return {"season_id": None, "entries": 0}
        entries = await LeaderboardService.snapshot(session, season_id=season.id, now_utc=now_utc)
    return {"season_id": season.id, "entries": entries}


@celery_app.task(name="app.workers.tasks.seasons.run_season_rollover")
def run_season_rollover() -> dict[str, object]:
    return run_async_job(run_season_rollover_async())


@celery_app.task(name="app.workers.tasks.seasons.run_leaderboard_snapshot")
def run_leaderboard_snapshot() -> dict[str, object]:
    return run_async_job(run_leaderboard_snapshot_async())


celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
celery_app.conf.beat_schedule.update(
    {
        "season-rollover-hourly": {
            "task": "app.workers.tasks.seasons.run_season_rollover",
            "schedule": crontab(minute=0),
            "options": {"queue": "q_normal"},
        },
        "leaderboard-snapshot-daily": {
            "task": "app.workers.tasks.seasons.run_leaderboard_snapshot",
            "schedule": crontab(hour=0, minute=15),
            "options": {"queue": "q_normal"},
        },
    }
)
