from __future__ import annotations

from datetime import datetime, timezone

import structlog

from app.db.session import SessionLocal
from app.economy.eligibility.service import EligibilityService
from app.workers.asyncio_runner import run_async_job
from app.workers.celery_app import celery_app

logger = structlog.get_logger(__name__)
EXPIRY_BATCH_SIZE = 1000


async def run_eligibility_expiry_async(*, batch_size: int = EXPIRY_BATCH_SIZE) -> dict[str, int]:
    now_utc = datetime.now(timezone.utc)
    async with SessionLocal.begin() as session:
        expired_ids = await EligibilityService.expire_sweep(session, now_utc=now_utc, limit=batch_size)
    result = {"expired_total": len(expired_ids)}
    if expired_ids:
        logger.info("eligibility_expiry_finished", **result)
    return result


@celery_app.task(name="app.workers.tasks.eligibility_expiry.run_eligibility_expiry")
def run_eligibility_expiry() -> dict[str, int]:
    return run_async_job(run_eligibility_expiry_async())


celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
celery_app.conf.beat_schedule.update(
    {
        "eligibility-expiry-every-minute": {
            "task": "app.workers.tasks.eligibility_expiry.run_eligibility_expiry",
            "schedule": 60.0,
            "options": {"queue": "q_normal"},
        },
    }
)
