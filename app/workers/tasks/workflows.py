from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import UUID

import structlog

from app.core.config import get_settings
from app.core.rate_lock_store import RedisRateLockStore, build_redis_client
from app.db.repo.forge_operations_repo import ForgeOperationsRepo
from app.db.repo.mint_operations_repo import MintOperationsRepo
from app.db.session import SessionLocal
from app.economy.forge.workflow import ForgeWorkflow, run_forge_operation
from app.economy.mint.workflow import MintWorkflow, run_mint_operation
from app.services.blockchain_gateway import HttpBlockchainGateway
from app.services.pinning import HttpPinningService
from app.workers.asyncio_runner import run_async_job
from app.workers.celery_app import celery_app

logger = structlog.get_logger(__name__)
RESUME_BATCH_SIZE = 100


def _is_celery_task(task_obj: object) -> bool:
    return type(task_obj).__module__.startswith("celery.")


def _outcome_summary(outcome) -> dict[str, object]:  # noqa: ANN001
    if outcome is None:
        return {"processed": 0, "completed": 0}
    return {
        "processed": 0 if outcome.skipped else 1,
        "completed": 1 if outcome.completed else 0,
        "stage": outcome.stage,
        "failure_kind": outcome.failure_kind,
    }


async def run_mint_workflow_async(*, operation_id: str) -> dict[str, object]:
    redis_client = build_redis_client()
    gateway = HttpBlockchainGateway.from_settings()
    pinning = HttpPinningService.from_settings()
    try:
        outcome = await run_mint_operation(
            UUID(operation_id),
            lock_store=RedisRateLockStore(redis_client),
            workflow=MintWorkflow(gateway=gateway, pinning=pinning),
        )
    finally:
        await gateway.aclose()
        await pinning.aclose()
        await redis_client.aclose()
    return _outcome_summary(outcome)


async def run_forge_workflow_async(*, operation_id: str) -> dict[str, object]:
    redis_client = build_redis_client()
    gateway = HttpBlockchainGateway.from_settings()
    pinning = HttpPinningService.from_settings()
    try:
        outcome = await run_forge_operation(
            UUID(operation_id),
            lock_store=RedisRateLockStore(redis_client),
            workflow=ForgeWorkflow(gateway=gateway, pinning=pinning),
        )
    finally:
        await gateway.aclose()
        await pinning.aclose()
        await redis_client.aclose()
    return _outcome_summary(outcome)


async def resume_stalled_workflows_async(
    *,
    now_utc: datetime | None = None,
    stalled_after: timedelta | None = None,
    limit: int = RESUME_BATCH_SIZE,
) -> dict[str, int]:
    """Re-enqueues PENDING operations whose last progress is older than `stalled_after`."""
    if stalled_after is None:
        stalled_after = timedelta(seconds=get_settings().workflow_stale_after_seconds)
    stale_before = (now_utc or datetime.now(timezone.utc)) - stalled_after
    async with SessionLocal.begin() as session:
        mint_ids = await MintOperationsRepo.list_stalled_ids(session, stale_before=stale_before, limit=limit)
        forge_ids = await ForgeOperationsRepo.list_stalled_ids(session, stale_before=stale_before, limit=limit)

    result = {"mint_stalled": len(mint_ids), "forge_stalled": len(forge_ids), "enqueued": 0, "failed": 0}
    for operation_id in mint_ids:
        if enqueue_mint_workflow(operation_id=str(operation_id)):
            result["enqueued"] += 1
        else:
            result["failed"] += 1
    for operation_id in forge_ids:
        if enqueue_forge_workflow(operation_id=str(operation_id)):
            result["enqueued"] += 1
        else:
            result["failed"] += 1

    if mint_ids or forge_ids:
        logger.info("stalled_workflows_resumed", **result)
    return result


def enqueue_mint_workflow(*, operation_id: str) -> bool:
    try:
        if _is_celery_task(run_mint_workflow):
            run_mint_workflow.delay(operation_id=operation_id)
        else:
            run_async_job(run_mint_workflow_async(operation_id=operation_id))
        return True
    except Exception as exc:
        logger.warning(
            "mint_workflow_enqueue_failed",
            operation_id=operation_id,
            error_type=type(exc).__name__,
        )
        return False


def enqueue_forge_workflow(*, operation_id: str) -> bool:
    try:
        if _is_celery_task(run_forge_workflow):
            run_forge_workflow.delay(operation_id=operation_id)
        else:
            run_async_job(run_forge_workflow_async(operation_id=operation_id))
        return True
    except Exception as exc:
        logger.warning(
            "forge_workflow_enqueue_failed",
            operation_id=operation_id,
            error_type=type(exc).__name__,
        )
        return False


@celery_app.task(name="app.workers.tasks.workflows.run_mint_workflow")
def run_mint_workflow(*, operation_id: str) -> dict[str, object]:
    return run_async_job(
        run_mint_workflow_async(operation_id=operation_id),
        workflow="mint",
        operation_id=operation_id,
    )


@celery_app.task(name="app.workers.tasks.workflows.run_forge_workflow")
def run_forge_workflow(*, operation_id: str) -> dict[str, object]:
    return run_async_job(
        run_forge_workflow_async(operation_id=operation_id),
        workflow="forge",
        operation_id=operation_id,
    )


@celery_app.task(name="app.workers.tasks.workflows.resume_stalled_workflows")
def resume_stalled_workflows() -> dict[str, int]:
    return run_async_job(resume_stalled_workflows_async())


celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
celery_app.conf.beat_schedule.update(
    {
        "stalled-workflows-resume-every-5-minutes": {
            "task": "app.workers.tasks.workflows.resume_stalled_workflows",
            "schedule": 300.0,
            "options": {"queue": "q_normal"},
        },
    }
)
