from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from sqlalchemy import text

from app.core.config import get_settings
from app.db.session import SessionLocal
from app.workers.celery_app import WORKFLOW_QUEUE, celery_app

router = APIRouter(tags=["health"])
logger = structlog.get_logger(__name__)

CheckResult = dict[str, Any]
CELERY_INSPECT_TIMEOUT_SECONDS = 1.0


def _result(error: str | None = None, **details: Any) -> CheckResult:
    if error is not None:
        return {"status": "failed", "error": error}
    return {"status": "ok", **details}


def _check_failed(check: str, exc: BaseException) -> CheckResult:
    logger.warning("health_check_failed", check=check, error_type=type(exc).__name__)
    return _result(f"{check}_unavailable")


async def _check_database() -> CheckResult:
    try:
        async with SessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        return _check_failed("database", exc)
    return _result()


async def _check_redis() -> CheckResult:
    client: Redis | None = None
    try:
        client = Redis.from_url(get_settings().redis_url)
        if await client.ping() is not True:
            return _result("redis_unexpected_ping_response")
    except Exception as exc:
        return _check_failed("redis", exc)
    finally:
        if client is not None:
            await client.aclose()
    return _result()


def _check_celery_worker_sync() -> CheckResult:
    """Mint and forge runs need a live worker subscribed to the workflow queue."""
    try:
        inspector = celery_app.control.inspect(timeout=CELERY_INSPECT_TIMEOUT_SECONDS)
        if inspector is None:
            return _result("celery inspector is unavailable")
        workers = inspector.ping() or {}
        if not workers:
            return _result("no celery workers responded to ping")
        subscriptions = inspector.active_queues() or {}
    except Exception as exc:
        return _check_failed("celery", exc)

    queues = sorted({queue["name"] for bindings in subscriptions.values() for queue in bindings if queue.get("name")})
    if WORKFLOW_QUEUE not in queues:
        return _result(f"no celery worker consumes {WORKFLOW_QUEUE}")
    return _result(workers=len(workers), queues=queues)


async def _check_celery_worker() -> CheckResult:
    return await asyncio.to_thread(_check_celery_worker_sync)


async def _run_checks(runners: dict[str, Callable[[], Awaitable[CheckResult]]]) -> tuple[bool, dict[str, CheckResult]]:
    results = await asyncio.gather(*(run() for run in runners.values()))
    checks = dict(zip(runners, results))
    return all(check["status"] == "ok" for check in checks.values()), checks


@router.get("/health")
async def health() -> JSONResponse:
    healthy, checks = await _run_checks(
        {"database": _check_database, "redis": _check_redis, "celery": _check_celery_worker}
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ok" if healthy else "degraded", "checks": checks},
    )


@router.get("/ready")
async def ready() -> JSONResponse:
    """Readiness covers the request path only; workers are reported by /health."""
    is_ready, checks = await _run_checks({"database": _check_database, "redis": _check_redis})
    return JSONResponse(
        status_code=status.HTTP_200_OK if is_ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if is_ready else "not_ready", "checks": checks},
    )


@router.get("/live")
async def live() -> dict[str, str]:
    return {"status": "live"}
