from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query

from app.api.routes.dependencies import get_identity
from app.api.routes.errors import to_http_exception
from app.api.routes.rewards_mappers import forge_operation_response, forge_readiness_response
from app.api.routes.rewards_models import (
    ForgeOperationResponse,
    ForgeProgressResponse,
    InitiateForgeRequest,
)
from app.core.identity import Identity
from app.db.session import SessionLocal
from app.economy.eligibility.errors import EligibilityError
from app.economy.forge.errors import ForgeError
from app.economy.forge.service import ForgeService
from app.economy.forge.types import ForgeType
from app.workers.tasks.workflows import enqueue_forge_workflow

router = APIRouter(prefix="/v1/forge", tags=["forge"])
logger = structlog.get_logger(__name__)
ENQUEUE_TIMEOUT_SECONDS = 3.0


@router.get("/progress", response_model=ForgeProgressResponse)
async def get_forge_progress(
    season_id: str | None = Query(default=None, max_length=32),
    identity: Identity = Depends(get_identity),
) -> ForgeProgressResponse:
    async with SessionLocal.begin() as session:
        progress = await ForgeService.get_forge_progress(
            session,
            identity=identity,
            now_utc=datetime.now(timezone.utc),
            season_id=season_id,
        )
    return ForgeProgressResponse(
        category_counts=progress.category_counts,
        category=[forge_readiness_response(item) for item in progress.category],
        master=forge_readiness_response(progress.master),
        seasonal=forge_readiness_response(progress.seasonal) if progress.seasonal is not None else None,
        seasonal_window_open=progress.seasonal_window_open,
    )


@router.post("", response_model=ForgeOperationResponse, status_code=202)
async def initiate_forge(
    payload: InitiateForgeRequest,
    identity: Identity = Depends(get_identity),
) -> ForgeOperationResponse:
    try:
        async with SessionLocal.begin() as session:
            operation = await ForgeService.initiate_forge(
                session,
                identity=identity,
                forge_type=ForgeType(payload.forge_type),
                now_utc=datetime.now(timezone.utc),
                category_code=payload.category_code,
                season_id=payload.season_id,
            )
    except (EligibilityError, ForgeError) as exc:
        raise to_http_exception(exc) from exc

    try:
        await asyncio.wait_for(
            asyncio.to_thread(enqueue_forge_workflow, operation_id=str(operation.operation_id)),
            timeout=ENQUEUE_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        logger.warning("forge_workflow_enqueue_timeout", operation_id=str(operation.operation_id))
    return forge_operation_response(operation)


@router.get("/{operation_id}", response_model=ForgeOperationResponse)
async def get_forge_operation(
    operation_id: UUID,
    identity: Identity = Depends(get_identity),
) -> ForgeOperationResponse:
    try:
        async with SessionLocal.begin() as session:
            operation = await ForgeService.get_forge_operation(
                session,
                identity=identity,
                operation_id=operation_id,
            )
    except ForgeError as exc:
        raise to_http_exception(exc) from exc
    return forge_operation_response(operation)
