from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Response

from app.api.routes.dependencies import get_identity
from app.api.routes.errors import to_http_exception
from app.api.routes.rewards_mappers import mint_operation_response
from app.api.routes.rewards_models import MintOperationResponse
from app.core.identity import Identity
from app.db.session import SessionLocal
from app.economy.catalog.errors import CatalogError
from app.economy.eligibility.errors import EligibilityError
from app.economy.mint.errors import MintError
from app.economy.mint.service import MintService
from app.economy.mint.types import OperationStatus
from app.workers.tasks.workflows import enqueue_mint_workflow

router = APIRouter(tags=["mint"])
logger = structlog.get_logger(__name__)
ENQUEUE_TIMEOUT_SECONDS = 3.0


async def _enqueue(operation_id: UUID) -> None:
    try:
        await asyncio.wait_for(
            asyncio.to_thread(enqueue_mint_workflow, operation_id=str(operation_id)),
            timeout=ENQUEUE_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        logger.warning("mint_workflow_enqueue_timeout", operation_id=str(operation_id))


@router.post("/v1/eligibilities/{eligibility_id}/mint", response_model=MintOperationResponse)
async def claim_eligibility(
    eligibility_id: UUID,
    response: Response,
    identity: Identity = Depends(get_identity),
) -> MintOperationResponse:
    try:
        async with SessionLocal.begin() as session:
            initiation = await MintService.initiate_mint(
                session,
                identity=identity,
                eligibility_id=eligibility_id,
                now_utc=datetime.now(timezone.utc),
            )
    except (EligibilityError, CatalogError, MintError) as exc:
        raise to_http_exception(exc) from exc

    operation = initiation.operation
    if operation.status == OperationStatus.PENDING:
        await _enqueue(operation.operation_id)
    response.status_code = 202 if initiation.created else 200
    return mint_operation_response(operation)


@router.get("/v1/mint-operations/{operation_id}", response_model=MintOperationResponse)
async def get_mint_operation(
    operation_id: UUID,
    identity: Identity = Depends(get_identity),
) -> MintOperationResponse:
    try:
        async with SessionLocal.begin() as session:
            operation = await MintService.get_mint_operation(
                session,
                identity=identity,
                operation_id=operation_id,
            )
    except MintError as exc:
        raise to_http_exception(exc) from exc
    return mint_operation_response(operation)
