from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query

from app.api.routes.dependencies import get_identity, get_rate_lock_store
from app.api.routes.errors import to_http_exception
from app.api.routes.rewards_mappers import eligibility_response
from app.api.routes.rewards_models import (
    CatalogItemResponse,
    CatalogPreviewResponse,
    EligibilityListResponse,
    LinkWalletRequest,
    LinkWalletResponse,
)
from app.core.identity import Identity, IdentityKind
from app.core.rate_lock_store import RateLockStore
from app.db.session import SessionLocal
from app.economy.catalog.errors import CatalogError
from app.economy.catalog.selector import CatalogSelector
from app.economy.eligibility.errors import EligibilityError
from app.economy.eligibility.linking import link_guest_to_wallet
from app.economy.eligibility.service import EligibilityService
from app.economy.eligibility.types import EligibilityStatus

router = APIRouter(tags=["eligibilities"])
logger = structlog.get_logger(__name__)


@router.get("/v1/eligibilities", response_model=EligibilityListResponse)
async def list_eligibilities(
    status: EligibilityStatus | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=100),
    identity: Identity = Depends(get_identity),
) -> EligibilityListResponse:
    async with SessionLocal.begin() as session:
        items = await EligibilityService.list_for_identity(
            session,
            identity=identity,
            status=status,
            limit=limit,
        )
    return EligibilityListResponse(items=[eligibility_response(item) for item in items])


@router.get("/v1/eligibilities/{eligibility_id}/preview", response_model=CatalogPreviewResponse)
async def preview_eligibility(
    eligibility_id: UUID,
    identity: Identity = Depends(get_identity),
) -> CatalogPreviewResponse:
    try:
        async with SessionLocal.begin() as session:
            preview = await CatalogSelector.preview(
                session,
                identity=identity,
                eligibility_id=eligibility_id,
                now_utc=datetime.now(timezone.utc),
            )
    except (EligibilityError, CatalogError) as exc:
        raise to_http_exception(exc) from exc

    return CatalogPreviewResponse(
        eligibility_id=preview.eligibility_id,
        item=CatalogItemResponse(
            item_id=preview.item.item_id,
            category_code=preview.item.category_code,
            name=preview.item.name,
            description=preview.item.description,
            image_uri=preview.item.image_uri,
            attributes=preview.item.attributes,
        ),
        stock_remaining=preview.stock_remaining,
    )


@router.post("/v1/identity/link-wallet", response_model=LinkWalletResponse)
async def link_wallet(
    payload: LinkWalletRequest,
    identity: Identity = Depends(get_identity),
    lock_store: RateLockStore = Depends(get_rate_lock_store),
) -> LinkWalletResponse:
    wallet = Identity(key=payload.wallet_address.strip(), kind=IdentityKind.CONNECTED)
    try:
        result = await link_guest_to_wallet(
            lock_store=lock_store,
            guest=identity,
            wallet=wallet,
            now_utc=datetime.now(timezone.utc),
        )
    except EligibilityError as exc:
        raise to_http_exception(exc) from exc

    return LinkWalletResponse(
        wallet_address=wallet.key,
        moved=[eligibility_response(item) for item in result.moved],
        left_to_lapse=result.left_to_lapse,
        carried_daily_count=result.carried_daily_count,
    )
