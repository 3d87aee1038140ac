from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

import structlog

from app.core.config import get_settings
from app.core.rate_lock_store import RateLockStore
from app.db.models.owned_items import OwnedItem
from app.db.repo.catalog_items_repo import CatalogItemsRepo
from app.db.repo.mint_eligibilities_repo import MintEligibilitiesRepo
from app.db.repo.mint_operations_repo import MintOperationsRepo
from app.db.repo.owned_items_repo import OwnedItemsRepo
from app.db.session import SessionLocal
from app.economy.eligibility.errors import EligibilityExpiredError, EligibilityNotFoundError, EligibilityUsedError
from app.economy.eligibility.rules import is_expired
from app.economy.mint.store import SqlMintWorkflowStore
from app.economy.mint.types import COMMIT_CONFLICT
from app.game.leaderboard.service import LeaderboardService
from app.game.seasons.service import SeasonService
from app.services.alerts import send_ops_alert
from app.services.blockchain_gateway import BlockchainGateway, TransactionRequest, TxKind
from app.services.pinning import PinningService
from app.workflows.confirmation import wait_for_confirmation
from app.workflows.engine import WorkflowOutcome, WorkflowRunner, WorkflowStep, WorkflowStore, workflow_mutex_key
from app.workflows.errors import CommitConflictError, WorkflowError
from app.workflows.retry import RetryPolicy

logger = structlog.get_logger(__name__)

WORKFLOW_MUTEX_TTL_MS = 15 * 60 * 1000


@dataclass(slots=True)
class MintContext:
    operation_id: UUID
    eligibility_id: UUID
    identity_key: str
    catalog_item_id: UUID
    content_id: str | None = None
    tx_ref: str | None = None
    asset_ref: str | None = None


class MintWorkflow:
    """created -> validated -> pinned -> submitted -> awaiting_confirmation -> committed"""

    def __init__(
        self,
        *,
        gateway: BlockchainGateway,
        pinning: PinningService,
        store: WorkflowStore | None = None,
        retry_policy: RetryPolicy | None = None,
        poll_interval_seconds: float | None = None,
        max_polls: int | None = None,
    ) -> None:
        settings = get_settings()
        self.gateway = gateway
        self.pinning = pinning
        self.retry_policy = retry_policy or RetryPolicy.from_settings(settings)
        self.poll_interval_seconds = (
            settings.confirmation_poll_interval_seconds if poll_interval_seconds is None else poll_interval_seconds
        )
        self.max_polls = settings.confirmation_max_polls if max_polls is None else max_polls
        self.policy_id = settings.nft_policy_id
        self.runner: WorkflowRunner[MintContext] = WorkflowRunner(
            "mint",
            [
                WorkflowStep("validated", self.validate),
                WorkflowStep("pinned", self.pin),
                WorkflowStep("submitted", self.submit, external=True),
                WorkflowStep("awaiting_confirmation", self.await_confirmation, enter_stage=True),
                WorkflowStep("committed", self.commit),
            ],
            store or SqlMintWorkflowStore(),
            retry_policy=self.retry_policy,
            classify_failure=classify_mint_failure,
        )

    async def validate(self, ctx: MintContext) -> dict[str, Any] | None:
        async with SessionLocal.begin() as session:
            eligibility = await MintEligibilitiesRepo.get_by_id(session, ctx.eligibility_id)
        if eligibility is None or eligibility.identity_key != ctx.identity_key:
            raise EligibilityNotFoundError
        if eligibility.status == "USED":
            raise EligibilityUsedError
        if eligibility.status != "ACTIVE" or is_expired(eligibility.expires_at, datetime.now(timezone.utc)):
            raise EligibilityExpiredError
        return None

    async def pin(self, ctx: MintContext) -> dict[str, Any] | None:
        async with SessionLocal.begin() as session:
            item = await CatalogItemsRepo.get_by_id(session, ctx.catalog_item_id)
        if item is None:
            raise WorkflowError(f"catalog item missing: {ctx.catalog_item_id}")
        if item.content_id:
            ctx.content_id = item.content_id
            return {"content_id": ctx.content_id}

        metadata = {
            "name": item.name,
            "description": item.description,
            "image": item.image_uri,
            "category": item.category_code,
            "attributes": dict(item.attributes or {}),
        }
        pinned = await self.retry_policy.run("mint.pin", lambda: self.pinning.pin(metadata))
        async with SessionLocal.begin() as session:
            ctx.content_id = await CatalogItemsRepo.set_content_id_if_absent(
                session,
                item_id=ctx.catalog_item_id,
                content_id=pinned,
            )
        return {"content_id": ctx.content_id}

    async def submit(self, ctx: MintContext) -> dict[str, Any] | None:
        ctx.tx_ref = await self.gateway.submit(
            TransactionRequest(
                kind=TxKind.MINT,
                recipient=ctx.identity_key,
                idempotency_key=f"mint:{ctx.operation_id}",
                content_id=ctx.content_id,
                policy_id=self.policy_id,
            )
        )
        return {"tx_ref": ctx.tx_ref}

    async def await_confirmation(self, ctx: MintContext) -> dict[str, Any] | None:
        if not ctx.tx_ref:
            raise WorkflowError("no tx ref persisted for submitted mint")
        await wait_for_confirmation(
            self.gateway,
            ctx.tx_ref,
            interval_seconds=self.poll_interval_seconds,
            max_polls=self.max_polls,
        )
        tx_ref = ctx.tx_ref
        ctx.asset_ref = await self.retry_policy.run("mint.asset_ref", lambda: self.gateway.asset_ref_for(tx_ref))
        return {"asset_ref": ctx.asset_ref}

    async def commit(self, ctx: MintContext) -> dict[str, Any] | None:
        now_utc = datetime.now(timezone.utc)
        async with SessionLocal.begin() as session:
            if not await MintEligibilitiesRepo.mark_used_if_active(
                session,
                eligibility_id=ctx.eligibility_id,
                now_utc=now_utc,
            ):
                raise CommitConflictError(f"eligibility no longer active: {ctx.eligibility_id}")
            if not await CatalogItemsRepo.mark_minted_if_available(
                session,
                item_id=ctx.catalog_item_id,
                now_utc=now_utc,
            ):
                raise CommitConflictError(f"catalog item already minted: {ctx.catalog_item_id}")

            eligibility = await MintEligibilitiesRepo.get_by_id(session, ctx.eligibility_id)
            await OwnedItemsRepo.create(
                session,
                item=OwnedItem(
                    id=uuid4(),
                    identity_key=ctx.identity_key,
                    asset_ref=ctx.asset_ref or f"{ctx.tx_ref}:0",
                    category_code=eligibility.category_code if eligibility is not None else None,
                    season_id=eligibility.season_id if eligibility is not None else None,
                    tier="CATEGORY",
                    provenance="MINTED",
                    catalog_item_id=ctx.catalog_item_id,
                    mint_operation_id=ctx.operation_id,
                    acquired_at=now_utc,
                ),
            )
            season = await SeasonService.get_current_season(session)
            if season is not None:
                await LeaderboardService.record_mint(
                    session,
                    season_id=season.id,
                    identity_key=ctx.identity_key,
                    now_utc=now_utc,
                )
            await MintOperationsRepo.mark_confirmed(
                session,
                operation_id=ctx.operation_id,
                asset_ref=ctx.asset_ref or f"{ctx.tx_ref}:0",
                now_utc=now_utc,
            )
        logger.info(
            "mint_committed",
            operation_id=str(ctx.operation_id),
            eligibility_id=str(ctx.eligibility_id),
            identity_key=ctx.identity_key,
        )
        return None

    async def run(self, ctx: MintContext) -> WorkflowOutcome:
        outcome = await self.runner.run(ctx.operation_id, ctx)
        if outcome.failure_kind == COMMIT_CONFLICT:
            await send_ops_alert(
                event="mint_commit_conflict",
                payload={
                    "operation_id": str(ctx.operation_id),
                    "eligibility_id": str(ctx.eligibility_id),
                    "catalog_item_id": str(ctx.catalog_item_id),
                    "tx_ref": ctx.tx_ref,
                    "error": outcome.error,
                },
            )
        return outcome


def classify_mint_failure(stage: str, exc: BaseException) -> str | None:
    if isinstance(exc, CommitConflictError):
        return COMMIT_CONFLICT
    return None


async def load_mint_context(operation_id: UUID) -> MintContext | None:
    async with SessionLocal.begin() as session:
        row = await MintOperationsRepo.get_by_id(session, operation_id)
        if row is None or row.status != "PENDING":
            return None
        return MintContext(
            operation_id=row.id,
            eligibility_id=row.eligibility_id,
            identity_key=row.identity_key,
            catalog_item_id=row.catalog_item_id,
            content_id=row.content_id,
            tx_ref=row.tx_ref,
            asset_ref=row.asset_ref,
        )


async def run_mint_operation(
    operation_id: UUID,
    *,
    lock_store: RateLockStore,
    workflow: MintWorkflow,
) -> WorkflowOutcome | None:
    """Runs or resumes one mint operation under its workflow mutex."""
    mutex = workflow_mutex_key("mint", operation_id)
    token = uuid4().hex
    if not await lock_store.acquire_mutex(mutex, token=token, ttl_ms=WORKFLOW_MUTEX_TTL_MS):
        logger.info("mint_workflow_busy", operation_id=str(operation_id))
        return None
    try:
        ctx = await load_mint_context(operation_id)
        if ctx is None:
            return None
        outcome = await workflow.run(ctx)
    finally:
        await lock_store.release_mutex(mutex, token=token)

    if outcome.completed:
        logger.info("mint_workflow_completed", operation_id=str(operation_id))
    elif not outcome.skipped:
        logger.warning(
            "mint_workflow_failed",
            operation_id=str(operation_id),
            stage=outcome.stage,
            error=outcome.error,
        )
    return outcome
