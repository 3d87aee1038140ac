from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

import structlog

from app.core.config import get_settings
from app.core.rate_lock_store import RateLockStore
from app.db.models.owned_items import OwnedItem
from app.db.repo.forge_operations_repo import ForgeOperationsRepo
from app.db.repo.owned_items_repo import OwnedItemsRepo
from app.db.session import SessionLocal
from app.economy.forge.store import SqlForgeWorkflowStore
from app.economy.forge.types import BURN_CONFIRMED_STAGES, BURN_SUBMITTED_STAGE, ForgeFailureKind
from app.services.alerts import send_ops_alert
from app.services.blockchain_gateway import BlockchainGateway, TransactionRequest, TxKind
from app.services.pinning import PinningService
from app.workflows.confirmation import wait_for_confirmation
from app.workflows.engine import WorkflowOutcome, WorkflowRunner, WorkflowStep, WorkflowStore, workflow_mutex_key
from app.workflows.errors import OwnershipChangedError, TransactionFailedError, WorkflowError
from app.workflows.retry import RetryPolicy

logger = structlog.get_logger(__name__)

WORKFLOW_MUTEX_TTL_MS = 15 * 60 * 1000
RECONCILIATION_EVENTS = {
    ForgeFailureKind.PARTIAL_BURNED.value: "forge_partial_burn_detected",
    ForgeFailureKind.BURN_UNCONFIRMED.value: "forge_burn_unconfirmed",
}


@dataclass(slots=True)
class ForgeContext:
    operation_id: UUID
    identity_key: str
    forge_type: str
    output_tier: str
    category_code: str | None = None
    season_id: str | None = None
    input_asset_refs: list[str] = field(default_factory=list)
    burn_tx_ref: str | None = None
    content_id: str | None = None
    mint_tx_ref: str | None = None


def classify_forge_failure(stage: str, exc: BaseException) -> str:
    if isinstance(exc, OwnershipChangedError):
        return ForgeFailureKind.OWNERSHIP_CHANGED.value
    if stage in BURN_CONFIRMED_STAGES:
        return ForgeFailureKind.PARTIAL_BURNED.value
    if stage == BURN_SUBMITTED_STAGE:
        if isinstance(exc, TransactionFailedError):
            return ForgeFailureKind.BURN_FAILED.value
        return ForgeFailureKind.BURN_UNCONFIRMED.value
    return ForgeFailureKind.WORKFLOW_ERROR.value


class ForgeWorkflow:
    """created -> ownership_verified -> burn_submitted -> burn_confirmed -> pinned -> mint_submitted -> committed

    Nothing is rolled back on chain. A failure once the burn is confirmed is
    recorded as PARTIAL_BURNED; a burn that was submitted but never resolved is
    BURN_UNCONFIRMED. Both keep the inputs locked and are reported to ops.
    """

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
        self.runner: WorkflowRunner[ForgeContext] = WorkflowRunner(
            "forge",
            [
                WorkflowStep("ownership_verified", self.verify_ownership, external=True),
                WorkflowStep("burn_submitted", self.submit_burn, external=True),
                WorkflowStep("burn_confirmed", self.confirm_burn),
                WorkflowStep("pinned", self.pin),
                WorkflowStep("mint_submitted", self.submit_mint, external=True),
                WorkflowStep("committed", self.commit),
            ],
            store or SqlForgeWorkflowStore(),
            retry_policy=self.retry_policy,
            classify_failure=classify_forge_failure,
        )

    async def verify_ownership(self, ctx: ForgeContext) -> dict[str, Any] | None:
        owned = await self.gateway.query_ownership(ctx.identity_key, list(ctx.input_asset_refs))
        missing = [ref for ref in ctx.input_asset_refs if ref not in owned]
        if missing:
            async with SessionLocal.begin() as session:
                await OwnedItemsRepo.mark_transferred_out(
                    session,
                    identity_key=ctx.identity_key,
                    asset_refs=missing,
                    now_utc=datetime.now(timezone.utc),
                )
            raise OwnershipChangedError(missing)
        return None

    async def submit_burn(self, ctx: ForgeContext) -> dict[str, Any] | None:
        ctx.burn_tx_ref = await self.gateway.submit(
            TransactionRequest(
                kind=TxKind.BURN,
                recipient=ctx.identity_key,
                idempotency_key=f"forge-burn:{ctx.operation_id}",
                asset_refs=list(ctx.input_asset_refs),
                policy_id=self.policy_id,
            )
        )
        return {"burn_tx_ref": ctx.burn_tx_ref}

    async def confirm_burn(self, ctx: ForgeContext) -> dict[str, Any] | None:
        if not ctx.burn_tx_ref:
            raise WorkflowError("no burn tx ref persisted")
        await wait_for_confirmation(
            self.gateway,
            ctx.burn_tx_ref,
            interval_seconds=self.poll_interval_seconds,
            max_polls=self.max_polls,
        )
        now_utc = datetime.now(timezone.utc)
        async with SessionLocal.begin() as session:
            burned = await OwnedItemsRepo.mark_burned_for_forge(
                session,
                forge_operation_id=ctx.operation_id,
                now_utc=now_utc,
            )
        logger.info("forge_inputs_burned", operation_id=str(ctx.operation_id), burned=burned)
        return {"burn_confirmed_at": now_utc}

    async def pin(self, ctx: ForgeContext) -> dict[str, Any] | None:
        if ctx.content_id:
            return {"content_id": ctx.content_id}
        metadata = {
            "name": f"{ctx.output_tier.title()} Forge",
            "tier": ctx.output_tier,
            "forge_type": ctx.forge_type,
            "category": ctx.category_code,
            "season": ctx.season_id,
            "burned": list(ctx.input_asset_refs),
        }
        ctx.content_id = await self.retry_policy.run("forge.pin", lambda: self.pinning.pin(metadata))
        return {"content_id": ctx.content_id}

    async def submit_mint(self, ctx: ForgeContext) -> dict[str, Any] | None:
        ctx.mint_tx_ref = await self.gateway.submit(
            TransactionRequest(
                kind=TxKind.MINT,
                recipient=ctx.identity_key,
                idempotency_key=f"forge-mint:{ctx.operation_id}",
                content_id=ctx.content_id,
                policy_id=self.policy_id,
            )
        )
        return {"mint_tx_ref": ctx.mint_tx_ref}

    async def commit(self, ctx: ForgeContext) -> dict[str, Any] | None:
        if not ctx.mint_tx_ref:
            raise WorkflowError("no mint tx ref persisted")
        await wait_for_confirmation(
            self.gateway,
            ctx.mint_tx_ref,
            interval_seconds=self.poll_interval_seconds,
            max_polls=self.max_polls,
        )
        tx_ref = ctx.mint_tx_ref
        asset_ref = await self.retry_policy.run("forge.asset_ref", lambda: self.gateway.asset_ref_for(tx_ref))
        now_utc = datetime.now(timezone.utc)
        async with SessionLocal.begin() as session:
            output = await OwnedItemsRepo.get_by_asset_ref(session, asset_ref)
            if output is None:
                output = await OwnedItemsRepo.create(
                    session,
                    item=OwnedItem(
                        id=uuid4(),
                        identity_key=ctx.identity_key,
                        asset_ref=asset_ref,
                        category_code=ctx.category_code,
                        season_id=ctx.season_id,
                        tier=ctx.output_tier,
                        provenance="FORGED",
                        forge_operation_id=ctx.operation_id,
                        acquired_at=now_utc,
                    ),
                )
            await ForgeOperationsRepo.mark_confirmed(
                session,
                operation_id=ctx.operation_id,
                output_item_id=output.id,
                output_asset_ref=asset_ref,
                now_utc=now_utc,
            )
        logger.info("forge_committed", operation_id=str(ctx.operation_id), output_asset_ref=asset_ref)
        return None

    async def run(self, ctx: ForgeContext) -> WorkflowOutcome:
        outcome = await self.runner.run(ctx.operation_id, ctx)
        event = RECONCILIATION_EVENTS.get(outcome.failure_kind or "")
        if event is not None:
            logger.error(
                event,
                operation_id=str(ctx.operation_id),
                identity_key=ctx.identity_key,
                stage=outcome.stage,
                error=outcome.error,
            )
            await send_ops_alert(
                event=event,
                payload={
                    "operation_id": str(ctx.operation_id),
                    "identity_key": ctx.identity_key,
                    "forge_type": ctx.forge_type,
                    "stage": outcome.stage,
                    "burn_tx_ref": ctx.burn_tx_ref,
                    "mint_tx_ref": ctx.mint_tx_ref,
                    "error": outcome.error,
                },
            )
        return outcome


async def load_forge_context(operation_id: UUID) -> ForgeContext | None:
    async with SessionLocal.begin() as session:
        row = await ForgeOperationsRepo.get_by_id(session, operation_id)
        if row is None or row.status != "PENDING":
            return None
        return ForgeContext(
            operation_id=row.id,
            identity_key=row.identity_key,
            forge_type=row.forge_type,
            output_tier=row.output_tier,
            category_code=row.category_code,
            season_id=row.season_id,
            input_asset_refs=list(row.input_asset_refs),
            burn_tx_ref=row.burn_tx_ref,
            content_id=row.content_id,
            mint_tx_ref=row.mint_tx_ref,
        )


async def run_forge_operation(
    operation_id: UUID,
    *,
    lock_store: RateLockStore,
    workflow: ForgeWorkflow,
) -> WorkflowOutcome | None:
    mutex = workflow_mutex_key("forge", operation_id)
    token = uuid4().hex
    if not await lock_store.acquire_mutex(mutex, token=token, ttl_ms=WORKFLOW_MUTEX_TTL_MS):
        logger.info("forge_workflow_busy", operation_id=str(operation_id))
        return None
    try:
        ctx = await load_forge_context(operation_id)
        if ctx is None:
            return None
        outcome = await workflow.run(ctx)
    finally:
        await lock_store.release_mutex(mutex, token=token)

    if outcome.completed:
        logger.info("forge_workflow_completed", operation_id=str(operation_id))
    elif not outcome.skipped:
        logger.warning(
            "forge_workflow_failed",
            operation_id=str(operation_id),
            stage=outcome.stage,
            failure_kind=outcome.failure_kind,
            error=outcome.error,
        )
    return outcome
