from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.game_settings import GameSettings, get_game_settings
from app.core.identity import Identity
from app.db.models.forge_operations import ForgeOperation
from app.db.models.owned_items import OwnedItem
from app.db.repo.forge_operations_repo import ForgeOperationsRepo
from app.db.repo.owned_items_repo import OwnedItemsRepo
from app.db.repo.quiz_categories_repo import QuizCategoriesRepo
from app.economy.eligibility.errors import WalletRequiredError
from app.economy.forge.errors import (
    ForgeInputsBusyError,
    ForgeNotReadyError,
    ForgeOperationNotFoundError,
    SeasonalForgeClosedError,
    UnknownForgeCategoryError,
)
from app.economy.forge.rules import category_counts, plan_category_forge, plan_master_forge, plan_seasonal_forge
from app.economy.forge.types import (
    OUTPUT_TIER_BY_FORGE_TYPE,
    ForgeFailureKind,
    ForgeOperationView,
    ForgeProgress,
    ForgeReadiness,
    ForgeType,
    ItemTier,
    OwnedItemSnapshot,
)
from app.game.seasons.rules import seasonal_forge_window_open
from app.game.seasons.service import SeasonService

logger = structlog.get_logger(__name__)


def _to_snapshot(row: OwnedItem) -> OwnedItemSnapshot:
    return OwnedItemSnapshot(
        item_id=row.id,
        asset_ref=row.asset_ref,
        tier=ItemTier(row.tier),
        category_code=row.category_code,
        season_id=row.season_id,
        acquired_at=row.acquired_at,
    )


class ForgeService:
    @staticmethod
    def to_view(row: ForgeOperation) -> ForgeOperationView:
        return ForgeOperationView(
            operation_id=row.id,
            identity_key=row.identity_key,
            forge_type=ForgeType(row.forge_type),
            category_code=row.category_code,
            season_id=row.season_id,
            output_tier=ItemTier(row.output_tier),
            input_item_ids=[UUID(item_id) for item_id in row.input_item_ids],
            status=row.status,
            stage=row.stage,
            failure_kind=ForgeFailureKind(row.failure_kind) if row.failure_kind else None,
            burn_tx_ref=row.burn_tx_ref,
            mint_tx_ref=row.mint_tx_ref,
            output_item_id=row.output_item_id,
            last_error=row.last_error,
            created_at=row.created_at,
            updated_at=row.updated_at,
            completed_at=row.completed_at,
        )

    @staticmethod
    async def _available_items(session: AsyncSession, identity_key: str) -> list[OwnedItemSnapshot]:
        rows = await OwnedItemsRepo.list_available_for_identity(session, identity_key=identity_key)
        return [_to_snapshot(row) for row in rows]

    @staticmethod
    async def get_forge_progress(
        session: AsyncSession,
        *,
        identity: Identity,
        now_utc: datetime,
        season_id: str | None = None,
        settings: GameSettings | None = None,
    ) -> ForgeProgress:
        resolved_settings = settings or get_game_settings()
        items = await ForgeService._available_items(session, identity.key)
        active_categories = await QuizCategoriesRepo.list_active_codes(session)
        counts = category_counts(items)

        season = await SeasonService.get_forge_season(session, season_id=season_id)
        seasonal: ForgeReadiness | None = None
        window_open = False
        if season is not None:
            window_open = seasonal_forge_window_open(season, now_utc)
            seasonal = plan_seasonal_forge(
                items,
                season_id=season.id,
                active_categories=active_categories,
                per_category=resolved_settings.forge_seasonal_per_category,
            )
            seasonal.ready = seasonal.ready and window_open

        return ForgeProgress(
            identity_key=identity.key,
            category_counts=counts,
            category=[
                plan_category_forge(
                    items,
                    category_code=code,
                    required=resolved_settings.forge_category_count,
                )
                for code in sorted(set(active_categories) | set(counts))
            ],
            master=plan_master_forge(items, required=resolved_settings.forge_master_category_count),
            seasonal=seasonal,
            seasonal_window_open=window_open,
        )

    @staticmethod
    async def initiate_forge(
        session: AsyncSession,
        *,
        identity: Identity,
        forge_type: ForgeType,
        now_utc: datetime,
        category_code: str | None = None,
        season_id: str | None = None,
        settings: GameSettings | None = None,
    ) -> ForgeOperationView:
        """Plans the forge from live holdings, locks the inputs and creates the PENDING operation.

        The caller enqueues the workflow after commit.
        """
        if not identity.is_connected:
            raise WalletRequiredError

        resolved_settings = settings or get_game_settings()
        items = await ForgeService._available_items(session, identity.key)
        target_season_id: str | None = None
        if forge_type == ForgeType.CATEGORY:
            if not category_code:
                raise UnknownForgeCategoryError
            plan = plan_category_forge(
                items,
                category_code=category_code,
                required=resolved_settings.forge_category_count,
            )
        elif forge_type == ForgeType.MASTER:
            plan = plan_master_forge(items, required=resolved_settings.forge_master_category_count)
        else:
            season = await SeasonService.get_forge_season(session, season_id=season_id)
            if season is None or not seasonal_forge_window_open(season, now_utc):
                raise SeasonalForgeClosedError
            target_season_id = season.id
            plan = plan_seasonal_forge(
                items,
                season_id=season.id,
                active_categories=await QuizCategoriesRepo.list_active_codes(session),
                per_category=resolved_settings.forge_seasonal_per_category,
            )

        if not plan.ready:
            raise ForgeNotReadyError

        refs_by_id = {item.item_id: item.asset_ref for item in items}
        operation = await ForgeOperationsRepo.create(
            session,
            operation=ForgeOperation(
                id=uuid4(),
                identity_key=identity.key,
                forge_type=forge_type.value,
                category_code=category_code if forge_type == ForgeType.CATEGORY else None,
                season_id=target_season_id,
                output_tier=OUTPUT_TIER_BY_FORGE_TYPE[forge_type].value,
                input_item_ids=[str(item_id) for item_id in plan.input_item_ids],
                input_asset_refs=[refs_by_id[item_id] for item_id in plan.input_item_ids],
                status="PENDING",
                stage="created",
                failure_kind=None,
                burn_tx_ref=None,
                burn_confirmed_at=None,
                mint_tx_ref=None,
                content_id=None,
                output_asset_ref=None,
                output_item_id=None,
                last_error=None,
                created_at=now_utc,
                updated_at=now_utc,
                completed_at=None,
            ),
        )
        locked = await OwnedItemsRepo.lock_for_forge(
            session,
            identity_key=identity.key,
            item_ids=plan.input_item_ids,
            forge_operation_id=operation.id,
        )
        if locked != len(plan.input_item_ids):
            raise ForgeInputsBusyError

        logger.info(
            "forge_initiated",
            operation_id=str(operation.id),
            identity_key=identity.key,
            forge_type=forge_type.value,
            inputs=len(plan.input_item_ids),
        )
        return ForgeService.to_view(operation)

    @staticmethod
    async def get_forge_operation(
        session: AsyncSession,
        *,
        identity: Identity,
        operation_id: UUID,
    ) -> ForgeOperationView:
        row = await ForgeOperationsRepo.get_by_id(session, operation_id)
        if row is None or row.identity_key != identity.key:
            raise ForgeOperationNotFoundError
        return ForgeService.to_view(row)
