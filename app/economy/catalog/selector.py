from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.identity import Identity
from app.db.models.catalog_items import CatalogItem
from app.db.repo.catalog_items_repo import CatalogItemsRepo
from app.economy.catalog.errors import CatalogItemNotFoundError, NoStockAvailableError
from app.economy.catalog.rules import pick_for_eligibility
from app.economy.catalog.types import CatalogItemView, CatalogPreview
from app.economy.eligibility.service import EligibilityService


class CatalogSelector:
    @staticmethod
    def to_view(item: CatalogItem) -> CatalogItemView:
        return CatalogItemView(
            item_id=item.id,
            category_code=item.category_code,
            name=item.name,
            description=item.description,
            image_uri=item.image_uri,
            attributes=dict(item.attributes or {}),
            content_id=item.content_id,
        )

    @staticmethod
    async def select_for_eligibility(
        session: AsyncSession,
        *,
        eligibility_id: UUID,
        category_code: str,
        exclude_claimed: bool = True,
    ) -> CatalogItemView:
        """Reads stock only. Nothing is reserved; the item is claimed by the mint operation row."""
        candidate_ids = await CatalogItemsRepo.list_available_ids(
            session,
            category_code=category_code,
            exclude_claimed=exclude_claimed,
            claimant_eligibility_id=eligibility_id,
        )
        if not candidate_ids:
            raise NoStockAvailableError(category_code)

        item_id = pick_for_eligibility(eligibility_id, candidate_ids)
        item = await CatalogItemsRepo.get_by_id(session, item_id)
        if item is None:
            raise CatalogItemNotFoundError
        return CatalogSelector.to_view(item)

    @staticmethod
    async def stock_count(session: AsyncSession, *, category_code: str) -> int:
        return await CatalogItemsRepo.count_unminted(session, category_code=category_code)

    @staticmethod
    async def preview(
        session: AsyncSession,
        *,
        identity: Identity,
        eligibility_id: UUID,
        now_utc: datetime,
    ) -> CatalogPreview:
        eligibility = await EligibilityService.validate_for_mint(
            session,
            identity=identity,
            eligibility_id=eligibility_id,
            now_utc=now_utc,
        )
        item = await CatalogSelector.select_for_eligibility(
            session,
            eligibility_id=eligibility.id,
            category_code=eligibility.category_code,
        )
        return CatalogPreview(
            eligibility_id=eligibility.id,
            item=item,
            stock_remaining=await CatalogSelector.stock_count(session, category_code=eligibility.category_code),
        )

    @staticmethod
    async def mark_minted(session: AsyncSession, *, item_id: UUID, now_utc: datetime) -> bool:
        return await CatalogItemsRepo.mark_minted_if_available(session, item_id=item_id, now_utc=now_utc)
