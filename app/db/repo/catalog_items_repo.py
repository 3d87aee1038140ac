from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import exists, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.catalog_items import CatalogItem
from app.db.models.mint_operations import MintOperation


class CatalogItemsRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, item_id: UUID) -> CatalogItem | None:
        return await session.get(CatalogItem, item_id)

    @staticmethod
    async def list_available_ids(
        session: AsyncSession,
        *,
        category_code: str,
        exclude_claimed: bool = True,
        claimant_eligibility_id: UUID | None = None,
    ) -> list[UUID]:
        stmt = select(CatalogItem.id).where(
            CatalogItem.category_code == category_code,
            CatalogItem.is_minted.is_(False),
        )
        if exclude_claimed:
            claim = exists().where(
                MintOperation.catalog_item_id == CatalogItem.id,
                MintOperation.status == "PENDING",
            )
            if claimant_eligibility_id is not None:
                claim = claim.where(MintOperation.eligibility_id != claimant_eligibility_id)
            stmt = stmt.where(~claim)
        result = await session.execute(stmt.order_by(CatalogItem.id.asc()))
        return list(result.scalars())

    @staticmethod
    async def count_unminted(session: AsyncSession, *, category_code: str) -> int:
        stmt = select(func.count(CatalogItem.id)).where(
            CatalogItem.category_code == category_code,
            CatalogItem.is_minted.is_(False),
        )
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)

    @staticmethod
    async def set_content_id_if_absent(session: AsyncSession, *, item_id: UUID, content_id: str) -> str:
        stmt = (
            update(CatalogItem)
            .where(CatalogItem.id == item_id, CatalogItem.content_id.is_(None))
            .values(content_id=content_id)
        )
        await session.execute(stmt)
        current = await session.execute(select(CatalogItem.content_id).where(CatalogItem.id == item_id))
        return str(current.scalar_one())

    @staticmethod
    async def mark_minted_if_available(session: AsyncSession, *, item_id: UUID, now_utc: datetime) -> bool:
        stmt = (
            update(CatalogItem)
            .where(CatalogItem.id == item_id, CatalogItem.is_minted.is_(False))
            .values(is_minted=True, minted_at=now_utc)
            .returning(CatalogItem.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None
