from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.owned_items import OwnedItem


class OwnedItemsRepo:
    @staticmethod
    async def create(session: AsyncSession, *, item: OwnedItem) -> OwnedItem:
        session.add(item)
        await session.flush()
        return item

    @staticmethod
    async def get_by_asset_ref(session: AsyncSession, asset_ref: str) -> OwnedItem | None:
        stmt = select(OwnedItem).where(OwnedItem.asset_ref == asset_ref)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_available_for_identity(session: AsyncSession, *, identity_key: str) -> list[OwnedItem]:
        stmt = (
            select(OwnedItem)
            .where(
                OwnedItem.identity_key == identity_key,
                OwnedItem.is_burned.is_(False),
                OwnedItem.transferred_out_at.is_(None),
                OwnedItem.locked_by_forge_id.is_(None),
            )
            .order_by(OwnedItem.acquired_at.asc(), OwnedItem.id.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars())

    @staticmethod
    async def list_by_ids(session: AsyncSession, item_ids: Sequence[UUID]) -> list[OwnedItem]:
        if not item_ids:
            return []
        stmt = select(OwnedItem).where(OwnedItem.id.in_(list(item_ids))).order_by(OwnedItem.id.asc())
        result = await session.execute(stmt)
        return list(result.scalars())

    @staticmethod
    async def lock_for_forge(
        session: AsyncSession,
        *,
        identity_key: str,
        item_ids: Sequence[UUID],
        forge_operation_id: UUID,
    ) -> int:
        stmt = (
            update(OwnedItem)
            .where(
                OwnedItem.id.in_(list(item_ids)),
                OwnedItem.identity_key == identity_key,
                OwnedItem.is_burned.is_(False),
                OwnedItem.transferred_out_at.is_(None),
                OwnedItem.locked_by_forge_id.is_(None),
            )
            .values(locked_by_forge_id=forge_operation_id)
        )
        result = await session.execute(stmt)
        return int(getattr(result, "rowcount", 0) or 0)

    @staticmethod
    async def release_forge_locks(session: AsyncSession, *, forge_operation_id: UUID) -> int:
        stmt = (
            update(OwnedItem)
            .where(
                OwnedItem.locked_by_forge_id == forge_operation_id,
                OwnedItem.is_burned.is_(False),
            )
            .values(locked_by_forge_id=None)
        )
        result = await session.execute(stmt)
        return int(getattr(result, "rowcount", 0) or 0)

    @staticmethod
    async def mark_burned_for_forge(session: AsyncSession, *, forge_operation_id: UUID, now_utc: datetime) -> int:
        stmt = (
            update(OwnedItem)
            .where(
                OwnedItem.locked_by_forge_id == forge_operation_id,
                OwnedItem.is_burned.is_(False),
            )
            .values(is_burned=True, burned_at=now_utc)
        )
        result = await session.execute(stmt)
        return int(getattr(result, "rowcount", 0) or 0)

    @staticmethod
    async def mark_transferred_out(
        session: AsyncSession,
        *,
        identity_key: str,
        asset_refs: Sequence[str],
        now_utc: datetime,
    ) -> int:
        if not asset_refs:
            return 0
        stmt = (
            update(OwnedItem)
            .where(
                OwnedItem.identity_key == identity_key,
                OwnedItem.asset_ref.in_(list(asset_refs)),
                OwnedItem.transferred_out_at.is_(None),
            )
            .values(transferred_out_at=now_utc, locked_by_forge_id=None)
        )
        result = await session.execute(stmt)
        return int(getattr(result, "rowcount", 0) or 0)
