from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.mint_operations import MintOperation


class MintOperationsRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, operation_id: UUID) -> MintOperation | None:
        return await session.get(MintOperation, operation_id)

    @staticmethod
    async def get_live_for_eligibility(session: AsyncSession, *, eligibility_id: UUID) -> MintOperation | None:
        stmt = select(MintOperation).where(
            MintOperation.eligibility_id == eligibility_id,
            MintOperation.status.in_(("PENDING", "CONFIRMED")),
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def insert_pending_if_absent(
        session: AsyncSession,
        *,
        operation_id: UUID,
        eligibility_id: UUID,
        identity_key: str,
        catalog_item_id: UUID,
        now_utc: datetime,
    ) -> bool:
        stmt = (
            insert(MintOperation)
            .values(
                id=operation_id,
                eligibility_id=eligibility_id,
                identity_key=identity_key,
                catalog_item_id=catalog_item_id,
                status="PENDING",
                stage="created",
                attempts=0,
                created_at=now_utc,
                updated_at=now_utc,
            )
            .on_conflict_do_nothing()
            .returning(MintOperation.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def begin_run(session: AsyncSession, *, operation_id: UUID, now_utc: datetime) -> str | None:
        stmt = (
            update(MintOperation)
            .where(MintOperation.id == operation_id, MintOperation.status == "PENDING")
            .values(attempts=MintOperation.attempts + 1, updated_at=now_utc)
            .returning(MintOperation.stage)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def mark_stage(
        session: AsyncSession,
        *,
        operation_id: UUID,
        stage: str,
        fields: dict[str, Any],
        now_utc: datetime,
    ) -> int:
        stmt = (
            update(MintOperation)
            .where(MintOperation.id == operation_id, MintOperation.status == "PENDING")
            .values(stage=stage, updated_at=now_utc, **fields)
        )
        result = await session.execute(stmt)
        return int(getattr(result, "rowcount", 0) or 0)

    @staticmethod
    async def mark_failed(
        session: AsyncSession,
        *,
        operation_id: UUID,
        stage: str,
        error: str,
        now_utc: datetime,
    ) -> int:
        stmt = (
            update(MintOperation)
            .where(MintOperation.id == operation_id, MintOperation.status == "PENDING")
            .values(
                status="FAILED",
                stage=stage,
                last_error=error[:2000],
                failed_at=now_utc,
                updated_at=now_utc,
            )
        )
        result = await session.execute(stmt)
        return int(getattr(result, "rowcount", 0) or 0)

    @staticmethod
    async def mark_confirmed(
        session: AsyncSession,
        *,
        operation_id: UUID,
        asset_ref: str,
        now_utc: datetime,
    ) -> bool:
        stmt = (
            update(MintOperation)
            .where(MintOperation.id == operation_id, MintOperation.status == "PENDING")
            .values(
                status="CONFIRMED",
                stage="committed",
                asset_ref=asset_ref,
                last_error=None,
                confirmed_at=now_utc,
                updated_at=now_utc,
            )
            .returning(MintOperation.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def list_stalled_ids(session: AsyncSession, *, stale_before: datetime, limit: int) -> list[UUID]:
        stmt = (
            select(MintOperation.id)
            .where(MintOperation.status == "PENDING", MintOperation.updated_at <= stale_before)
            .order_by(MintOperation.updated_at.asc(), MintOperation.id.asc())
            .limit(max(1, int(limit)))
        )
        result = await session.execute(stmt)
        return list(result.scalars())
