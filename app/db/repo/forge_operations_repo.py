from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.forge_operations import ForgeOperation


class ForgeOperationsRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, operation_id: UUID) -> ForgeOperation | None:
        return await session.get(ForgeOperation, operation_id)

    @staticmethod
    async def create(session: AsyncSession, *, operation: ForgeOperation) -> ForgeOperation:
        session.add(operation)
        await session.flush()
        return operation

    @staticmethod
    async def begin_run(session: AsyncSession, *, operation_id: UUID, now_utc: datetime) -> str | None:
        stmt = (
            update(ForgeOperation)
            .where(ForgeOperation.id == operation_id, ForgeOperation.status == "PENDING")
            .values(updated_at=now_utc)
            .returning(ForgeOperation.stage)
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
            update(ForgeOperation)
            .where(ForgeOperation.id == operation_id, ForgeOperation.status == "PENDING")
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
        failure_kind: str,
        now_utc: datetime,
    ) -> int:
        stmt = (
            update(ForgeOperation)
            .where(ForgeOperation.id == operation_id, ForgeOperation.status == "PENDING")
            .values(
                status="FAILED",
                stage=stage,
                failure_kind=failure_kind,
                last_error=error[:2000],
                completed_at=now_utc,
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
        output_item_id: UUID,
        output_asset_ref: str,
        now_utc: datetime,
    ) -> bool:
        stmt = (
            update(ForgeOperation)
            .where(ForgeOperation.id == operation_id, ForgeOperation.status == "PENDING")
            .values(
                status="CONFIRMED",
                stage="committed",
                output_item_id=output_item_id,
                output_asset_ref=output_asset_ref,
                last_error=None,
                completed_at=now_utc,
                updated_at=now_utc,
            )
            .returning(ForgeOperation.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def list_stalled_ids(session: AsyncSession, *, stale_before: datetime, limit: int) -> list[UUID]:
        stmt = (
            select(ForgeOperation.id)
            .where(ForgeOperation.status == "PENDING", ForgeOperation.updated_at <= stale_before)
            .order_by(ForgeOperation.updated_at.asc(), ForgeOperation.id.asc())
            .limit(max(1, int(limit)))
        )
        result = await session.execute(stmt)
        return list(result.scalars())
