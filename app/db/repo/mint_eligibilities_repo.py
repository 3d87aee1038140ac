from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import exists, select, text, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.mint_eligibilities import MintEligibility
from app.db.models.mint_operations import MintOperation


class MintEligibilitiesRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, eligibility_id: UUID) -> MintEligibility | None:
        return await session.get(MintEligibility, eligibility_id)

    @staticmethod
    async def get_by_id_for_update(session: AsyncSession, eligibility_id: UUID) -> MintEligibility | None:
        stmt = select(MintEligibility).where(MintEligibility.id == eligibility_id).with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_active_for_category(
        session: AsyncSession,
        *,
        identity_key: str,
        category_code: str,
    ) -> MintEligibility | None:
        stmt = select(MintEligibility).where(
            MintEligibility.identity_key == identity_key,
            MintEligibility.category_code == category_code,
            MintEligibility.status == "ACTIVE",
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def expire_stale_for_category(
        session: AsyncSession,
        *,
        identity_key: str,
        category_code: str,
        now_utc: datetime,
    ) -> int:
        stmt = (
            update(MintEligibility)
            .where(
                MintEligibility.identity_key == identity_key,
                MintEligibility.category_code == category_code,
                MintEligibility.status == "ACTIVE",
                MintEligibility.expires_at <= now_utc,
                ~_has_live_mint_operation(),
            )
            .values(status="EXPIRED", expired_at=now_utc)
        )
        result = await session.execute(stmt)
        return int(getattr(result, "rowcount", 0) or 0)

    @staticmethod
    async def insert_active_if_absent(
        session: AsyncSession,
        *,
        eligibility_id: UUID,
        identity_key: str,
        identity_kind: str,
        category_code: str,
        season_id: str | None,
        source_session_id: UUID | None,
        window_minutes: int,
        created_at: datetime,
        expires_at: datetime,
    ) -> bool:
        stmt = (
            insert(MintEligibility)
            .values(
                id=eligibility_id,
                identity_key=identity_key,
                identity_kind=identity_kind,
                category_code=category_code,
                season_id=season_id,
                source_session_id=source_session_id,
                status="ACTIVE",
                window_minutes=window_minutes,
                created_at=created_at,
                expires_at=expires_at,
            )
            .on_conflict_do_nothing(
                index_elements=[MintEligibility.identity_key, MintEligibility.category_code],
                index_where=text("status = 'ACTIVE'"),
            )
            .returning(MintEligibility.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def mark_used_if_active(session: AsyncSession, *, eligibility_id: UUID, now_utc: datetime) -> bool:
        stmt = (
            update(MintEligibility)
            .where(
                MintEligibility.id == eligibility_id,
                MintEligibility.status == "ACTIVE",
            )
            .values(status="USED", used_at=now_utc)
            .returning(MintEligibility.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def expire_due(session: AsyncSession, *, now_utc: datetime, limit: int) -> list[UUID]:
        resolved_limit = max(1, int(limit))
        candidate_ids = (
            select(MintEligibility.id)
            .where(
                MintEligibility.status == "ACTIVE",
                MintEligibility.expires_at <= now_utc,
                ~_has_live_mint_operation(),
            )
            .order_by(MintEligibility.expires_at.asc(), MintEligibility.id.asc())
            .limit(resolved_limit)
            .scalar_subquery()
        )
        stmt = (
            update(MintEligibility)
            .where(
                MintEligibility.id.in_(candidate_ids),
                MintEligibility.status == "ACTIVE",
                MintEligibility.expires_at <= now_utc,
            )
            .values(status="EXPIRED", expired_at=now_utc)
            .returning(MintEligibility.id)
        )
        result = await session.execute(stmt)
        return list(result.scalars())

    @staticmethod
    async def list_active_for_identity_for_update(
        session: AsyncSession,
        *,
        identity_key: str,
    ) -> list[MintEligibility]:
        stmt = (
            select(MintEligibility)
            .where(
                MintEligibility.identity_key == identity_key,
                MintEligibility.status == "ACTIVE",
            )
            .order_by(MintEligibility.created_at.asc(), MintEligibility.id.asc())
            .with_for_update()
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_for_identity(
        session: AsyncSession,
        *,
        identity_key: str,
        status: str | None,
        limit: int,
    ) -> list[MintEligibility]:
        stmt = select(MintEligibility).where(MintEligibility.identity_key == identity_key)
        if status is not None:
            stmt = stmt.where(MintEligibility.status == status)
        stmt = stmt.order_by(MintEligibility.created_at.desc(), MintEligibility.id.desc()).limit(
            max(1, limit)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def reassign_owner(
        session: AsyncSession,
        *,
        eligibility_id: UUID,
        from_identity_key: str,
        to_identity_key: str,
        to_identity_kind: str,
        now_utc: datetime,
    ) -> bool:
        stmt = (
            update(MintEligibility)
            .where(
                MintEligibility.id == eligibility_id,
                MintEligibility.identity_key == from_identity_key,
                MintEligibility.status == "ACTIVE",
            )
            .values(
                identity_key=to_identity_key,
                identity_kind=to_identity_kind,
                transferred_from=from_identity_key,
                transferred_at=now_utc,
            )
            .returning(MintEligibility.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None


def _has_live_mint_operation():  # noqa: ANN202
    return exists().where(
        MintOperation.eligibility_id == MintEligibility.id,
        MintOperation.status == "PENDING",
    )
