from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.seasons import Season


class SeasonsRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, season_id: str) -> Season | None:
        return await session.get(Season, season_id)

    @staticmethod
    async def get_active(session: AsyncSession) -> Season | None:
        stmt = select(Season).where(Season.is_active.is_(True))
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_active_for_update(session: AsyncSession) -> Season | None:
        stmt = select(Season).where(Season.is_active.is_(True)).with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(
        session: AsyncSession,
        *,
        season_id: str,
        name: str,
        starts_at: datetime,
        ends_at: datetime,
        grace_days: int,
        is_active: bool,
    ) -> Season:
        season = Season(
            id=season_id,
            name=name,
            starts_at=starts_at,
            ends_at=ends_at,
            grace_days=grace_days,
            is_active=is_active,
        )
        session.add(season)
        await session.flush()
        return season

    @staticmethod
    async def archive(session: AsyncSession, *, season_id: str, now_utc: datetime) -> bool:
        stmt = (
            update(Season)
            .where(Season.id == season_id, Season.is_active.is_(True))
            .values(is_active=False, archived_at=now_utc)
            .returning(Season.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

