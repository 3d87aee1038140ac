from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, literal, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.leaderboard_snapshots import LeaderboardSnapshot
from app.db.repo.season_points_repo import ranked_select


class LeaderboardSnapshotsRepo:
    @staticmethod
    async def capture(
        session: AsyncSession,
        *,
        season_id: str,
        snapshot_at: datetime,
        is_final: bool,
    ) -> int:
        ranked = ranked_select(season_id).subquery()
        source = select(
            ranked.c.season_id,
            literal(snapshot_at).label("snapshot_at"),
            ranked.c.identity_key,
            ranked.c.rank,
            ranked.c.points,
            ranked.c.perfect_count,
            ranked.c.items_minted,
            ranked.c.avg_response_ms,
            ranked.c.sessions_used,
            ranked.c.first_achieved_at,
            literal(is_final).label("is_final"),
        )
        stmt = (
            insert(LeaderboardSnapshot)
            .from_select(
                [
                    "season_id",
                    "snapshot_at",
                    "identity_key",
                    "rank",
                    "points",
                    "perfect_count",
                    "items_minted",
                    "avg_response_ms",
                    "sessions_used",
                    "first_achieved_at",
                    "is_final",
                ],
                source,
            )
            .on_conflict_do_nothing()
            .returning(LeaderboardSnapshot.identity_key)
        )
        result = await session.execute(stmt)
        return len(list(result.scalars()))

    @staticmethod
    async def get_latest_snapshot_at(session: AsyncSession, *, season_id: str) -> datetime | None:
        final_stmt = select(func.max(LeaderboardSnapshot.snapshot_at)).where(
            LeaderboardSnapshot.season_id == season_id,
            LeaderboardSnapshot.is_final.is_(True),
        )
        latest_final = (await session.execute(final_stmt)).scalar_one_or_none()
        if latest_final is not None:
            return latest_final
        any_stmt = select(func.max(LeaderboardSnapshot.snapshot_at)).where(
            LeaderboardSnapshot.season_id == season_id
        )
        return (await session.execute(any_stmt)).scalar_one_or_none()

    @staticmethod
    async def list_page(
        session: AsyncSession,
        *,
        season_id: str,
        snapshot_at: datetime,
        limit: int,
        offset: int,
    ) -> list[LeaderboardSnapshot]:
        stmt = (
            select(LeaderboardSnapshot)
            .where(
                LeaderboardSnapshot.season_id == season_id,
                LeaderboardSnapshot.snapshot_at == snapshot_at,
            )
            .order_by(LeaderboardSnapshot.rank.asc())
            .offset(max(0, offset))
            .limit(max(1, limit))
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())
