from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.season_points import SeasonPoints


def ranking_order_by() -> list:
    """SQL mirror of app.game.leaderboard.scoring.ranking_key."""
    return [
        SeasonPoints.points.desc(),
        SeasonPoints.items_minted.desc(),
        SeasonPoints.perfect_count.desc(),
        SeasonPoints.avg_response_ms.asc().nulls_last(),
        SeasonPoints.sessions_used.asc(),
        SeasonPoints.first_achieved_at.asc().nulls_last(),
        SeasonPoints.identity_key.collate("C").asc(),
    ]


def ranked_select(season_id: str):  # noqa: ANN201
    return select(
        SeasonPoints,
        func.row_number().over(order_by=ranking_order_by()).label("rank"),
    ).where(SeasonPoints.season_id == season_id)


class SeasonPointsRepo:
    @staticmethod
    async def record_session(
        session: AsyncSession,
        *,
        season_id: str,
        identity_key: str,
        points: int,
        is_perfect: bool,
        avg_response_ms: float,
        now_utc: datetime,
    ) -> None:
        stmt = insert(SeasonPoints).values(
            season_id=season_id,
            identity_key=identity_key,
            points=points,
            perfect_count=1 if is_perfect else 0,
            items_minted=0,
            avg_response_ms=avg_response_ms,
            sessions_used=1,
            first_achieved_at=now_utc if points > 0 else None,
            updated_at=now_utc,
        )
        excluded = stmt.excluded
        stmt = stmt.on_conflict_do_update(
            index_elements=[SeasonPoints.season_id, SeasonPoints.identity_key],
            set_={
                "points": SeasonPoints.points + excluded.points,
                "perfect_count": SeasonPoints.perfect_count + excluded.perfect_count,
                "avg_response_ms": (
                    func.coalesce(SeasonPoints.avg_response_ms, 0) * SeasonPoints.sessions_used
                    + excluded.avg_response_ms
                )
                / (SeasonPoints.sessions_used + 1),
                "sessions_used": SeasonPoints.sessions_used + 1,
                "first_achieved_at": func.coalesce(
                    SeasonPoints.first_achieved_at,
                    excluded.first_achieved_at,
                ),
                "updated_at": excluded.updated_at,
            },
        )
        await session.execute(stmt)

    @staticmethod
    async def record_mint(
        session: AsyncSession,
        *,
        season_id: str,
        identity_key: str,
        now_utc: datetime,
    ) -> None:
        stmt = insert(SeasonPoints).values(
            season_id=season_id,
            identity_key=identity_key,
            points=0,
            perfect_count=0,
            items_minted=1,
            avg_response_ms=None,
            sessions_used=0,
            updated_at=now_utc,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[SeasonPoints.season_id, SeasonPoints.identity_key],
            set_={
                "items_minted": SeasonPoints.items_minted + 1,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await session.execute(stmt)

    @staticmethod
    async def list_ranked(
        session: AsyncSession,
        *,
        season_id: str,
        limit: int,
        offset: int,
    ) -> list[tuple[SeasonPoints, int]]:
        stmt = (
            ranked_select(season_id)
            .order_by(*ranking_order_by())
            .offset(max(0, offset))
            .limit(max(1, limit))
        )
        result = await session.execute(stmt)
        return [(row[0], int(row[1])) for row in result.all()]

    @staticmethod
    async def get_rank(
        session: AsyncSession,
        *,
        season_id: str,
        identity_key: str,
    ) -> tuple[SeasonPoints, int] | None:
        ranked = ranked_select(season_id).subquery()
        stmt = select(ranked).where(ranked.c.identity_key == identity_key)
        result = await session.execute(stmt)
        row = result.mappings().one_or_none()
        if row is None:
            return None
        entry = SeasonPoints(
            season_id=row["season_id"],
            identity_key=row["identity_key"],
            points=row["points"],
            perfect_count=row["perfect_count"],
            items_minted=row["items_minted"],
            avg_response_ms=row["avg_response_ms"],
            sessions_used=row["sessions_used"],
            first_achieved_at=row["first_achieved_at"],
            updated_at=row["updated_at"],
        )
        return entry, int(row["rank"])

    @staticmethod
    async def list_points_by_identity(session: AsyncSession, *, season_id: str) -> list[tuple[str, int]]:
        stmt = (
            select(SeasonPoints.identity_key, SeasonPoints.points)
            .where(SeasonPoints.season_id == season_id)
            .order_by(SeasonPoints.identity_key.asc())
        )
        result = await session.execute(stmt)
        return [(str(identity_key), int(points)) for identity_key, points in result.all()]

    @staticmethod
    async def seed_entries(
        session: AsyncSession,
        *,
        season_id: str,
        points_by_identity: list[tuple[str, int]],
        now_utc: datetime,
    ) -> int:
        if not points_by_identity:
            return 0
        stmt = (
            insert(SeasonPoints)
            .values(
                [
                    {
                        "season_id": season_id,
                        "identity_key": identity_key,
                        "points": points,
                        "perfect_count": 0,
                        "items_minted": 0,
                        "avg_response_ms": None,
                        "sessions_used": 0,
                        "first_achieved_at": None,
                        "updated_at": now_utc,
                    }
                    for identity_key, points in points_by_identity
                ]
            )
            .on_conflict_do_nothing(index_elements=[SeasonPoints.season_id, SeasonPoints.identity_key])
            .returning(SeasonPoints.identity_key)
        )
        result = await session.execute(stmt)
        return len(list(result.scalars()))
