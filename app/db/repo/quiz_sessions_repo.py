from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import Row, case, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.owned_items import OwnedItem
from app.db.models.quiz_sessions import QuizSession

# Forfeits never earn season points.
SCORED_STATUSES = ("WON", "LOST")


class QuizSessionsRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, session_id: UUID) -> QuizSession | None:
        return await session.get(QuizSession, session_id)

    @staticmethod
    async def get_by_id_for_update(session: AsyncSession, session_id: UUID) -> QuizSession | None:
        stmt = select(QuizSession).where(QuizSession.id == session_id).with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def insert_active_if_absent(
        session: AsyncSession,
        *,
        session_id: UUID,
        identity_key: str,
        identity_kind: str,
        category_code: str,
        question_ids: list[str],
        timer_seconds: int,
        day_key: date,
        started_at: datetime,
    ) -> bool:
        stmt = (
            insert(QuizSession)
            .values(
                id=session_id,
                identity_key=identity_key,
                identity_kind=identity_kind,
                category_code=category_code,
                status="ACTIVE",
                question_ids=question_ids,
                question_count=len(question_ids),
                timer_seconds=timer_seconds,
                score=0,
                is_perfect=False,
                day_key=day_key,
                started_at=started_at,
            )
            .on_conflict_do_nothing(index_elements=[QuizSession.id])
            .returning(QuizSession.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def list_terminal_for_identity(
        session: AsyncSession,
        *,
        identity_key: str,
        limit: int,
        offset: int,
    ) -> list[QuizSession]:
        stmt = (
            select(QuizSession)
            .where(
                QuizSession.identity_key == identity_key,
                QuizSession.status != "ACTIVE",
            )
            .order_by(QuizSession.started_at.desc(), QuizSession.id.desc())
            .offset(max(0, offset))
            .limit(max(1, limit))
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_category_ranked(
        session: AsyncSession,
        *,
        season_id: str,
        category_code: str,
        points_per_correct: int,
        perfect_bonus_points: int,
        limit: int,
        offset: int,
    ) -> list[Row]:
        """Season standings built from scored sessions in one category.

        Rows carry the season leaderboard columns plus `rank`, ordered by the
        same tie-break chain as season_points.
        """
        perfects = func.count().filter(QuizSession.is_perfect.is_(True))
        played = (
            select(
                QuizSession.identity_key.label("identity_key"),
                (func.sum(QuizSession.score) * points_per_correct + perfects * perfect_bonus_points).label("points"),
                perfects.label("perfect_count"),
                func.avg(func.coalesce(QuizSession.avg_response_ms, QuizSession.timer_seconds * 1000.0)).label("avg_response_ms"),
                func.count().label("sessions_used"),
                func.min(case((QuizSession.score > 0, QuizSession.completed_at))).label("first_achieved_at"),
            )
            .where(
                QuizSession.season_id == season_id,
                QuizSession.category_code == category_code,
                QuizSession.status.in_(SCORED_STATUSES),
            )
            .group_by(QuizSession.identity_key)
            .subquery()
        )
        minted = (
            select(OwnedItem.identity_key.label("identity_key"), func.count().label("items_minted"))
            .where(
                OwnedItem.season_id == season_id,
                OwnedItem.category_code == category_code,
                OwnedItem.provenance == "MINTED",
            )
            .group_by(OwnedItem.identity_key)
            .subquery()
        )
        items_minted = func.coalesce(minted.c.items_minted, 0)
        order_by = [
            played.c.points.desc(),
            items_minted.desc(),
            played.c.perfect_count.desc(),
            played.c.avg_response_ms.asc().nulls_last(),
            played.c.sessions_used.asc(),
            played.c.first_achieved_at.asc().nulls_last(),
            played.c.identity_key.collate("C").asc(),
        ]
        stmt = (
            select(
                played,
                items_minted.label("items_minted"),
                func.row_number().over(order_by=order_by).label("rank"),
            )
            .select_from(played.outerjoin(minted, minted.c.identity_key == played.c.identity_key))
            .order_by(*order_by)
            .offset(max(0, offset))
            .limit(max(1, limit))
        )
        result = await session.execute(stmt)
        return list(result.all())
