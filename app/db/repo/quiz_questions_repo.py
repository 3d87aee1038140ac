from __future__ import annotations

from collections.abc import Collection, Sequence
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.quiz_questions import QuizQuestion


class QuizQuestionsRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, question_id: str) -> QuizQuestion | None:
        return await session.get(QuizQuestion, question_id)

    @staticmethod
    async def list_least_recently_served(
        session: AsyncSession,
        *,
        category_code: str,
        limit: int,
        exclude_ids: Collection[str],
    ) -> list[QuizQuestion]:
        stmt = select(QuizQuestion).where(
            QuizQuestion.category_code == category_code,
            QuizQuestion.status == "ACTIVE",
        )
        if exclude_ids:
            stmt = stmt.where(QuizQuestion.question_id.not_in(list(exclude_ids)))
        stmt = stmt.order_by(
            QuizQuestion.last_served_at.asc().nulls_first(),
            QuizQuestion.times_served.asc(),
            QuizQuestion.question_id.asc(),
        ).limit(max(1, limit))
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def mark_served(
        session: AsyncSession,
        *,
        question_ids: Sequence[str],
        now_utc: datetime,
    ) -> int:
        if not question_ids:
            return 0
        stmt = (
            update(QuizQuestion)
            .where(QuizQuestion.question_id.in_(list(question_ids)))
            .values(
                last_served_at=now_utc,
                times_served=QuizQuestion.times_served + 1,
            )
        )
        result = await session.execute(stmt)
        return int(getattr(result, "rowcount", 0) or 0)

    @staticmethod
    async def get_by_ids(session: AsyncSession, question_ids: Sequence[str]) -> dict[str, QuizQuestion]:
        if not question_ids:
            return {}
        stmt = select(QuizQuestion).where(QuizQuestion.question_id.in_(list(question_ids)))
        result = await session.execute(stmt)
        return {question.question_id: question for question in result.scalars().all()}
