from __future__ import annotations

from collections.abc import Collection
from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repo.quiz_questions_repo import QuizQuestionsRepo
from app.game.questions.types import QuizQuestion

logger = structlog.get_logger(__name__)


async def select_questions(
    session: AsyncSession,
    *,
    category_code: str,
    count: int,
    exclude_ids: Collection[str],
    now_utc: datetime,
) -> list[QuizQuestion]:
    """Least-recently-served active questions of a category, minus `exclude_ids`.

    Served questions are stamped with `now_utc` so concurrent sessions spread
    across the pool. Returns fewer than `count` items when the pool is short.
    """
    rows = await QuizQuestionsRepo.list_least_recently_served(
        session,
        category_code=category_code,
        limit=count,
        exclude_ids=exclude_ids,
    )
    if len(rows) < count:
        logger.warning(
            "question_pool_short",
            category_code=category_code,
            requested=count,
            available=len(rows),
            excluded=len(exclude_ids),
        )
        return [_to_question(row) for row in rows]

    await QuizQuestionsRepo.mark_served(
        session,
        question_ids=[row.question_id for row in rows],
        now_utc=now_utc,
    )
    return [_to_question(row) for row in rows]


def _to_question(row) -> QuizQuestion:  # noqa: ANN001
    return QuizQuestion(
        question_id=row.question_id,
        text=row.question_text,
        options=list(row.options),
        correct_option=int(row.correct_option),
        explanation=row.explanation or "",
        category=row.category_code,
    )
