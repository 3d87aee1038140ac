from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.quiz_attempts import QuizAttempt
from app.game.sessions.types import RecordedAnswer


class QuizAttemptsRepo:
    @staticmethod
    async def insert_many_if_absent(
        session: AsyncSession,
        *,
        session_id: UUID,
        answers: Sequence[RecordedAnswer],
    ) -> int:
        if not answers:
            return 0
        stmt = (
            insert(QuizAttempt)
            .values(
                [
                    {
                        "session_id": session_id,
                        "question_index": answer.question_index,
                        "question_id": answer.question_id,
                        "selected_option": answer.selected_option,
                        "is_correct": answer.is_correct,
                        "timed_out": answer.timed_out,
                        "served_at": answer.served_at,
                        "answered_at": answer.answered_at,
                        "response_ms": answer.response_ms,
                        "client_elapsed_ms": answer.client_elapsed_ms,
                    }
                    for answer in answers
                ]
            )
            .on_conflict_do_nothing(index_elements=[QuizAttempt.session_id, QuizAttempt.question_index])
            .returning(QuizAttempt.id)
        )
        result = await session.execute(stmt)
        return len(list(result.scalars()))

    @staticmethod
    async def list_for_session(session: AsyncSession, *, session_id: UUID) -> list[QuizAttempt]:
        stmt = (
            select(QuizAttempt)
            .where(QuizAttempt.session_id == session_id)
            .order_by(QuizAttempt.question_index.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())
