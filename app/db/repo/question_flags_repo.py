from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.question_flags import QuestionFlag


class QuestionFlagsRepo:
    @staticmethod
    async def insert_open_if_absent(
        session: AsyncSession,
        *,
        flag_id: UUID,
        question_id: str,
        identity_key: str,
        reason: str,
        now_utc: datetime,
    ) -> bool:
        stmt = (
            insert(QuestionFlag)
            .values(
                id=flag_id,
                question_id=question_id,
                identity_key=identity_key,
                reason=reason,
                handled=False,
                created_at=now_utc,
            )
            .on_conflict_do_nothing(
                index_elements=[QuestionFlag.question_id, QuestionFlag.identity_key],
                index_where=QuestionFlag.handled.is_(False),
            )
            .returning(QuestionFlag.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def get_open(session: AsyncSession, *, question_id: str, identity_key: str) -> QuestionFlag | None:
        stmt = select(QuestionFlag).where(
            QuestionFlag.question_id == question_id,
            QuestionFlag.identity_key == identity_key,
            QuestionFlag.handled.is_(False),
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()
