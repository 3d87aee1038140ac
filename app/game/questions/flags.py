from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID, uuid4

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.identity import Identity
from app.db.repo.question_flags_repo import QuestionFlagsRepo
from app.db.repo.quiz_questions_repo import QuizQuestionsRepo
from app.game.questions.errors import QuestionNotFoundError

logger = structlog.get_logger(__name__)

FLAG_REASON_MAX_LENGTH = 1000


@dataclass(slots=True)
class QuestionFlagResult:
    flag_id: UUID
    question_id: str
    created: bool


class QuestionFlagService:
    @staticmethod
    async def flag_question(
        session: AsyncSession,
        *,
        identity: Identity,
        question_id: str,
        reason: str,
        now_utc: datetime,
    ) -> QuestionFlagResult:
        """Opens a review flag; repeat reports from the same identity reuse the open one."""
        question = await QuizQuestionsRepo.get_by_id(session, question_id)
        if question is None:
            raise QuestionNotFoundError

        flag_id = uuid4()
        created = await QuestionFlagsRepo.insert_open_if_absent(
            session,
            flag_id=flag_id,
            question_id=question_id,
            identity_key=identity.key,
            reason=reason.strip()[:FLAG_REASON_MAX_LENGTH],
            now_utc=now_utc,
        )
        if not created:
            existing = await QuestionFlagsRepo.get_open(
                session,
                question_id=question_id,
                identity_key=identity.key,
            )
            if existing is None:
                raise RuntimeError("open question flag vanished after insert conflict")
            flag_id = existing.id

        logger.info(
            "question_flagged",
            question_id=question_id,
            identity_key=identity.key,
            created=created,
        )
        return QuestionFlagResult(flag_id=flag_id, question_id=question_id, created=created)
