from __future__ import annotations

from collections.abc import Collection, Sequence
from datetime import datetime
from uuid import UUID

import structlog

from app.core.game_settings import GameSettings
from app.core.identity import Identity, IdentityKind
from app.db.models.quiz_sessions import QuizSession
from app.db.repo.quiz_attempts_repo import QuizAttemptsRepo
from app.db.repo.quiz_categories_repo import QuizCategoriesRepo
from app.db.repo.quiz_questions_repo import QuizQuestionsRepo
from app.db.repo.quiz_sessions_repo import QuizSessionsRepo
from app.db.session import SessionLocal
from app.economy.eligibility.service import EligibilityService
from app.game.leaderboard.service import LeaderboardService
from app.game.questions.source import select_questions
from app.game.questions.types import QuizQuestion
from app.game.seasons.service import SeasonService
from app.game.sessions.errors import NotEnoughQuestionsError, UnknownCategoryError
from app.game.sessions.rules import session_deadline
from app.game.sessions.types import (
    RecordedAnswer,
    ServedQuestion,
    SessionHistoryItem,
    SessionOutcome,
    SessionResult,
    SessionState,
    SessionStatus,
)

logger = structlog.get_logger(__name__)


def result_from_row(row: QuizSession, *, idempotent_replay: bool) -> SessionResult:
    return SessionResult(
        session_id=row.id,
        identity_key=row.identity_key,
        status=SessionStatus(row.status),
        score=int(row.score),
        total=int(row.question_count),
        is_perfect=bool(row.is_perfect),
        avg_response_ms=row.avg_response_ms,
        eligibility_id=row.eligibility_id,
        season_id=row.season_id,
        idempotent_replay=idempotent_replay,
    )


async def pick_session_questions(
    *,
    category_code: str,
    count: int,
    exclude_ids: Collection[str],
    now_utc: datetime,
) -> list[QuizQuestion]:
    async with SessionLocal.begin() as session:
        category = await QuizCategoriesRepo.get_by_code(session, category_code)
        if category is None or not category.is_active:
            raise UnknownCategoryError
        questions = await select_questions(
            session,
            category_code=category_code,
            count=count,
            exclude_ids=exclude_ids,
            now_utc=now_utc,
        )
        if len(questions) < count:
            raise NotEnoughQuestionsError
    return questions


async def get_terminal_result(session_id: UUID) -> SessionResult | None:
    async with SessionLocal.begin() as session:
        row = await QuizSessionsRepo.get_by_id(session, session_id)
        if row is None or row.status == SessionStatus.ACTIVE.value:
            return None
        return result_from_row(row, idempotent_replay=True)


async def load_active_snapshot(session_id: UUID, *, answer_grace_ms: int) -> SessionState | None:
    """Rebuilds transient session progress from the durable mirror."""
    async with SessionLocal.begin() as session:
        row = await QuizSessionsRepo.get_by_id(session, session_id)
        if row is None or row.status != SessionStatus.ACTIVE.value:
            return None
        attempts = await QuizAttemptsRepo.list_for_session(session, session_id=session_id)
        questions_by_id = await QuizQuestionsRepo.get_by_ids(session, list(row.question_ids))

    questions: list[ServedQuestion] = []
    for question_id in row.question_ids:
        question = questions_by_id.get(question_id)
        if question is None:
            logger.error("session_rebuild_question_missing", session_id=str(session_id), question_id=question_id)
            return None
        questions.append(
            ServedQuestion(
                question_id=question.question_id,
                text=question.question_text,
                options=list(question.options),
                correct_option=int(question.correct_option),
                explanation=question.explanation or "",
            )
        )

    state = SessionState(
        session_id=row.id,
        identity_key=row.identity_key,
        identity_kind=IdentityKind(row.identity_kind),
        category_code=row.category_code,
        day_key=row.day_key,
        started_at=row.started_at,
        deadline_at=session_deadline(
            row.started_at,
            question_count=row.question_count,
            timer_seconds=row.timer_seconds,
            grace_ms=answer_grace_ms,
        ),
        timer_seconds=row.timer_seconds,
        answer_grace_ms=answer_grace_ms,
        questions=questions,
        served_at={0: row.started_at},
    )
    for attempt in attempts:
        state.answers[attempt.question_index] = RecordedAnswer(
            question_index=attempt.question_index,
            question_id=attempt.question_id,
            selected_option=attempt.selected_option,
            is_correct=attempt.is_correct,
            timed_out=attempt.timed_out,
            served_at=attempt.served_at,
            answered_at=attempt.answered_at,
            response_ms=attempt.response_ms,
            client_elapsed_ms=attempt.client_elapsed_ms,
        )
        state.served_at[attempt.question_index] = attempt.served_at
        state.served_at.setdefault(attempt.question_index + 1, attempt.answered_at)
    return state


async def _mirror_session(session, state: SessionState, answers: Sequence[RecordedAnswer]) -> None:  # noqa: ANN001
    await QuizSessionsRepo.insert_active_if_absent(
        session,
        session_id=state.session_id,
        identity_key=state.identity_key,
        identity_kind=state.identity_kind.value,
        category_code=state.category_code,
        question_ids=[question.question_id for question in state.questions],
        timer_seconds=state.timer_seconds,
        day_key=state.day_key,
        started_at=state.started_at,
    )
    await QuizAttemptsRepo.insert_many_if_absent(session, session_id=state.session_id, answers=answers)


async def persist_answers(state: SessionState, answers: Sequence[RecordedAnswer]) -> None:
    """Durable commit point: the first recorded answer makes the session row visible."""
    if not answers:
        return
    async with SessionLocal.begin() as session:
        await _mirror_session(session, state, answers)


async def commit_terminal(
    state: SessionState,
    outcome: SessionOutcome,
    *,
    now_utc: datetime,
    settings: GameSettings,
) -> SessionResult:
    async with SessionLocal.begin() as session:
        await _mirror_session(session, state, sorted(state.answers.values(), key=lambda item: item.question_index))
        row = await QuizSessionsRepo.get_by_id_for_update(session, state.session_id)
        if row is None:
            raise RuntimeError(f"session row missing after mirror: {state.session_id}")
        if row.status != SessionStatus.ACTIVE.value:
            return result_from_row(row, idempotent_replay=True)

        season_id: str | None = None
        eligibility_id: UUID | None = None
        if outcome.status != SessionStatus.FORFEIT:
            season_id = await SeasonService.season_for_points(session, now_utc=now_utc)
            if season_id is not None:
                await LeaderboardService.record_session(
                    session,
                    season_id=season_id,
                    identity_key=state.identity_key,
                    correct_answers=outcome.score,
                    is_perfect=outcome.is_perfect,
                    avg_response_ms=(
                        outcome.avg_response_ms
                        if outcome.avg_response_ms is not None
                        else float(state.timer_seconds * 1000)
                    ),
                    now_utc=now_utc,
                    settings=settings,
                )
            if outcome.is_perfect:
                eligibility = await EligibilityService.grant(
                    session,
                    identity=Identity(key=state.identity_key, kind=state.identity_kind),
                    category_code=state.category_code,
                    source_session_id=state.session_id,
                    season_id=season_id,
                    now_utc=now_utc,
                    settings=settings,
                )
                eligibility_id = eligibility.eligibility_id if eligibility is not None else None

        row.status = outcome.status.value
        row.score = outcome.score
        row.is_perfect = outcome.is_perfect
        row.avg_response_ms = outcome.avg_response_ms
        row.season_id = season_id
        row.eligibility_id = eligibility_id
        row.completed_at = now_utc
        return result_from_row(row, idempotent_replay=False)


async def list_history(*, identity_key: str, limit: int, offset: int) -> list[SessionHistoryItem]:
    async with SessionLocal.begin() as session:
        rows = await QuizSessionsRepo.list_terminal_for_identity(
            session,
            identity_key=identity_key,
            limit=limit,
            offset=offset,
        )
    return [
        SessionHistoryItem(
            session_id=row.id,
            category_code=row.category_code,
            status=SessionStatus(row.status),
            score=int(row.score),
            total=int(row.question_count),
            is_perfect=bool(row.is_perfect),
            started_at=row.started_at,
            completed_at=row.completed_at,
        )
        for row in rows
    ]
