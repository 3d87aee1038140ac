from __future__ import annotations

from datetime import datetime
from uuid import UUID

import structlog

from app.core.game_settings import GameSettings, get_game_settings
from app.core.identity import Identity
from app.core.rate_lock_store import RateLockStore
from app.game.sessions.errors import (
    InvalidAnswerOptionError,
    InvalidQuestionIndexError,
    SessionAlreadyFinalizedError,
    SessionNotFoundError,
)
from app.game.sessions.rules import (
    apply_answer,
    current_score,
    measured_response_ms,
    resolve_elapsed_timeouts,
)
from app.game.sessions.state_store import SessionStateStore
from app.game.sessions.types import AnswerResult, RecordedAnswer, SessionState

from . import sessions_durable
from .sessions_state import ensure_owner, load_session_state, session_mutex, within_transaction_timeout

logger = structlog.get_logger(__name__)


def _build_answer_result(state: SessionState, answer: RecordedAnswer, *, idempotent_replay: bool) -> AnswerResult:
    question = state.questions[answer.question_index]
    return AnswerResult(
        session_id=state.session_id,
        question_index=answer.question_index,
        is_correct=answer.is_correct,
        correct_option=question.correct_option,
        explanation=question.explanation,
        score=current_score(state),
        answered_count=len(state.answers),
        timed_out=answer.timed_out,
        idempotent_replay=idempotent_replay,
    )


async def submit_answer(
    *,
    lock_store: RateLockStore,
    state_store: SessionStateStore,
    identity: Identity,
    session_id: UUID,
    question_index: int,
    selected_option: int,
    elapsed_ms: int | None,
    now_utc: datetime,
    settings: GameSettings | None = None,
) -> AnswerResult:
    settings = settings or get_game_settings()
    async with session_mutex(lock_store, session_id):
        state = await load_session_state(
            state_store,
            session_id=session_id,
            answer_grace_ms=settings.answer_grace_ms,
        )
        if state is None:
            terminal = await within_transaction_timeout(sessions_durable.get_terminal_result(session_id))
            if terminal is not None and terminal.identity_key == identity.key:
                raise SessionAlreadyFinalizedError
            raise SessionNotFoundError
        state = ensure_owner(state, identity)

        if question_index < 0 or question_index >= state.question_count:
            raise InvalidQuestionIndexError

        existing = state.answers.get(question_index)
        if existing is not None:
            return _build_answer_result(state, existing, idempotent_replay=True)

        question = state.questions[question_index]
        if selected_option < 0 or selected_option >= len(question.options):
            raise InvalidAnswerOptionError

        new_answers = resolve_elapsed_timeouts(state, now_utc)
        for timeout in new_answers:
            apply_answer(state, timeout)

        recorded = state.answers.get(question_index)
        if recorded is None:
            if state.next_unanswered_index() != question_index:
                raise InvalidQuestionIndexError
            served_at = state.served_at[question_index]
            recorded = RecordedAnswer(
                question_index=question_index,
                question_id=question.question_id,
                selected_option=selected_option,
                is_correct=selected_option == question.correct_option,
                timed_out=False,
                served_at=served_at,
                answered_at=now_utc,
                response_ms=measured_response_ms(served_at, now_utc, timer_seconds=state.timer_seconds),
                client_elapsed_ms=elapsed_ms,
            )
            apply_answer(state, recorded)
            new_answers.append(recorded)

        for answer in new_answers:
            if not await state_store.record_answer(state.session_id, answer):
                logger.warning(
                    "session_answer_already_recorded",
                    session_id=str(state.session_id),
                    question_index=answer.question_index,
                )
        await within_transaction_timeout(sessions_durable.persist_answers(state, new_answers))

    logger.info(
        "session_answer_recorded",
        session_id=str(state.session_id),
        question_index=question_index,
        is_correct=recorded.is_correct,
        timed_out=recorded.timed_out,
        timeouts_recorded=len(new_answers) - (0 if recorded.timed_out else 1),
    )
    return _build_answer_result(state, recorded, idempotent_replay=False)
