from __future__ import annotations

from datetime import datetime
from uuid import uuid4

import structlog

from app.core.game_settings import GameSettings, get_game_settings
from app.core.identity import Identity
from app.core.rate_lock_store import AdmissionOutcome, RateLockStore
from app.game.sessions.errors import (
    AlreadyActiveError,
    DailyLimitReachedError,
    GameSessionError,
    OnCooldownError,
)
from app.game.sessions.rules import daily_cap_for, lock_ttl_seconds, session_day_key, session_deadline
from app.game.sessions.state_store import SessionStateStore
from app.game.sessions.types import ServedQuestion, SessionQuestionView, SessionStart, SessionState

from . import sessions_durable

logger = structlog.get_logger(__name__)


async def start_session(
    *,
    lock_store: RateLockStore,
    state_store: SessionStateStore,
    identity: Identity,
    category_code: str,
    now_utc: datetime,
    settings: GameSettings | None = None,
) -> SessionStart:
    settings = settings or get_game_settings()
    session_id = uuid4()
    day_key = session_day_key(
        now_utc,
        timezone_name=settings.daily_reset_timezone,
        reset_hour=settings.daily_reset_hour,
    )
    daily_cap = daily_cap_for(identity.kind, settings)
    ttl_seconds = lock_ttl_seconds(
        question_count=settings.questions_per_session,
        timer_seconds=settings.question_timer_seconds,
        grace_ms=settings.answer_grace_ms,
    )

    decision = await lock_store.try_admit(
        identity.key,
        session_id=str(session_id),
        day_key=day_key,
        daily_cap=daily_cap,
        lock_ttl_seconds=ttl_seconds,
    )
    if decision.outcome == AdmissionOutcome.ALREADY_ACTIVE:
        raise AlreadyActiveError(await lock_store.get_active_session_id(identity.key))
    if decision.outcome == AdmissionOutcome.ON_COOLDOWN:
        raise OnCooldownError(decision.retry_after_seconds)
    if decision.outcome == AdmissionOutcome.DAILY_LIMIT_REACHED:
        raise DailyLimitReachedError(daily_cap)

    try:
        seen = await lock_store.get_seen_questions(identity.key, category_code=category_code, day_key=day_key)
        questions = await sessions_durable.pick_session_questions(
            category_code=category_code,
            count=settings.questions_per_session,
            exclude_ids=seen,
            now_utc=now_utc,
        )
    except GameSessionError:
        await lock_store.abort_admission(identity.key, session_id=str(session_id), day_key=day_key)
        logger.info(
            "session_start_aborted",
            identity_key=identity.key,
            category_code=category_code,
            session_id=str(session_id),
        )
        raise

    state = SessionState(
        session_id=session_id,
        identity_key=identity.key,
        identity_kind=identity.kind,
        category_code=category_code,
        day_key=day_key,
        started_at=now_utc,
        deadline_at=session_deadline(
            now_utc,
            question_count=len(questions),
            timer_seconds=settings.question_timer_seconds,
            grace_ms=settings.answer_grace_ms,
        ),
        timer_seconds=settings.question_timer_seconds,
        answer_grace_ms=settings.answer_grace_ms,
        questions=[
            ServedQuestion(
                question_id=question.question_id,
                text=question.text,
                options=list(question.options),
                correct_option=question.correct_option,
                explanation=question.explanation,
            )
            for question in questions
        ],
        served_at={0: now_utc},
    )
    await lock_store.add_seen_questions(
        identity.key,
        category_code=category_code,
        day_key=day_key,
        question_ids=[question.question_id for question in questions],
    )
    await state_store.save(state, ttl_seconds=ttl_seconds)
    await state_store.track(session_id, deadline_at=state.deadline_at)

    logger.info(
        "session_started",
        session_id=str(session_id),
        identity_key=identity.key,
        identity_kind=identity.kind.value,
        category_code=category_code,
        daily_count=decision.daily_count,
    )
    return SessionStart(
        session_id=session_id,
        category_code=category_code,
        questions=[
            SessionQuestionView(
                question_index=index,
                question_id=question.question_id,
                text=question.text,
                options=list(question.options),
            )
            for index, question in enumerate(state.questions)
        ],
        timer_seconds=state.timer_seconds,
        started_at=state.started_at,
        deadline_at=state.deadline_at,
        daily_count=decision.daily_count,
        daily_cap=daily_cap,
    )
