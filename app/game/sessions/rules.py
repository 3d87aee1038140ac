from __future__ import annotations

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from app.core.game_settings import GameSettings
from app.core.identity import IdentityKind
from app.game.sessions.types import RecordedAnswer, SessionOutcome, SessionState, SessionStatus

LOCK_TTL_SLACK_SECONDS = 300


def session_day_key(now_utc: datetime, *, timezone_name: str, reset_hour: int) -> date:
    """Calendar day a session counts against; rolls over at `reset_hour` local time."""
    local_now = now_utc.astimezone(ZoneInfo(timezone_name))
    return (local_now - timedelta(hours=reset_hour)).date()


def daily_cap_for(kind: IdentityKind, settings: GameSettings) -> int:
    if kind == IdentityKind.CONNECTED:
        return settings.daily_sessions_connected
    return settings.daily_sessions_guest


def question_window(timer_seconds: int, grace_ms: int) -> timedelta:
    return timedelta(seconds=timer_seconds, milliseconds=grace_ms)


def question_deadline(served_at: datetime, *, timer_seconds: int, grace_ms: int) -> datetime:
    return served_at + question_window(timer_seconds, grace_ms)


def session_deadline(
    started_at: datetime,
    *,
    question_count: int,
    timer_seconds: int,
    grace_ms: int,
) -> datetime:
    return started_at + question_window(timer_seconds, grace_ms) * question_count


def lock_ttl_seconds(*, question_count: int, timer_seconds: int, grace_ms: int) -> int:
    window = question_window(timer_seconds, grace_ms) * question_count
    return int(window.total_seconds()) + LOCK_TTL_SLACK_SECONDS


def is_answer_late(
    served_at: datetime,
    now_utc: datetime,
    *,
    timer_seconds: int,
    grace_ms: int,
) -> bool:
    return now_utc > question_deadline(served_at, timer_seconds=timer_seconds, grace_ms=grace_ms)


def measured_response_ms(served_at: datetime, now_utc: datetime, *, timer_seconds: int) -> int:
    elapsed_ms = int((now_utc - served_at).total_seconds() * 1000)
    return max(0, min(elapsed_ms, timer_seconds * 1000))


def build_timeout_answer(state: SessionState, question_index: int, served_at: datetime) -> RecordedAnswer:
    return RecordedAnswer(
        question_index=question_index,
        question_id=state.questions[question_index].question_id,
        selected_option=None,
        is_correct=False,
        timed_out=True,
        served_at=served_at,
        answered_at=question_deadline(
            served_at,
            timer_seconds=state.timer_seconds,
            grace_ms=state.answer_grace_ms,
        ),
        response_ms=state.timer_seconds * 1000,
    )


def resolve_elapsed_timeouts(state: SessionState, now_utc: datetime) -> list[RecordedAnswer]:
    """Returns timeout records for every leading unanswered question whose window has closed.

    The next question is considered served at the moment the previous window closed,
    so a run of silent questions times out in order.
    """
    timeouts: list[RecordedAnswer] = []
    served_at = dict(state.served_at)
    answered = set(state.answers)
    for index in range(state.question_count):
        if index in answered:
            continue
        current_served_at = served_at.get(index)
        if current_served_at is None:
            break
        if not is_answer_late(
            current_served_at,
            now_utc,
            timer_seconds=state.timer_seconds,
            grace_ms=state.answer_grace_ms,
        ):
            break
        timeout = build_timeout_answer(state, index, current_served_at)
        timeouts.append(timeout)
        answered.add(index)
        served_at.setdefault(index + 1, timeout.answered_at)
    return timeouts


def apply_answer(state: SessionState, answer: RecordedAnswer) -> None:
    state.answers[answer.question_index] = answer
    next_index = answer.question_index + 1
    if next_index < state.question_count:
        state.served_at.setdefault(next_index, answer.answered_at)


def current_score(state: SessionState) -> int:
    return sum(1 for answer in state.answers.values() if answer.is_correct)


def average_response_ms(answers: list[RecordedAnswer]) -> float | None:
    if not answers:
        return None
    return sum(answer.response_ms for answer in answers) / len(answers)


def evaluate_session(state: SessionState, *, win_threshold: int, forfeit: bool = False) -> SessionOutcome:
    """Final scoring. Unanswered questions count as incorrect."""
    score = current_score(state)
    total = state.question_count
    avg_ms = average_response_ms(list(state.answers.values()))
    if forfeit:
        return SessionOutcome(
            status=SessionStatus.FORFEIT,
            score=score,
            total=total,
            is_perfect=False,
            avg_response_ms=avg_ms,
        )
    is_perfect = total > 0 and score == total
    return SessionOutcome(
        status=SessionStatus.WON if score >= win_threshold else SessionStatus.LOST,
        score=score,
        total=total,
        is_perfect=is_perfect,
        avg_response_ms=avg_ms,
    )


def is_abandoned(state: SessionState, now_utc: datetime) -> bool:
    """Past the hard deadline without the client answering the last question."""
    if now_utc < state.deadline_at or state.question_count == 0:
        return False
    last_answer = state.answers.get(state.question_count - 1)
    return last_answer is None or last_answer.timed_out
