from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

from app.core.identity import IdentityKind
from app.game.sessions.rules import (
    apply_answer,
    daily_cap_for,
    evaluate_session,
    is_abandoned,
    lock_ttl_seconds,
    measured_response_ms,
    resolve_elapsed_timeouts,
    session_day_key,
    session_deadline,
)
from app.game.sessions.types import RecordedAnswer, ServedQuestion, SessionState, SessionStatus
from tests.game.session_fakes import make_settings

UTC = timezone.utc


def _state(*, question_count: int = 3, started_at: datetime | None = None) -> SessionState:
    started = started_at or datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
    return SessionState(
        session_id=uuid4(),
        identity_key="guest-1",
        identity_kind=IdentityKind.GUEST,
        category_code="science",
        day_key=started.date(),
        started_at=started,
        deadline_at=session_deadline(started, question_count=question_count, timer_seconds=10, grace_ms=1500),
        timer_seconds=10,
        answer_grace_ms=1500,
        questions=[
            ServedQuestion(question_id=f"q{index}", text="?", options=["a", "b"], correct_option=0)
            for index in range(question_count)
        ],
        served_at={0: started},
    )


def _answer(state: SessionState, index: int, *, correct: bool, at: datetime) -> RecordedAnswer:
    served_at = state.served_at[index]
    return RecordedAnswer(
        question_index=index,
        question_id=state.questions[index].question_id,
        selected_option=0 if correct else 1,
        is_correct=correct,
        timed_out=False,
        served_at=served_at,
        answered_at=at,
        response_ms=measured_response_ms(served_at, at, timer_seconds=state.timer_seconds),
    )


def test_session_day_key_rolls_over_at_local_reset_hour() -> None:
    before_reset = datetime(2026, 3, 2, 8, 59, tzinfo=UTC)
    after_reset = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)

    assert session_day_key(before_reset, timezone_name="Europe/Berlin", reset_hour=10) == date(2026, 3, 1)
    assert session_day_key(after_reset, timezone_name="Europe/Berlin", reset_hour=10) == date(2026, 3, 2)


def test_daily_cap_depends_on_identity_kind() -> None:
    settings = make_settings(daily_sessions_connected=10, daily_sessions_guest=5)

    assert daily_cap_for(IdentityKind.CONNECTED, settings) == 10
    assert daily_cap_for(IdentityKind.GUEST, settings) == 5


def test_lock_ttl_covers_whole_session_plus_slack() -> None:
    assert lock_ttl_seconds(question_count=10, timer_seconds=10, grace_ms=1500) == 115 + 300


def test_measured_response_is_clamped_to_timer() -> None:
    served_at = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    assert measured_response_ms(served_at, served_at + timedelta(seconds=4), timer_seconds=10) == 4000
    assert measured_response_ms(served_at, served_at + timedelta(seconds=11), timer_seconds=10) == 10000
    assert measured_response_ms(served_at, served_at - timedelta(seconds=1), timer_seconds=10) == 0


def test_resolve_elapsed_timeouts_chains_silent_questions() -> None:
    state = _state()
    started = state.started_at

    timeouts = resolve_elapsed_timeouts(state, started + timedelta(seconds=24))

    assert [item.question_index for item in timeouts] == [0, 1]
    assert all(item.timed_out and item.selected_option is None for item in timeouts)
    assert timeouts[1].served_at == started + timedelta(seconds=11.5)


def test_answer_within_grace_is_not_a_timeout() -> None:
    state = _state()

    assert resolve_elapsed_timeouts(state, state.started_at + timedelta(seconds=11, milliseconds=400)) == []


def test_apply_answer_serves_next_question_at_answer_time() -> None:
    state = _state()
    answered_at = state.started_at + timedelta(seconds=3)

    apply_answer(state, _answer(state, 0, correct=True, at=answered_at))

    assert state.served_at[1] == answered_at
    assert state.next_unanswered_index() == 1


def test_evaluate_session_perfect_win() -> None:
    state = _state()
    moment = state.started_at
    for index in range(3):
        moment += timedelta(seconds=2)
        apply_answer(state, _answer(state, index, correct=True, at=moment))

    outcome = evaluate_session(state, win_threshold=2)

    assert outcome.status == SessionStatus.WON
    assert outcome.is_perfect is True
    assert outcome.score == 3
    assert outcome.avg_response_ms == 2000


def test_evaluate_session_counts_unanswered_as_incorrect() -> None:
    state = _state()
    apply_answer(state, _answer(state, 0, correct=True, at=state.started_at + timedelta(seconds=1)))

    outcome = evaluate_session(state, win_threshold=2)

    assert outcome.status == SessionStatus.LOST
    assert outcome.score == 1
    assert outcome.total == 3
    assert outcome.is_perfect is False


def test_forfeit_is_never_perfect() -> None:
    state = _state(question_count=1)
    apply_answer(state, _answer(state, 0, correct=True, at=state.started_at + timedelta(seconds=1)))

    outcome = evaluate_session(state, win_threshold=1, forfeit=True)

    assert outcome.status == SessionStatus.FORFEIT
    assert outcome.is_perfect is False


def test_is_abandoned_requires_deadline_and_missing_last_answer() -> None:
    state = _state(question_count=1)

    assert is_abandoned(state, state.deadline_at - timedelta(seconds=1)) is False
    assert is_abandoned(state, state.deadline_at) is True

    apply_answer(state, _answer(state, 0, correct=False, at=state.started_at + timedelta(seconds=2)))
    assert is_abandoned(state, state.deadline_at + timedelta(seconds=5)) is False
