from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone

import pytest

from app.core.identity import Identity, IdentityKind
from app.game.sessions.errors import (
    AlreadyActiveError,
    DailyLimitReachedError,
    InvalidAnswerOptionError,
    InvalidQuestionIndexError,
    NotEnoughQuestionsError,
    OnCooldownError,
    SessionAlreadyFinalizedError,
    SessionBusyError,
    SessionNotFoundError,
)
from app.game.sessions.service import GameSessionService, sessions_durable, sessions_state
from app.game.sessions.service.sessions_state import SESSION_TRANSACTION_TIMEOUT_SECONDS
from app.game.sessions.state_store import answer_mutex_key
from app.game.sessions.types import SessionStatus
from tests.game.session_fakes import (
    FakeDurable,
    FakeRateLockStore,
    FakeSessionStateStore,
    install_fake_durable,
    make_questions,
    make_settings,
    seconds_after,
)

UTC = timezone.utc
START = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)
GUEST = Identity(key="guest-1", kind=IdentityKind.GUEST)


@pytest.fixture
def durable(monkeypatch: pytest.MonkeyPatch) -> FakeDurable:
    return install_fake_durable(monkeypatch, FakeDurable(make_questions(6)))


@pytest.fixture
def lock_store() -> FakeRateLockStore:
    return FakeRateLockStore()


@pytest.fixture
def state_store() -> FakeSessionStateStore:
    return FakeSessionStateStore()


async def _start(lock_store, state_store, *, identity=GUEST, now_utc=START, **settings_overrides):  # noqa: ANN001
    return await GameSessionService.start_session(
        lock_store=lock_store,
        state_store=state_store,
        identity=identity,
        category_code="science",
        now_utc=now_utc,
        settings=make_settings(**settings_overrides),
    )


async def _answer(lock_store, state_store, session_id, index, option, seconds, identity=GUEST):  # noqa: ANN001
    return await GameSessionService.submit_answer(
        lock_store=lock_store,
        state_store=state_store,
        identity=identity,
        session_id=session_id,
        question_index=index,
        selected_option=option,
        elapsed_ms=None,
        now_utc=seconds_after(START, seconds),
        settings=make_settings(),
    )


@pytest.mark.asyncio
async def test_start_session_admits_and_tracks_deadline(durable, lock_store, state_store) -> None:
    started = await _start(lock_store, state_store)

    assert started.daily_count == 1
    assert started.daily_cap == 5
    assert [question.question_index for question in started.questions] == [0, 1, 2]
    assert lock_store.locks[GUEST.key] == str(started.session_id)
    assert state_store.deadlines[started.session_id] == seconds_after(START, 34.5)
    assert lock_store.seen[(GUEST.key, "science", date(2026, 3, 2))] == {"q_000", "q_001", "q_002"}


@pytest.mark.asyncio
async def test_start_session_rejects_second_active_session(durable, lock_store, state_store) -> None:
    started = await _start(lock_store, state_store)

    with pytest.raises(AlreadyActiveError) as exc_info:
        await _start(lock_store, state_store)

    assert exc_info.value.active_session_id == str(started.session_id)


@pytest.mark.asyncio
async def test_start_session_rejects_over_daily_cap(durable, lock_store, state_store) -> None:
    lock_store.daily[(GUEST.key, date(2026, 3, 2))] = 5

    with pytest.raises(DailyLimitReachedError) as exc_info:
        await _start(lock_store, state_store)

    assert exc_info.value.daily_cap == 5


@pytest.mark.asyncio
async def test_next_session_waits_for_cooldown(durable, lock_store, state_store) -> None:
    started = await _start(lock_store, state_store)
    await GameSessionService.forfeit_session(
        lock_store=lock_store,
        state_store=state_store,
        identity=GUEST,
        session_id=started.session_id,
        now_utc=seconds_after(START, 5),
        settings=make_settings(),
    )

    with pytest.raises(OnCooldownError) as exc_info:
        await _start(lock_store, state_store, now_utc=seconds_after(START, 6))

    assert exc_info.value.retry_after_seconds == 60


@pytest.mark.asyncio
async def test_start_failure_gives_back_admission(durable, lock_store, state_store) -> None:
    durable.questions = make_questions(2)

    with pytest.raises(NotEnoughQuestionsError):
        await _start(lock_store, state_store)

    assert lock_store.locks == {}
    assert lock_store.daily[(GUEST.key, date(2026, 3, 2))] == 0
    assert state_store.states == {}


@pytest.mark.asyncio
async def test_submit_answer_scores_and_replays(durable, lock_store, state_store) -> None:
    started = await _start(lock_store, state_store)

    first = await _answer(lock_store, state_store, started.session_id, 0, 0, 2)
    replay = await _answer(lock_store, state_store, started.session_id, 0, 3, 4)

    assert first.is_correct is True
    assert first.score == 1
    assert first.idempotent_replay is False
    assert replay.is_correct is True
    assert replay.idempotent_replay is True
    assert durable.persisted == [(started.session_id, 0, False)]


@pytest.mark.asyncio
async def test_submit_answer_records_missed_question_as_timeout(durable, lock_store, state_store) -> None:
    started = await _start(lock_store, state_store)

    result = await _answer(lock_store, state_store, started.session_id, 1, 1, 12)

    state = state_store.states[started.session_id]
    assert result.is_correct is True
    assert result.answered_count == 2
    assert state.answers[0].timed_out is True
    assert state.answers[1].response_ms == 500
    assert durable.persisted == [(started.session_id, 0, True), (started.session_id, 1, False)]


@pytest.mark.asyncio
async def test_submit_answer_validates_index_and_option(durable, lock_store, state_store) -> None:
    started = await _start(lock_store, state_store)

    with pytest.raises(InvalidQuestionIndexError):
        await _answer(lock_store, state_store, started.session_id, 5, 0, 1)
    with pytest.raises(InvalidQuestionIndexError):
        await _answer(lock_store, state_store, started.session_id, 2, 0, 1)
    with pytest.raises(InvalidAnswerOptionError):
        await _answer(lock_store, state_store, started.session_id, 0, 7, 1)


@pytest.mark.asyncio
async def test_submit_answer_hides_foreign_sessions(durable, lock_store, state_store) -> None:
    started = await _start(lock_store, state_store)
    stranger = Identity(key="guest-2", kind=IdentityKind.GUEST)

    with pytest.raises(SessionNotFoundError):
        await _answer(lock_store, state_store, started.session_id, 0, 0, 1, identity=stranger)


@pytest.mark.asyncio
async def test_submit_answer_rejects_concurrent_mutation(durable, lock_store, state_store) -> None:
    started = await _start(lock_store, state_store)
    lock_store.busy_mutexes.add(answer_mutex_key(started.session_id))

    with pytest.raises(SessionBusyError):
        await _answer(lock_store, state_store, started.session_id, 0, 0, 1)


@pytest.mark.asyncio
async def test_session_mutex_outlives_bounded_transactions(durable, lock_store, state_store) -> None:
    started = await _start(lock_store, state_store)

    await _answer(lock_store, state_store, started.session_id, 0, 0, 1)

    ttl_ms = lock_store.mutex_ttls[answer_mutex_key(started.session_id)]
    assert ttl_ms > 2 * SESSION_TRANSACTION_TIMEOUT_SECONDS * 1000
    assert answer_mutex_key(started.session_id) not in lock_store.mutexes


@pytest.mark.asyncio
async def test_stalled_terminal_commit_is_cut_off_and_frees_mutex(
    monkeypatch: pytest.MonkeyPatch,
    durable,
    lock_store,
    state_store,
) -> None:
    started = await _start(lock_store, state_store)

    async def _stalled_commit(state, outcome, *, now_utc, settings):  # noqa: ANN001
        await asyncio.Event().wait()

    monkeypatch.setattr(sessions_state, "SESSION_TRANSACTION_TIMEOUT_SECONDS", 0.01)
    monkeypatch.setattr(sessions_durable, "commit_terminal", _stalled_commit)

    with pytest.raises(asyncio.TimeoutError):
        await GameSessionService.forfeit_session(
            lock_store=lock_store,
            state_store=state_store,
            identity=GUEST,
            session_id=started.session_id,
            now_utc=seconds_after(START, 2),
            settings=make_settings(),
        )

    assert answer_mutex_key(started.session_id) not in lock_store.mutexes
    assert lock_store.locks[GUEST.key] == str(started.session_id)
    assert started.session_id in state_store.states


@pytest.mark.asyncio
async def test_complete_session_wins_once_and_replays(durable, lock_store, state_store) -> None:
    started = await _start(lock_store, state_store)
    await _answer(lock_store, state_store, started.session_id, 0, 0, 1)
    await _answer(lock_store, state_store, started.session_id, 1, 1, 2)
    await _answer(lock_store, state_store, started.session_id, 2, 3, 3)

    result = await GameSessionService.complete_session(
        lock_store=lock_store,
        state_store=state_store,
        identity=GUEST,
        session_id=started.session_id,
        now_utc=seconds_after(START, 3),
        settings=make_settings(),
    )
    replay = await GameSessionService.complete_session(
        lock_store=lock_store,
        state_store=state_store,
        identity=GUEST,
        session_id=started.session_id,
        now_utc=seconds_after(START, 4),
        settings=make_settings(),
    )

    assert result.status == SessionStatus.WON
    assert result.score == 2
    assert result.total == 3
    assert result.is_perfect is False
    assert result.eligibility_id is None
    assert replay.idempotent_replay is True
    assert replay.eligibility_id == result.eligibility_id
    assert len(durable.committed) == 1
    assert lock_store.released == [(GUEST.key, str(started.session_id), 60)]
    assert started.session_id not in state_store.states

    with pytest.raises(SessionAlreadyFinalizedError):
        await _answer(lock_store, state_store, started.session_id, 2, 2, 5)


@pytest.mark.asyncio
async def test_perfect_session_earns_eligibility(durable, lock_store, state_store) -> None:
    started = await _start(lock_store, state_store)
    for index in range(3):
        await _answer(lock_store, state_store, started.session_id, index, index, index + 1)

    result = await GameSessionService.complete_session(
        lock_store=lock_store,
        state_store=state_store,
        identity=GUEST,
        session_id=started.session_id,
        now_utc=seconds_after(START, 4),
        settings=make_settings(),
    )

    assert result.is_perfect is True
    assert result.eligibility_id is not None


@pytest.mark.asyncio
async def test_forfeit_session_is_never_perfect(durable, lock_store, state_store) -> None:
    started = await _start(lock_store, state_store)
    for index in range(3):
        await _answer(lock_store, state_store, started.session_id, index, index, index + 1)

    result = await GameSessionService.forfeit_session(
        lock_store=lock_store,
        state_store=state_store,
        identity=GUEST,
        session_id=started.session_id,
        now_utc=seconds_after(START, 4),
        settings=make_settings(),
    )

    assert result.status == SessionStatus.FORFEIT
    assert result.score == 3
    assert result.is_perfect is False
    assert result.eligibility_id is None


@pytest.mark.asyncio
async def test_sweep_forfeits_abandoned_and_completes_finished(durable, lock_store, state_store) -> None:
    other = Identity(key="wallet-1", kind=IdentityKind.CONNECTED)
    silent = await _start(lock_store, state_store)
    finished = await _start(lock_store, state_store, identity=other)
    for index in range(3):
        await _answer(lock_store, state_store, finished.session_id, index, index, index + 1, identity=other)

    summary = await GameSessionService.sweep_abandoned_sessions(
        lock_store=lock_store,
        state_store=state_store,
        now_utc=seconds_after(START, 40),
        settings=make_settings(),
    )

    statuses = {result.session_id: result.status for result in durable.committed}
    assert summary["due_total"] == 2
    assert summary["forfeited_total"] == 1
    assert summary["completed_total"] == 1
    assert statuses[silent.session_id] == SessionStatus.FORFEIT
    assert statuses[finished.session_id] == SessionStatus.WON
    assert state_store.deadlines == {}
    assert lock_store.locks == {}


@pytest.mark.asyncio
async def test_session_history_clamps_paging(durable) -> None:
    await GameSessionService.get_session_history(identity=GUEST, limit=1000, offset=-4)

    assert durable.history_calls == [{"identity_key": GUEST.key, "limit": 100, "offset": 0}]
