from __future__ import annotations

from datetime import datetime
from uuid import UUID

import structlog

from app.core.game_settings import GameSettings, get_game_settings
from app.core.identity import Identity
from app.core.rate_lock_store import RateLockStore
from app.game.sessions.errors import SessionNotFoundError
from app.game.sessions.rules import apply_answer, evaluate_session, is_abandoned, resolve_elapsed_timeouts
from app.game.sessions.state_store import SessionStateStore
from app.game.sessions.types import SessionResult

from . import sessions_durable
from .sessions_state import load_session_state, session_mutex, within_transaction_timeout

logger = structlog.get_logger(__name__)


async def finalize_session(
    *,
    lock_store: RateLockStore,
    state_store: SessionStateStore,
    identity_key: str | None,
    session_id: UUID,
    forfeit: bool | None,
    now_utc: datetime,
    settings: GameSettings,
) -> SessionResult:
    """Completes or forfeits a session exactly once.

    `identity_key=None` skips the owner check (maintenance sweep). `forfeit=None`
    lets abandonment decide: a session whose last question got no client
    answer is forfeited, otherwise it is completed.
    """
    async with session_mutex(lock_store, session_id):
        state = await load_session_state(
            state_store,
            session_id=session_id,
            answer_grace_ms=settings.answer_grace_ms,
        )
        if state is None:
            terminal = await within_transaction_timeout(sessions_durable.get_terminal_result(session_id))
            if terminal is None or (identity_key is not None and terminal.identity_key != identity_key):
                raise SessionNotFoundError
            await state_store.delete(session_id)
            return terminal
        if identity_key is not None and state.identity_key != identity_key:
            raise SessionNotFoundError

        if forfeit is not True:
            for timeout in resolve_elapsed_timeouts(state, now_utc):
                apply_answer(state, timeout)
        if forfeit is None:
            forfeit = is_abandoned(state, now_utc)

        outcome = evaluate_session(state, win_threshold=settings.win_threshold, forfeit=forfeit)
        result = await within_transaction_timeout(
            sessions_durable.commit_terminal(state, outcome, now_utc=now_utc, settings=settings)
        )

        await lock_store.release_session(
            state.identity_key,
            session_id=str(session_id),
            cooldown_seconds=settings.session_cooldown_seconds,
            now_utc=now_utc,
        )
        await state_store.delete(session_id)

    logger.info(
        "session_finalized",
        session_id=str(session_id),
        identity_key=result.identity_key,
        status=result.status.value,
        score=result.score,
        total=result.total,
        is_perfect=result.is_perfect,
        eligibility_id=str(result.eligibility_id) if result.eligibility_id is not None else None,
        idempotent_replay=result.idempotent_replay,
    )
    return result


async def complete_session(
    *,
    lock_store: RateLockStore,
    state_store: SessionStateStore,
    identity: Identity,
    session_id: UUID,
    now_utc: datetime,
    settings: GameSettings | None = None,
) -> SessionResult:
    return await finalize_session(
        lock_store=lock_store,
        state_store=state_store,
        identity_key=identity.key,
        session_id=session_id,
        forfeit=False,
        now_utc=now_utc,
        settings=settings or get_game_settings(),
    )


async def forfeit_session(
    *,
    lock_store: RateLockStore,
    state_store: SessionStateStore,
    identity: Identity,
    session_id: UUID,
    now_utc: datetime,
    settings: GameSettings | None = None,
) -> SessionResult:
    return await finalize_session(
        lock_store=lock_store,
        state_store=state_store,
        identity_key=identity.key,
        session_id=session_id,
        forfeit=True,
        now_utc=now_utc,
        settings=settings or get_game_settings(),
    )
