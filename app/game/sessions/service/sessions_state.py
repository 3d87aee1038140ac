from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from typing import TypeVar
from uuid import UUID, uuid4

import structlog

from app.core.identity import Identity
from app.core.rate_lock_store import RateLockStore
from app.game.sessions.errors import SessionBusyError, SessionNotFoundError
from app.game.sessions.rules import lock_ttl_seconds
from app.game.sessions.state_store import SessionStateStore, answer_mutex_key
from app.game.sessions.types import SessionState

from . import sessions_durable

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Each DB transaction taken while holding the session mutex is cut off here.
SESSION_TRANSACTION_TIMEOUT_SECONDS = 10.0
# One hold spans at most two such transactions: a snapshot rebuild, then the write.
SESSION_MUTEX_TTL_MS = int((2 * SESSION_TRANSACTION_TIMEOUT_SECONDS + 5) * 1000)


async def within_transaction_timeout(awaitable: Awaitable[T]) -> T:
    return await asyncio.wait_for(awaitable, timeout=SESSION_TRANSACTION_TIMEOUT_SECONDS)


@asynccontextmanager
async def session_mutex(lock_store: RateLockStore, session_id: UUID) -> AsyncIterator[None]:
    name = answer_mutex_key(session_id)
    token = uuid4().hex
    if not await lock_store.acquire_mutex(name, token=token, ttl_ms=SESSION_MUTEX_TTL_MS):
        raise SessionBusyError
    try:
        yield
    finally:
        if not await lock_store.release_mutex(name, token=token):
            logger.warning("session_mutex_lapsed", session_id=str(session_id), ttl_ms=SESSION_MUTEX_TTL_MS)


async def load_session_state(
    state_store: SessionStateStore,
    *,
    session_id: UUID,
    answer_grace_ms: int,
) -> SessionState | None:
    state = await state_store.load(session_id)
    if state is not None:
        return state

    state = await within_transaction_timeout(
        sessions_durable.load_active_snapshot(session_id, answer_grace_ms=answer_grace_ms)
    )
    if state is None:
        return None
    await state_store.save(
        state,
        ttl_seconds=lock_ttl_seconds(
            question_count=state.question_count,
            timer_seconds=state.timer_seconds,
            grace_ms=state.answer_grace_ms,
        ),
    )
    await state_store.track(state.session_id, deadline_at=state.deadline_at)
    logger.warning("session_state_rebuilt", session_id=str(session_id), answered=len(state.answers))
    return state


def ensure_owner(state: SessionState | None, identity: Identity) -> SessionState:
    if state is None or state.identity_key != identity.key:
        raise SessionNotFoundError
    return state
