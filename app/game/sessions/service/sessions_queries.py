from __future__ import annotations

from app.core.identity import Identity
from app.game.sessions.types import SessionHistoryItem

from . import sessions_durable

HISTORY_MAX_LIMIT = 100


async def get_session_history(
    *,
    identity: Identity,
    limit: int = 20,
    offset: int = 0,
) -> list[SessionHistoryItem]:
    return await sessions_durable.list_history(
        identity_key=identity.key,
        limit=max(1, min(limit, HISTORY_MAX_LIMIT)),
        offset=max(0, offset),
    )
