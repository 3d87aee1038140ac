from __future__ import annotations

from datetime import datetime

import structlog

from app.core.game_settings import GameSettings, get_game_settings
from app.core.rate_lock_store import RateLockStore
from app.game.sessions.errors import SessionBusyError, SessionNotFoundError
from app.game.sessions.state_store import SessionStateStore
from app.game.sessions.types import SessionStatus

from .sessions_finalize import finalize_session

logger = structlog.get_logger(__name__)


async def sweep_abandoned_sessions(
    *,
    lock_store: RateLockStore,
    state_store: SessionStateStore,
    now_utc: datetime,
    limit: int = 200,
    settings: GameSettings | None = None,
) -> dict[str, int]:
    settings = settings or get_game_settings()
    due_ids = await state_store.due_session_ids(now_utc, limit=limit)
    result = {
        "due_total": len(due_ids),
        "completed_total": 0,
        "forfeited_total": 0,
        "busy_total": 0,
        "missing_total": 0,
        "failed_total": 0,
    }
    for session_id in due_ids:
        try:
            outcome = await finalize_session(
                lock_store=lock_store,
                state_store=state_store,
                identity_key=None,
                session_id=session_id,
                forfeit=None,
                now_utc=now_utc,
                settings=settings,
            )
        except SessionBusyError:
            result["busy_total"] += 1
            continue
        except SessionNotFoundError:
            await state_store.delete(session_id)
            result["missing_total"] += 1
            continue
        except Exception:
            result["failed_total"] += 1
            logger.exception("abandoned_session_sweep_failed", session_id=str(session_id))
            continue

        if outcome.status == SessionStatus.FORFEIT:
            result["forfeited_total"] += 1
        else:
            result["completed_total"] += 1

    if result["due_total"]:
        logger.info("abandoned_sessions_swept", **result)
    return result
