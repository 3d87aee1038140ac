from __future__ import annotations

from .sessions_finalize import complete_session, forfeit_session
from .sessions_queries import get_session_history
from .sessions_start import start_session
from .sessions_submit import submit_answer
from .sessions_sweep import sweep_abandoned_sessions


class GameSessionService:
    start_session = staticmethod(start_session)
    submit_answer = staticmethod(submit_answer)
    complete_session = staticmethod(complete_session)
    forfeit_session = staticmethod(forfeit_session)
    sweep_abandoned_sessions = staticmethod(sweep_abandoned_sessions)
    get_session_history = staticmethod(get_session_history)


__all__ = ["GameSessionService"]
