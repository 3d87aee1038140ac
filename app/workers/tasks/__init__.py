from app.workers.tasks.eligibility_expiry import run_eligibility_expiry
from app.workers.tasks.seasons import run_leaderboard_snapshot, run_season_rollover
from app.workers.tasks.sessions_maintenance import run_abandoned_session_sweep, run_daily_reset
from app.workers.tasks.workflows import resume_stalled_workflows, run_forge_workflow, run_mint_workflow

__all__ = [
    "run_abandoned_session_sweep",
    "run_daily_reset",
    "run_eligibility_expiry",
    "run_forge_workflow",
    "run_leaderboard_snapshot",
    "run_mint_workflow",
    "run_season_rollover",
    "resume_stalled_workflows",
]
