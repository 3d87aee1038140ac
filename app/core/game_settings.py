from __future__ import annotations

from dataclasses import dataclass

from app.core.config import Settings, get_settings


@dataclass(frozen=True, slots=True)
class GameSettings:
    """Read-only snapshot of game tunables.

    Operations take one snapshot up front; values that must never change
    retroactively (eligibility windows, per-question timer) are copied into
    the rows or transient state they govern.
    """

    questions_per_session: int
    question_timer_seconds: int
    answer_grace_ms: int
    win_threshold: int
    session_cooldown_seconds: int
    daily_sessions_connected: int
    daily_sessions_guest: int
    daily_reset_timezone: str
    daily_reset_hour: int
    eligibility_window_connected_minutes: int
    eligibility_window_guest_minutes: int
    guest_transfer_window_minutes: int
    forge_category_count: int
    forge_master_category_count: int
    forge_seasonal_per_category: int
    points_per_correct: int
    perfect_bonus_points: int
    season_length_days: int
    season_grace_days: int
    season_carryover_percent: int

    @classmethod
    def from_settings(cls, settings: Settings) -> GameSettings:
        return cls(
            questions_per_session=settings.questions_per_session,
            question_timer_seconds=settings.question_timer_seconds,
            answer_grace_ms=settings.answer_grace_ms,
            win_threshold=settings.win_threshold,
            session_cooldown_seconds=settings.session_cooldown_seconds,
            daily_sessions_connected=settings.daily_sessions_connected,
            daily_sessions_guest=settings.daily_sessions_guest,
            daily_reset_timezone=settings.daily_reset_timezone,
            daily_reset_hour=settings.daily_reset_hour,
            eligibility_window_connected_minutes=settings.eligibility_window_connected_minutes,
            eligibility_window_guest_minutes=settings.eligibility_window_guest_minutes,
            guest_transfer_window_minutes=settings.guest_transfer_window_minutes,
            forge_category_count=settings.forge_category_count,
            forge_master_category_count=settings.forge_master_category_count,
            forge_seasonal_per_category=settings.forge_seasonal_per_category,
            points_per_correct=settings.points_per_correct,
            perfect_bonus_points=settings.perfect_bonus_points,
            season_length_days=settings.season_length_days,
            season_grace_days=settings.season_grace_days,
            season_carryover_percent=settings.season_carryover_percent,
        )


def get_game_settings() -> GameSettings:
    return GameSettings.from_settings(get_settings())
