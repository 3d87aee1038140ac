from __future__ import annotations

from datetime import datetime, timedelta
from typing import Protocol


class SeasonWindow(Protocol):
    starts_at: datetime
    ends_at: datetime
    grace_days: int


def grace_ends_at(season: SeasonWindow) -> datetime:
    return season.ends_at + timedelta(days=season.grace_days)


def is_season_open(season: SeasonWindow, now_utc: datetime) -> bool:
    return season.starts_at <= now_utc < season.ends_at


def is_within_grace(season: SeasonWindow, now_utc: datetime) -> bool:
    return season.ends_at <= now_utc <= grace_ends_at(season)


def seasonal_forge_window_open(season: SeasonWindow, now_utc: datetime) -> bool:
    return is_season_open(season, now_utc) or is_within_grace(season, now_utc)


def has_ended(season: SeasonWindow, now_utc: datetime) -> bool:
    return now_utc >= season.ends_at


def next_season_window(previous_ends_at: datetime, *, length_days: int) -> tuple[datetime, datetime]:
    return previous_ends_at, previous_ends_at + timedelta(days=length_days)


def season_identifier(starts_at: datetime) -> str:
    return f"S{starts_at:%Y%m%d}"


def season_display_name(starts_at: datetime) -> str:
    return f"Season {starts_at:%Y-%m-%d}"


def carryover_points(points: int, *, carryover_percent: int) -> int:
    if carryover_percent <= 0 or points <= 0:
        return 0
    return points * min(carryover_percent, 100) // 100
