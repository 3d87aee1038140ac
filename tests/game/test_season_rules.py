from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from app.game.seasons.rules import (
    carryover_points,
    grace_ends_at,
    has_ended,
    is_season_open,
    is_within_grace,
    next_season_window,
    season_identifier,
    seasonal_forge_window_open,
)

UTC = timezone.utc


def _season(**overrides: object) -> SimpleNamespace:
    values: dict[str, object] = {
        "starts_at": datetime(2026, 1, 1, tzinfo=UTC),
        "ends_at": datetime(2026, 4, 1, tzinfo=UTC),
        "grace_days": 7,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def test_season_open_window_is_half_open() -> None:
    season = _season()

    assert is_season_open(season, season.starts_at) is True
    assert is_season_open(season, season.ends_at - timedelta(seconds=1)) is True
    assert is_season_open(season, season.ends_at) is False
    assert has_ended(season, season.ends_at) is True


def test_seasonal_forge_stays_open_through_grace() -> None:
    season = _season()

    assert grace_ends_at(season) == datetime(2026, 4, 8, tzinfo=UTC)
    assert is_within_grace(season, datetime(2026, 4, 5, tzinfo=UTC)) is True
    assert seasonal_forge_window_open(season, datetime(2026, 4, 8, tzinfo=UTC)) is True
    assert seasonal_forge_window_open(season, datetime(2026, 4, 8, 0, 0, 1, tzinfo=UTC)) is False


def test_next_season_starts_where_previous_ended() -> None:
    starts_at, ends_at = next_season_window(datetime(2026, 4, 1, tzinfo=UTC), length_days=90)

    assert starts_at == datetime(2026, 4, 1, tzinfo=UTC)
    assert ends_at == datetime(2026, 6, 30, tzinfo=UTC)
    assert season_identifier(starts_at) == "S20260401"


def test_carryover_points_is_percentage_and_capped() -> None:
    assert carryover_points(250, carryover_percent=0) == 0
    assert carryover_points(250, carryover_percent=10) == 25
    assert carryover_points(250, carryover_percent=150) == 250
    assert carryover_points(-5, carryover_percent=50) == 0
