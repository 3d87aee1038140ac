from __future__ import annotations

from datetime import datetime, timezone

from app.game.leaderboard.scoring import clamp_page, rank_entries, session_points
from app.game.leaderboard.types import LeaderboardEntry
from tests.game.session_fakes import make_settings

UTC = timezone.utc


def _entry(identity_key: str, **overrides: object) -> LeaderboardEntry:
    values: dict[str, object] = {
        "identity_key": identity_key,
        "points": 10,
        "items_minted": 0,
        "perfect_count": 0,
        "avg_response_ms": 5000.0,
        "sessions_used": 3,
        "first_achieved_at": datetime(2026, 3, 1, 12, 0, tzinfo=UTC),
    }
    values.update(overrides)
    return LeaderboardEntry(**values)  # type: ignore[arg-type]


def test_session_points_adds_perfect_bonus() -> None:
    settings = make_settings(points_per_correct=2, perfect_bonus_points=10)

    assert session_points(correct_answers=7, is_perfect=False, settings=settings) == 14
    assert session_points(correct_answers=10, is_perfect=True, settings=settings) == 30


def test_rank_entries_applies_tie_breaks_in_order() -> None:
    ranked = rank_entries(
        [
            _entry("slow", avg_response_ms=6000.0),
            _entry("minter", items_minted=1),
            _entry("top", points=20),
            _entry("fast", avg_response_ms=4000.0),
            _entry("perfect", perfect_count=2),
        ]
    )

    assert [item.entry.identity_key for item in ranked] == ["top", "minter", "perfect", "fast", "slow"]
    assert [item.rank for item in ranked] == [1, 2, 3, 4, 5]


def test_rank_entries_is_total_for_identical_stats() -> None:
    earlier = datetime(2026, 3, 1, 10, 0, tzinfo=UTC)
    ranked = rank_entries(
        [
            _entry("b"),
            _entry("a"),
            _entry("early", first_achieved_at=earlier),
            _entry("fewer_sessions", sessions_used=1),
        ]
    )

    assert [item.entry.identity_key for item in ranked] == ["fewer_sessions", "early", "a", "b"]


def test_missing_first_achieved_ranks_last_among_equals() -> None:
    ranked = rank_entries([_entry("never", first_achieved_at=None), _entry("some")])

    assert ranked[0].entry.identity_key == "some"


def test_minted_only_entry_without_sessions_ranks_after_measured_players() -> None:
    ranked = rank_entries(
        [
            _entry("minted-only", points=0, items_minted=1, avg_response_ms=None, sessions_used=0, first_achieved_at=None),
            _entry("slow", points=0, items_minted=1, avg_response_ms=9900.0, sessions_used=1, first_achieved_at=None),
        ]
    )

    assert [item.entry.identity_key for item in ranked] == ["slow", "minted-only"]


def test_clamp_page_bounds_limit_and_offset() -> None:
    assert clamp_page(500, -3) == (100, 0)
    assert clamp_page(0, 40) == (1, 40)
