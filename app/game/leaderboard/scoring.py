from __future__ import annotations

import math
from collections.abc import Iterable

from app.core.game_settings import GameSettings
from app.game.leaderboard.types import LeaderboardEntry, RankedEntry

MAX_PAGE_SIZE = 100


def session_points(*, correct_answers: int, is_perfect: bool, settings: GameSettings) -> int:
    points = correct_answers * settings.points_per_correct
    if is_perfect:
        points += settings.perfect_bonus_points
    return points


def ranking_key(entry: LeaderboardEntry) -> tuple[int, int, int, float, int, float, str]:
    """Sort key giving a strict total order: smaller key ranks higher.

    Higher-is-better fields are negated; identity is the final tie-break so no
    two entries compare equal. Entries without a scored session have no
    average and sort after every measured one.
    """
    avg_response = entry.avg_response_ms if entry.avg_response_ms is not None else math.inf
    first_achieved = (
        entry.first_achieved_at.timestamp() if entry.first_achieved_at is not None else math.inf
    )
    return (
        -entry.points,
        -entry.items_minted,
        -entry.perfect_count,
        avg_response,
        entry.sessions_used,
        first_achieved,
        entry.identity_key,
    )


def rank_entries(entries: Iterable[LeaderboardEntry]) -> list[RankedEntry]:
    ordered = sorted(entries, key=ranking_key)
    return [RankedEntry(rank=index + 1, entry=entry) for index, entry in enumerate(ordered)]


def clamp_page(limit: int, offset: int) -> tuple[int, int]:
    return min(max(1, limit), MAX_PAGE_SIZE), max(0, offset)
