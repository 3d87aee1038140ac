from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class LeaderboardEntry:
    identity_key: str
    points: int
    items_minted: int
    perfect_count: int
    avg_response_ms: float | None
    sessions_used: int
    first_achieved_at: datetime | None


@dataclass(slots=True)
class RankedEntry:
    rank: int
    entry: LeaderboardEntry


@dataclass(slots=True)
class LeaderboardPage:
    season_id: str
    source: str
    limit: int
    offset: int
    entries: list[RankedEntry]
    category_code: str | None = None
