from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class SeasonView:
    season_id: str
    name: str
    starts_at: datetime
    ends_at: datetime
    grace_days: int
    is_active: bool
    grace_ends_at: datetime


@dataclass(slots=True)
class RolloverResult:
    archived_season_id: str
    new_season_id: str
    snapshot_entries: int
    carried_entries: int
