from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID


class EligibilityStatus(str, Enum):
    ACTIVE = "ACTIVE"
    USED = "USED"
    EXPIRED = "EXPIRED"


@dataclass(slots=True)
class Eligibility:
    eligibility_id: UUID
    identity_key: str
    identity_kind: str
    category_code: str
    season_id: str | None
    source_session_id: UUID | None
    status: EligibilityStatus
    window_minutes: int
    created_at: datetime
    expires_at: datetime
    used_at: datetime | None = None
    transferred_from: str | None = None


@dataclass(slots=True)
class TransferResult:
    moved: list[Eligibility]
    left_to_lapse: list[UUID]
    carried_daily_count: int = 0
