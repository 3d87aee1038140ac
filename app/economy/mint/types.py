from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID


class OperationStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"


MINT_STAGES = ("created", "validated", "pinned", "submitted", "awaiting_confirmation", "committed")
COMMIT_CONFLICT = "commit_conflict"


@dataclass(slots=True)
class MintOperationView:
    operation_id: UUID
    eligibility_id: UUID
    identity_key: str
    catalog_item_id: UUID
    status: OperationStatus
    stage: str
    tx_ref: str | None
    asset_ref: str | None
    attempts: int
    last_error: str | None
    created_at: datetime
    updated_at: datetime
    confirmed_at: datetime | None = None
    failed_at: datetime | None = None


@dataclass(slots=True)
class MintInitiation:
    operation: MintOperationView
    created: bool
