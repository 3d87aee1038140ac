from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID


class ForgeType(str, Enum):
    CATEGORY = "CATEGORY"
    MASTER = "MASTER"
    SEASONAL = "SEASONAL"


class ItemTier(str, Enum):
    CATEGORY = "CATEGORY"
    ULTIMATE = "ULTIMATE"
    MASTER = "MASTER"
    SEASONAL = "SEASONAL"


class ForgeFailureKind(str, Enum):
    OWNERSHIP_CHANGED = "OWNERSHIP_CHANGED"
    BURN_FAILED = "BURN_FAILED"
    BURN_UNCONFIRMED = "BURN_UNCONFIRMED"
    PARTIAL_BURNED = "PARTIAL_BURNED"
    WORKFLOW_ERROR = "WORKFLOW_ERROR"


# Inputs stay locked: the burn may have landed on chain.
INPUT_LOCKING_FAILURES = frozenset({ForgeFailureKind.BURN_UNCONFIRMED, ForgeFailureKind.PARTIAL_BURNED})


OUTPUT_TIER_BY_FORGE_TYPE = {
    ForgeType.CATEGORY: ItemTier.ULTIMATE,
    ForgeType.MASTER: ItemTier.MASTER,
    ForgeType.SEASONAL: ItemTier.SEASONAL,
}

FORGE_STAGES = (
    "created",
    "ownership_verified",
    "burn_submitted",
    "burn_confirmed",
    "pinned",
    "mint_submitted",
    "committed",
)
BURN_SUBMITTED_STAGE = "burn_submitted"
BURN_CONFIRMED_STAGES = frozenset({"burn_confirmed", "pinned", "mint_submitted", "committed"})


@dataclass(slots=True)
class OwnedItemSnapshot:
    item_id: UUID
    asset_ref: str
    tier: ItemTier
    category_code: str | None
    season_id: str | None
    acquired_at: datetime


@dataclass(slots=True)
class ForgeReadiness:
    forge_type: ForgeType
    ready: bool
    required: int
    have: int
    category_code: str | None = None
    season_id: str | None = None
    input_item_ids: list[UUID] = field(default_factory=list)


@dataclass(slots=True)
class ForgeProgress:
    identity_key: str
    category_counts: dict[str, int]
    category: list[ForgeReadiness]
    master: ForgeReadiness
    seasonal: ForgeReadiness | None
    seasonal_window_open: bool


@dataclass(slots=True)
class ForgeOperationView:
    operation_id: UUID
    identity_key: str
    forge_type: ForgeType
    category_code: str | None
    season_id: str | None
    output_tier: ItemTier
    input_item_ids: list[UUID]
    status: str
    stage: str
    failure_kind: ForgeFailureKind | None
    burn_tx_ref: str | None
    mint_tx_ref: str | None
    output_item_id: UUID | None
    last_error: str | None
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None
