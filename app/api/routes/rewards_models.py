from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class EligibilityResponse(BaseModel):
    eligibility_id: UUID
    category_code: str
    season_id: str | None = None
    status: str
    window_minutes: int
    created_at: datetime
    expires_at: datetime
    used_at: datetime | None = None
    transferred_from: str | None = None


class EligibilityListResponse(BaseModel):
    items: list[EligibilityResponse]


class LinkWalletRequest(BaseModel):
    wallet_address: str = Field(min_length=1, max_length=128)


class LinkWalletResponse(BaseModel):
    wallet_address: str
    moved: list[EligibilityResponse]
    left_to_lapse: list[UUID]
    carried_daily_count: int = Field(ge=0)


class CatalogItemResponse(BaseModel):
    item_id: UUID
    category_code: str
    name: str
    description: str
    image_uri: str
    attributes: dict[str, object]


class CatalogPreviewResponse(BaseModel):
    eligibility_id: UUID
    item: CatalogItemResponse
    stock_remaining: int = Field(ge=0)


class MintOperationResponse(BaseModel):
    operation_id: UUID
    eligibility_id: UUID
    catalog_item_id: UUID
    status: str
    stage: str
    tx_ref: str | None = None
    asset_ref: str | None = None
    attempts: int = Field(ge=0)
    last_error: str | None = None
    created_at: datetime
    updated_at: datetime
    confirmed_at: datetime | None = None
    failed_at: datetime | None = None


class InitiateForgeRequest(BaseModel):
    forge_type: str = Field(pattern="^(CATEGORY|MASTER|SEASONAL)$")
    category_code: str | None = Field(default=None, min_length=1, max_length=32)
    season_id: str | None = Field(default=None, min_length=1, max_length=32)


class ForgeReadinessResponse(BaseModel):
    forge_type: str
    ready: bool
    required: int
    have: int
    category_code: str | None = None
    season_id: str | None = None


class ForgeProgressResponse(BaseModel):
    category_counts: dict[str, int]
    category: list[ForgeReadinessResponse]
    master: ForgeReadinessResponse
    seasonal: ForgeReadinessResponse | None = None
    seasonal_window_open: bool


class ForgeOperationResponse(BaseModel):
    operation_id: UUID
    forge_type: str
    category_code: str | None = None
    season_id: str | None = None
    output_tier: str
    input_item_ids: list[UUID]
    status: str
    stage: str
    failure_kind: str | None = None
    burn_tx_ref: str | None = None
    mint_tx_ref: str | None = None
    output_item_id: UUID | None = None
    last_error: str | None = None
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None


class LeaderboardEntryResponse(BaseModel):
    rank: int = Field(ge=1)
    identity_key: str
    points: int
    items_minted: int
    perfect_count: int
    avg_response_ms: float | None = None
    sessions_used: int


class LeaderboardResponse(BaseModel):
    season_id: str
    source: str
    limit: int
    offset: int
    entries: list[LeaderboardEntryResponse]
    me: LeaderboardEntryResponse | None = None


class CategoryLeaderboardResponse(BaseModel):
    season_id: str
    category_code: str
    limit: int
    offset: int
    entries: list[LeaderboardEntryResponse]


class SeasonResponse(BaseModel):
    season_id: str
    name: str
    starts_at: datetime
    ends_at: datetime
    grace_ends_at: datetime
    is_active: bool
    in_grace: bool
    seasonal_forge_open: bool
