from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class ForgeOperation(Base):
    __tablename__ = "forge_operations"
    __table_args__ = (
        CheckConstraint(
            "forge_type IN ('CATEGORY','MASTER','SEASONAL')",
            name="ck_forge_operations_type",
        ),
        CheckConstraint(
            "status IN ('PENDING','CONFIRMED','FAILED')",
            name="ck_forge_operations_status",
        ),
        CheckConstraint(
            "failure_kind IS NULL OR failure_kind IN ("
            "'OWNERSHIP_CHANGED','BURN_FAILED','BURN_UNCONFIRMED','PARTIAL_BURNED','WORKFLOW_ERROR')",
            name="ck_forge_operations_failure_kind",
        ),
        CheckConstraint(
            "(status = 'FAILED') = (failure_kind IS NOT NULL)",
            name="ck_forge_operations_failure_consistency",
        ),
        CheckConstraint(
            "failure_kind IS DISTINCT FROM 'PARTIAL_BURNED' OR burn_confirmed_at IS NOT NULL",
            name="ck_forge_operations_partial_has_burn",
        ),
        Index("idx_forge_operations_identity", "identity_key", "created_at"),
        Index("idx_forge_operations_status_updated", "status", "updated_at"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    identity_key: Mapped[str] = mapped_column(String(128), nullable=False)
    forge_type: Mapped[str] = mapped_column(String(16), nullable=False)
    category_code: Mapped[str | None] = mapped_column(String(32), nullable=True)
    season_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    output_tier: Mapped[str] = mapped_column(String(16), nullable=False)
    input_item_ids: Mapped[list[str]] = mapped_column(JSONB, nullable=False)
    input_asset_refs: Mapped[list[str]] = mapped_column(JSONB, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    stage: Mapped[str] = mapped_column(String(32), nullable=False)
    failure_kind: Mapped[str | None] = mapped_column(String(32), nullable=True)
    burn_tx_ref: Mapped[str | None] = mapped_column(String(128), nullable=True)
    burn_confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    mint_tx_ref: Mapped[str | None] = mapped_column(String(128), nullable=True)
    content_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    output_asset_ref: Mapped[str | None] = mapped_column(String(256), nullable=True)
    output_item_id: Mapped[UUID | None] = mapped_column(PG_UUID(as_uuid=True), nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
