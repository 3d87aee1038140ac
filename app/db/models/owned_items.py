from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, String, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class OwnedItem(Base):
    __tablename__ = "owned_items"
    __table_args__ = (
        CheckConstraint(
            "tier IN ('CATEGORY','ULTIMATE','MASTER','SEASONAL')",
            name="ck_owned_items_tier",
        ),
        CheckConstraint(
            "provenance IN ('MINTED','FORGED')",
            name="ck_owned_items_provenance",
        ),
        CheckConstraint(
            "is_burned = (burned_at IS NOT NULL)",
            name="ck_owned_items_burned_consistency",
        ),
        Index("idx_owned_items_identity", "identity_key", "is_burned"),
        Index("idx_owned_items_locked_by_forge", "locked_by_forge_id"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    identity_key: Mapped[str] = mapped_column(String(128), nullable=False)
    asset_ref: Mapped[str] = mapped_column(String(256), unique=True, nullable=False)
    category_code: Mapped[str | None] = mapped_column(String(32), nullable=True)
    season_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    tier: Mapped[str] = mapped_column(String(16), nullable=False)
    provenance: Mapped[str] = mapped_column(String(16), nullable=False)
    catalog_item_id: Mapped[UUID | None] = mapped_column(PG_UUID(as_uuid=True), nullable=True)
    mint_operation_id: Mapped[UUID | None] = mapped_column(PG_UUID(as_uuid=True), nullable=True)
    forge_operation_id: Mapped[UUID | None] = mapped_column(PG_UUID(as_uuid=True), nullable=True)
    locked_by_forge_id: Mapped[UUID | None] = mapped_column(PG_UUID(as_uuid=True), nullable=True)
    is_burned: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    burned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    transferred_out_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    acquired_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
