from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class MintOperation(Base):
    __tablename__ = "mint_operations"
    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING','CONFIRMED','FAILED')",
            name="ck_mint_operations_status",
        ),
        Index("idx_mint_operations_identity", "identity_key", "created_at"),
        Index("idx_mint_operations_status_updated", "status", "updated_at"),
        Index(
            "uq_mint_operations_live_per_eligibility",
            "eligibility_id",
            unique=True,
            postgresql_where=text("status IN ('PENDING','CONFIRMED')"),
        ),
        Index(
            "uq_mint_operations_pending_per_catalog_item",
            "catalog_item_id",
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
        ),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    eligibility_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("mint_eligibilities.id"),
        nullable=False,
    )
    identity_key: Mapped[str] = mapped_column(String(128), nullable=False)
    catalog_item_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("catalog_items.id"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    stage: Mapped[str] = mapped_column(String(32), nullable=False)
    content_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    tx_ref: Mapped[str | None] = mapped_column(String(128), nullable=True)
    asset_ref: Mapped[str | None] = mapped_column(String(256), nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
