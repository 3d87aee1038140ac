from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class MintEligibility(Base):
    __tablename__ = "mint_eligibilities"
    __table_args__ = (
        CheckConstraint(
            "status IN ('ACTIVE','USED','EXPIRED')",
            name="ck_mint_eligibilities_status",
        ),
        CheckConstraint(
            "identity_kind IN ('GUEST','CONNECTED')",
            name="ck_mint_eligibilities_identity_kind",
        ),
        CheckConstraint("expires_at > created_at", name="ck_mint_eligibilities_expiry_after_create"),
        CheckConstraint(
            "(status = 'USED') = (used_at IS NOT NULL)",
            name="ck_mint_eligibilities_used_consistency",
        ),
        Index("idx_mint_eligibilities_identity_status", "identity_key", "status"),
        Index("idx_mint_eligibilities_status_expires", "status", "expires_at"),
        Index(
            "uq_mint_eligibilities_active_per_category",
            "identity_key",
            "category_code",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
        ),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    identity_key: Mapped[str] = mapped_column(String(128), nullable=False)
    identity_kind: Mapped[str] = mapped_column(String(16), nullable=False)
    category_code: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("quiz_categories.code"),
        nullable=False,
    )
    season_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    source_session_id: Mapped[UUID | None] = mapped_column(PG_UUID(as_uuid=True), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    window_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expired_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    transferred_from: Mapped[str | None] = mapped_column(String(128), nullable=True)
    transferred_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
