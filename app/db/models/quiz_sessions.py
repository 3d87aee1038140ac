from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class QuizSession(Base):
    __tablename__ = "quiz_sessions"
    __table_args__ = (
        CheckConstraint(
            "status IN ('ACTIVE','WON','LOST','FORFEIT')",
            name="ck_quiz_sessions_status",
        ),
        CheckConstraint(
            "identity_kind IN ('GUEST','CONNECTED')",
            name="ck_quiz_sessions_identity_kind",
        ),
        CheckConstraint("score >= 0 AND score <= question_count", name="ck_quiz_sessions_score_range"),
        CheckConstraint(
            "(status = 'ACTIVE') = (completed_at IS NULL)",
            name="ck_quiz_sessions_terminal_consistency",
        ),
        Index("idx_sessions_identity_started", "identity_key", "started_at"),
        Index("idx_sessions_category", "category_code"),
        Index("idx_sessions_day_key", "day_key"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    identity_key: Mapped[str] = mapped_column(String(128), nullable=False)
    identity_kind: Mapped[str] = mapped_column(String(16), nullable=False)
    category_code: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("quiz_categories.code"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    question_ids: Mapped[list[str]] = mapped_column(JSONB, nullable=False)
    question_count: Mapped[int] = mapped_column(Integer, nullable=False)
    timer_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    is_perfect: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    avg_response_ms: Mapped[float | None] = mapped_column(Float, nullable=True)
    season_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    eligibility_id: Mapped[UUID | None] = mapped_column(PG_UUID(as_uuid=True), nullable=True)
    day_key: Mapped[date] = mapped_column(Date, nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
