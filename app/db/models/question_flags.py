from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class QuestionFlag(Base):
    __tablename__ = "question_flags"
    __table_args__ = (
        Index(
            "uq_question_flags_open_per_identity",
            "question_id",
            "identity_key",
            unique=True,
            postgresql_where=text("handled = false"),
        ),
        Index("idx_question_flags_unhandled", "handled", "created_at", postgresql_where=text("handled = false")),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    question_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("quiz_questions.question_id", ondelete="CASCADE"),
        nullable=False,
    )
    identity_key: Mapped[str] = mapped_column(String(128), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    handled: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    handled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
