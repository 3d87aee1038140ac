from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"
    __table_args__ = (
        CheckConstraint("response_ms >= 0", name="ck_quiz_attempts_response_ms_non_negative"),
        CheckConstraint("question_index >= 0", name="ck_quiz_attempts_question_index_non_negative"),
        CheckConstraint(
            "NOT timed_out OR (selected_option IS NULL AND NOT is_correct)",
            name="ck_quiz_attempts_timeout_is_incorrect",
        ),
        UniqueConstraint("session_id", "question_index", name="uq_quiz_attempts_session_index"),
        Index("idx_attempts_session", "session_id"),
        Index("idx_attempts_question", "question_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    session_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("quiz_sessions.id"),
        nullable=False,
    )
    question_index: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    question_id: Mapped[str] = mapped_column(String(64), nullable=False)
    selected_option: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    timed_out: Mapped[bool] = mapped_column(Boolean, nullable=False)
    served_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    answered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    response_ms: Mapped[int] = mapped_column(Integer, nullable=False)
    client_elapsed_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
