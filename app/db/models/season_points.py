from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Float, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class SeasonPoints(Base):
    __tablename__ = "season_points"
    __table_args__ = (
        CheckConstraint("points >= 0", name="ck_season_points_points_non_negative"),
        CheckConstraint("sessions_used >= 0", name="ck_season_points_sessions_non_negative"),
        Index("idx_season_points_season_points", "season_id", "points"),
    )

    season_id: Mapped[str] = mapped_column(String(64), ForeignKey("seasons.id"), primary_key=True)
    identity_key: Mapped[str] = mapped_column(String(128), primary_key=True)
    points: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    perfect_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    items_minted: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    # NULL until the identity has a scored session.
    avg_response_ms: Mapped[float | None] = mapped_column(Float, nullable=True)
    sessions_used: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    first_achieved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
