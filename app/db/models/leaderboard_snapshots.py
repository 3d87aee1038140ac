from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class LeaderboardSnapshot(Base):
    __tablename__ = "leaderboard_snapshots"
    __table_args__ = (
        Index("idx_leaderboard_snapshots_rank", "season_id", "snapshot_at", "rank"),
        Index(
            "idx_leaderboard_snapshots_final",
            "season_id",
            "rank",
            postgresql_where=text("is_final"),
        ),
    )

    season_id: Mapped[str] = mapped_column(String(64), ForeignKey("seasons.id"), primary_key=True)
    snapshot_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), primary_key=True)
    identity_key: Mapped[str] = mapped_column(String(128), primary_key=True)
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    perfect_count: Mapped[int] = mapped_column(Integer, nullable=False)
    items_minted: Mapped[int] = mapped_column(Integer, nullable=False)
    avg_response_ms: Mapped[float | None] = mapped_column(Float, nullable=True)
    sessions_used: Mapped[int] = mapped_column(Integer, nullable=False)
    first_achieved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_final: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
