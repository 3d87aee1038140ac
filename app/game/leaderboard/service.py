from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.game_settings import GameSettings, get_game_settings
from app.db.repo.leaderboard_snapshots_repo import LeaderboardSnapshotsRepo
from app.db.repo.quiz_sessions_repo import QuizSessionsRepo
from app.db.repo.season_points_repo import SeasonPointsRepo
from app.db.repo.seasons_repo import SeasonsRepo
from app.game.leaderboard.scoring import clamp_page, session_points
from app.game.leaderboard.types import LeaderboardEntry, LeaderboardPage, RankedEntry

logger = structlog.get_logger(__name__)


def _entry_from_row(row) -> LeaderboardEntry:  # noqa: ANN001
    return LeaderboardEntry(
        identity_key=row.identity_key,
        points=int(row.points),
        items_minted=int(row.items_minted),
        perfect_count=int(row.perfect_count),
        avg_response_ms=float(row.avg_response_ms) if row.avg_response_ms is not None else None,
        sessions_used=int(row.sessions_used),
        first_achieved_at=row.first_achieved_at,
    )


class LeaderboardService:
    @staticmethod
    async def record_session(
        session: AsyncSession,
        *,
        season_id: str,
        identity_key: str,
        correct_answers: int,
        is_perfect: bool,
        avg_response_ms: float,
        now_utc: datetime,
        settings: GameSettings | None = None,
    ) -> int:
        resolved_settings = settings or get_game_settings()
        points = session_points(
            correct_answers=correct_answers,
            is_perfect=is_perfect,
            settings=resolved_settings,
        )
        await SeasonPointsRepo.record_session(
            session,
            season_id=season_id,
            identity_key=identity_key,
            points=points,
            is_perfect=is_perfect,
            avg_response_ms=avg_response_ms,
            now_utc=now_utc,
        )
        logger.info(
            "leaderboard_session_recorded",
            season_id=season_id,
            identity_key=identity_key,
            points=points,
            is_perfect=is_perfect,
        )
        return points

    @staticmethod
    async def record_mint(
        session: AsyncSession,
        *,
        season_id: str,
        identity_key: str,
        now_utc: datetime,
    ) -> None:
        await SeasonPointsRepo.record_mint(
            session,
            season_id=season_id,
            identity_key=identity_key,
            now_utc=now_utc,
        )

    @staticmethod
    async def get_page(
        session: AsyncSession,
        *,
        season_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> LeaderboardPage:
        """Live ranking for the active season; archived seasons read their latest snapshot."""
        resolved_limit, resolved_offset = clamp_page(limit, offset)
        season = await SeasonsRepo.get_by_id(session, season_id)
        if season is not None and not season.is_active:
            snapshot_at = await LeaderboardSnapshotsRepo.get_latest_snapshot_at(session, season_id=season_id)
            if snapshot_at is not None:
                rows = await LeaderboardSnapshotsRepo.list_page(
                    session,
                    season_id=season_id,
                    snapshot_at=snapshot_at,
                    limit=resolved_limit,
                    offset=resolved_offset,
                )
                return LeaderboardPage(
                    season_id=season_id,
                    source="snapshot",
                    limit=resolved_limit,
                    offset=resolved_offset,
                    entries=[RankedEntry(rank=int(row.rank), entry=_entry_from_row(row)) for row in rows],
                )

        ranked = await SeasonPointsRepo.list_ranked(
            session,
            season_id=season_id,
            limit=resolved_limit,
            offset=resolved_offset,
        )
        return LeaderboardPage(
            season_id=season_id,
            source="live",
            limit=resolved_limit,
            offset=resolved_offset,
            entries=[RankedEntry(rank=rank, entry=_entry_from_row(row)) for row, rank in ranked],
        )

    @staticmethod
    async def get_category_page(
        session: AsyncSession,
        *,
        season_id: str,
        category_code: str,
        limit: int = 50,
        offset: int = 0,
        settings: GameSettings | None = None,
    ) -> LeaderboardPage:
        """Live per-category ranking computed from the season's scored sessions."""
        resolved_settings = settings or get_game_settings()
        resolved_limit, resolved_offset = clamp_page(limit, offset)
        rows = await QuizSessionsRepo.list_category_ranked(
            session,
            season_id=season_id,
            category_code=category_code,
            points_per_correct=resolved_settings.points_per_correct,
            perfect_bonus_points=resolved_settings.perfect_bonus_points,
            limit=resolved_limit,
            offset=resolved_offset,
        )
        return LeaderboardPage(
            season_id=season_id,
            source="category",
            limit=resolved_limit,
            offset=resolved_offset,
            entries=[RankedEntry(rank=int(row.rank), entry=_entry_from_row(row)) for row in rows],
            category_code=category_code,
        )

    @staticmethod
    async def get_identity_rank(
        session: AsyncSession,
        *,
        season_id: str,
        identity_key: str,
    ) -> RankedEntry | None:
        found = await SeasonPointsRepo.get_rank(session, season_id=season_id, identity_key=identity_key)
        if found is None:
            return None
        row, rank = found
        return RankedEntry(rank=rank, entry=_entry_from_row(row))

    @staticmethod
    async def snapshot(
        session: AsyncSession,
        *,
        season_id: str,
        now_utc: datetime,
        is_final: bool = False,
    ) -> int:
        captured = await LeaderboardSnapshotsRepo.capture(
            session,
            season_id=season_id,
            snapshot_at=now_utc,
            is_final=is_final,
        )
        logger.info(
            "leaderboard_snapshot_captured",
            season_id=season_id,
            entries=captured,
            is_final=is_final,
        )
        return captured
