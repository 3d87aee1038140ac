from __future__ import annotations

from datetime import datetime, timedelta

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.game_settings import GameSettings, get_game_settings
from app.db.models.seasons import Season
from app.db.repo.season_points_repo import SeasonPointsRepo
from app.db.repo.seasons_repo import SeasonsRepo
from app.game.leaderboard.service import LeaderboardService
from app.game.seasons.rules import (
    carryover_points,
    grace_ends_at,
    has_ended,
    is_season_open,
    next_season_window,
    season_display_name,
    season_identifier,
)
from app.game.seasons.types import RolloverResult, SeasonView

logger = structlog.get_logger(__name__)


class SeasonService:
    @staticmethod
    def to_view(season: Season) -> SeasonView:
        return SeasonView(
            season_id=season.id,
            name=season.name,
            starts_at=season.starts_at,
            ends_at=season.ends_at,
            grace_days=season.grace_days,
            is_active=season.is_active,
            grace_ends_at=grace_ends_at(season),
        )

    @staticmethod
    async def get_current_season(session: AsyncSession) -> Season | None:
        return await SeasonsRepo.get_active(session)

    @staticmethod
    async def get_forge_season(session: AsyncSession, *, season_id: str | None = None) -> Season | None:
        """Season targeted by a seasonal forge: the given one, else the active one."""
        if season_id is not None:
            return await SeasonsRepo.get_by_id(session, season_id)
        return await SeasonsRepo.get_active(session)

    @staticmethod
    async def season_for_points(session: AsyncSession, *, now_utc: datetime) -> str | None:
        """Season bucket credited by a session completing at `now_utc`, if any."""
        season = await SeasonsRepo.get_active(session)
        if season is None or not is_season_open(season, now_utc):
            return None
        return season.id

    @staticmethod
    async def ensure_initial_season(
        session: AsyncSession,
        *,
        now_utc: datetime,
        settings: GameSettings | None = None,
    ) -> Season:
        active = await SeasonsRepo.get_active_for_update(session)
        if active is not None:
            return active

        resolved_settings = settings or get_game_settings()
        season = await SeasonsRepo.create(
            session,
            season_id=season_identifier(now_utc),
            name=season_display_name(now_utc),
            starts_at=now_utc,
            ends_at=now_utc + timedelta(days=resolved_settings.season_length_days),
            grace_days=resolved_settings.season_grace_days,
            is_active=True,
        )
        logger.info("season_created", season_id=season.id, starts_at=season.starts_at.isoformat())
        return season

    @staticmethod
    async def rollover(
        session: AsyncSession,
        *,
        now_utc: datetime,
        settings: GameSettings | None = None,
    ) -> RolloverResult | None:
        active = await SeasonsRepo.get_active_for_update(session)
        if active is None or not has_ended(active, now_utc):
            return None

        resolved_settings = settings or get_game_settings()
        snapshot_entries = await LeaderboardService.snapshot(
            session,
            season_id=active.id,
            now_utc=now_utc,
            is_final=True,
        )
        await SeasonsRepo.archive(session, season_id=active.id, now_utc=now_utc)

        starts_at, ends_at = next_season_window(
            active.ends_at,
            length_days=resolved_settings.season_length_days,
        )
        next_season = await SeasonsRepo.create(
            session,
            season_id=season_identifier(starts_at),
            name=season_display_name(starts_at),
            starts_at=starts_at,
            ends_at=ends_at,
            grace_days=resolved_settings.season_grace_days,
            is_active=True,
        )

        previous_points = await SeasonPointsRepo.list_points_by_identity(session, season_id=active.id)
        carried_entries = await SeasonPointsRepo.seed_entries(
            session,
            season_id=next_season.id,
            points_by_identity=[
                (
                    identity_key,
                    carryover_points(
                        points,
                        carryover_percent=resolved_settings.season_carryover_percent,
                    ),
                )
                for identity_key, points in previous_points
            ],
            now_utc=now_utc,
        )
        logger.info(
            "season_rolled_over",
            archived_season_id=active.id,
            new_season_id=next_season.id,
            snapshot_entries=snapshot_entries,
            carried_entries=carried_entries,
        )
        return RolloverResult(
            archived_season_id=active.id,
            new_season_id=next_season.id,
            snapshot_entries=snapshot_entries,
            carried_entries=carried_entries,
        )
