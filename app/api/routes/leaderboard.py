from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Header, HTTPException, Path, Query

from app.api.routes.rewards_models import (
    CategoryLeaderboardResponse,
    LeaderboardEntryResponse,
    LeaderboardResponse,
    SeasonResponse,
)
from app.db.repo.quiz_categories_repo import QuizCategoriesRepo
from app.db.session import SessionLocal
from app.game.leaderboard.service import LeaderboardService
from app.game.leaderboard.types import RankedEntry
from app.game.seasons.rules import is_within_grace, seasonal_forge_window_open
from app.game.seasons.service import SeasonService

router = APIRouter(prefix="/v1", tags=["leaderboard"])


def _entry_response(ranked: RankedEntry) -> LeaderboardEntryResponse:
    return LeaderboardEntryResponse(
        rank=ranked.rank,
        identity_key=ranked.entry.identity_key,
        points=ranked.entry.points,
        items_minted=ranked.entry.items_minted,
        perfect_count=ranked.entry.perfect_count,
        avg_response_ms=ranked.entry.avg_response_ms,
        sessions_used=ranked.entry.sessions_used,
    )


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    season_id: str | None = Query(default=None, max_length=32),
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    x_identity_key: str | None = Header(default=None),
) -> LeaderboardResponse:
    async with SessionLocal.begin() as session:
        if season_id is None:
            season = await SeasonService.get_current_season(session)
            if season is None:
                raise HTTPException(status_code=404, detail={"code": "E_SEASON_NOT_FOUND"})
            season_id = season.id
        page = await LeaderboardService.get_page(session, season_id=season_id, limit=limit, offset=offset)
        me = None
        if x_identity_key:
            me = await LeaderboardService.get_identity_rank(
                session,
                season_id=season_id,
                identity_key=x_identity_key.strip(),
            )

    return LeaderboardResponse(
        season_id=page.season_id,
        source=page.source,
        limit=page.limit,
        offset=page.offset,
        entries=[_entry_response(ranked) for ranked in page.entries],
        me=_entry_response(me) if me is not None else None,
    )


@router.get("/leaderboard/categories/{category_code}", response_model=CategoryLeaderboardResponse)
async def get_category_leaderboard(
    category_code: str = Path(min_length=1, max_length=32),
    season_id: str | None = Query(default=None, max_length=32),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> CategoryLeaderboardResponse:
    async with SessionLocal.begin() as session:
        if await QuizCategoriesRepo.get_by_code(session, category_code) is None:
            raise HTTPException(status_code=404, detail={"code": "E_UNKNOWN_CATEGORY"})
        if season_id is None:
            season = await SeasonService.get_current_season(session)
            if season is None:
                raise HTTPException(status_code=404, detail={"code": "E_SEASON_NOT_FOUND"})
            season_id = season.id
        page = await LeaderboardService.get_category_page(
            session,
            season_id=season_id,
            category_code=category_code,
            limit=limit,
            offset=offset,
        )

    return CategoryLeaderboardResponse(
        season_id=page.season_id,
        category_code=category_code,
        limit=page.limit,
        offset=page.offset,
        entries=[_entry_response(ranked) for ranked in page.entries],
    )


@router.get("/seasons/current", response_model=SeasonResponse)
async def get_current_season() -> SeasonResponse:
    async with SessionLocal.begin() as session:
        season = await SeasonService.get_current_season(session)
        if season is None:
            raise HTTPException(status_code=404, detail={"code": "E_SEASON_NOT_FOUND"})
        view = SeasonService.to_view(season)
        now_utc = datetime.now(timezone.utc)
        in_grace = is_within_grace(season, now_utc)
        forge_open = seasonal_forge_window_open(season, now_utc)

    return SeasonResponse(
        season_id=view.season_id,
        name=view.name,
        starts_at=view.starts_at,
        ends_at=view.ends_at,
        grace_ends_at=view.grace_ends_at,
        is_active=view.is_active,
        in_grace=in_grace,
        seasonal_forge_open=forge_open,
    )
