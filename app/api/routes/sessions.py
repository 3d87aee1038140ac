from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query

from app.api.routes.dependencies import get_identity, get_rate_lock_store, get_session_state_store
from app.api.routes.errors import to_http_exception
from app.api.routes.sessions_models import (
    AnswerResponse,
    SessionHistoryItemResponse,
    SessionHistoryResponse,
    SessionQuestionResponse,
    SessionResultResponse,
    StartSessionRequest,
    StartSessionResponse,
    SubmitAnswerRequest,
)
from app.core.identity import Identity
from app.core.rate_lock_store import RateLockStore
from app.game.sessions.errors import GameSessionError
from app.game.sessions.service import GameSessionService
from app.game.sessions.state_store import SessionStateStore
from app.game.sessions.types import SessionResult

router = APIRouter(prefix="/v1/sessions", tags=["sessions"])
logger = structlog.get_logger(__name__)


def _as_result_response(result: SessionResult) -> SessionResultResponse:
    return SessionResultResponse(
        session_id=result.session_id,
        status=result.status.value,
        score=result.score,
        total=result.total,
        is_perfect=result.is_perfect,
        avg_response_ms=result.avg_response_ms,
        eligibility_id=result.eligibility_id,
        season_id=result.season_id,
        idempotent_replay=result.idempotent_replay,
    )


@router.post("", response_model=StartSessionResponse, status_code=201)
async def start_session(
    payload: StartSessionRequest,
    identity: Identity = Depends(get_identity),
    lock_store: RateLockStore = Depends(get_rate_lock_store),
    state_store: SessionStateStore = Depends(get_session_state_store),
) -> StartSessionResponse:
    try:
        started = await GameSessionService.start_session(
            lock_store=lock_store,
            state_store=state_store,
            identity=identity,
            category_code=payload.category_code.strip(),
            now_utc=datetime.now(timezone.utc),
        )
    except GameSessionError as exc:
        raise to_http_exception(exc) from exc

    return StartSessionResponse(
        session_id=started.session_id,
        category_code=started.category_code,
        questions=[SessionQuestionResponse(**asdict(question)) for question in started.questions],
        timer_seconds=started.timer_seconds,
        started_at=started.started_at,
        deadline_at=started.deadline_at,
        daily_count=started.daily_count,
        daily_cap=started.daily_cap,
    )


@router.post("/{session_id}/answers", response_model=AnswerResponse)
async def submit_answer(
    session_id: UUID,
    payload: SubmitAnswerRequest,
    identity: Identity = Depends(get_identity),
    lock_store: RateLockStore = Depends(get_rate_lock_store),
    state_store: SessionStateStore = Depends(get_session_state_store),
) -> AnswerResponse:
    try:
        result = await GameSessionService.submit_answer(
            lock_store=lock_store,
            state_store=state_store,
            identity=identity,
            session_id=session_id,
            question_index=payload.question_index,
            selected_option=payload.selected_option,
            elapsed_ms=payload.elapsed_ms,
            now_utc=datetime.now(timezone.utc),
        )
    except GameSessionError as exc:
        raise to_http_exception(exc) from exc
    return AnswerResponse(**asdict(result))


@router.post("/{session_id}/complete", response_model=SessionResultResponse)
async def complete_session(
    session_id: UUID,
    identity: Identity = Depends(get_identity),
    lock_store: RateLockStore = Depends(get_rate_lock_store),
    state_store: SessionStateStore = Depends(get_session_state_store),
) -> SessionResultResponse:
    try:
        result = await GameSessionService.complete_session(
            lock_store=lock_store,
            state_store=state_store,
            identity=identity,
            session_id=session_id,
            now_utc=datetime.now(timezone.utc),
        )
    except GameSessionError as exc:
        raise to_http_exception(exc) from exc
    return _as_result_response(result)


@router.post("/{session_id}/forfeit", response_model=SessionResultResponse)
async def forfeit_session(
    session_id: UUID,
    identity: Identity = Depends(get_identity),
    lock_store: RateLockStore = Depends(get_rate_lock_store),
    state_store: SessionStateStore = Depends(get_session_state_store),
) -> SessionResultResponse:
    try:
        result = await GameSessionService.forfeit_session(
            lock_store=lock_store,
            state_store=state_store,
            identity=identity,
            session_id=session_id,
            now_utc=datetime.now(timezone.utc),
        )
    except GameSessionError as exc:
        raise to_http_exception(exc) from exc
    return _as_result_response(result)


@router.get("/history", response_model=SessionHistoryResponse)
async def get_session_history(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    identity: Identity = Depends(get_identity),
) -> SessionHistoryResponse:
    items = await GameSessionService.get_session_history(identity=identity, limit=limit, offset=offset)
    return SessionHistoryResponse(
        limit=limit,
        offset=offset,
        items=[
            SessionHistoryItemResponse(
                session_id=item.session_id,
                category_code=item.category_code,
                status=item.status.value,
                score=item.score,
                total=item.total,
                is_perfect=item.is_perfect,
                started_at=item.started_at,
                completed_at=item.completed_at,
            )
            for item in items
        ],
    )
