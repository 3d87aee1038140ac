from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field, field_validator

from app.api.routes.dependencies import get_identity
from app.api.routes.errors import to_http_exception
from app.core.identity import Identity
from app.db.session import SessionLocal
from app.game.questions.errors import QuestionFlagError
from app.game.questions.flags import FLAG_REASON_MAX_LENGTH, QuestionFlagService

router = APIRouter(prefix="/v1/questions", tags=["questions"])


class FlagQuestionRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=FLAG_REASON_MAX_LENGTH)

    @field_validator("reason")
    @classmethod
    def _reason_not_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("reason must not be blank")
        return stripped


class FlagQuestionResponse(BaseModel):
    flag_id: UUID
    question_id: str
    created: bool


@router.post("/{question_id}/flag", response_model=FlagQuestionResponse)
async def flag_question(
    payload: FlagQuestionRequest,
    question_id: str = Path(min_length=1, max_length=64),
    identity: Identity = Depends(get_identity),
) -> FlagQuestionResponse:
    try:
        async with SessionLocal.begin() as session:
            result = await QuestionFlagService.flag_question(
                session,
                identity=identity,
                question_id=question_id,
                reason=payload.reason,
                now_utc=datetime.now(timezone.utc),
            )
    except QuestionFlagError as exc:
        raise to_http_exception(exc) from exc

    return FlagQuestionResponse(flag_id=result.flag_id, question_id=result.question_id, created=result.created)
