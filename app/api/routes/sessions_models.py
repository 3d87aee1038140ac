from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class StartSessionRequest(BaseModel):
    category_code: str = Field(min_length=1, max_length=32)


class SessionQuestionResponse(BaseModel):
    question_index: int = Field(ge=0)
    question_id: str
    text: str
    options: list[str]


class StartSessionResponse(BaseModel):
    session_id: UUID
    category_code: str
    questions: list[SessionQuestionResponse]
    timer_seconds: int = Field(ge=1)
    started_at: datetime
    deadline_at: datetime
    daily_count: int = Field(ge=0)
    daily_cap: int = Field(ge=0)


class SubmitAnswerRequest(BaseModel):
    question_index: int = Field(ge=0)
    selected_option: int = Field(ge=0)
    elapsed_ms: int | None = Field(default=None, ge=0)


class AnswerResponse(BaseModel):
    session_id: UUID
    question_index: int
    is_correct: bool
    correct_option: int
    explanation: str
    score: int = Field(ge=0)
    answered_count: int = Field(ge=0)
    timed_out: bool
    idempotent_replay: bool


class SessionResultResponse(BaseModel):
    session_id: UUID
    status: str
    score: int = Field(ge=0)
    total: int = Field(ge=0)
    is_perfect: bool
    avg_response_ms: float | None = None
    eligibility_id: UUID | None = None
    season_id: str | None = None
    idempotent_replay: bool


class SessionHistoryItemResponse(BaseModel):
    session_id: UUID
    category_code: str
    status: str
    score: int
    total: int
    is_perfect: bool
    started_at: datetime
    completed_at: datetime | None = None


class SessionHistoryResponse(BaseModel):
    limit: int
    offset: int
    items: list[SessionHistoryItemResponse]
