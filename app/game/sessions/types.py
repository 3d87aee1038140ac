from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from uuid import UUID

from app.core.identity import IdentityKind


class SessionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    WON = "WON"
    LOST = "LOST"
    FORFEIT = "FORFEIT"


TERMINAL_SESSION_STATUSES = frozenset({SessionStatus.WON, SessionStatus.LOST, SessionStatus.FORFEIT})


@dataclass(slots=True)
class ServedQuestion:
    question_id: str
    text: str
    options: list[str]
    correct_option: int
    explanation: str = ""


@dataclass(slots=True)
class RecordedAnswer:
    question_index: int
    question_id: str
    selected_option: int | None
    is_correct: bool
    timed_out: bool
    served_at: datetime
    answered_at: datetime
    response_ms: int
    client_elapsed_ms: int | None = None


@dataclass(slots=True)
class SessionState:
    session_id: UUID
    identity_key: str
    identity_kind: IdentityKind
    category_code: str
    day_key: date
    started_at: datetime
    deadline_at: datetime
    timer_seconds: int
    answer_grace_ms: int
    questions: list[ServedQuestion]
    served_at: dict[int, datetime] = field(default_factory=dict)
    answers: dict[int, RecordedAnswer] = field(default_factory=dict)

    @property
    def question_count(self) -> int:
        return len(self.questions)

    def next_unanswered_index(self) -> int | None:
        for index in range(self.question_count):
            if index not in self.answers:
                return index
        return None


@dataclass(slots=True)
class SessionQuestionView:
    question_index: int
    question_id: str
    text: str
    options: list[str]


@dataclass(slots=True)
class SessionStart:
    session_id: UUID
    category_code: str
    questions: list[SessionQuestionView]
    timer_seconds: int
    started_at: datetime
    deadline_at: datetime
    daily_count: int
    daily_cap: int


@dataclass(slots=True)
class AnswerResult:
    session_id: UUID
    question_index: int
    is_correct: bool
    correct_option: int
    explanation: str
    score: int
    answered_count: int
    timed_out: bool
    idempotent_replay: bool


@dataclass(slots=True)
class SessionOutcome:
    status: SessionStatus
    score: int
    total: int
    is_perfect: bool
    avg_response_ms: float | None


@dataclass(slots=True)
class SessionResult:
    session_id: UUID
    identity_key: str
    status: SessionStatus
    score: int
    total: int
    is_perfect: bool
    avg_response_ms: float | None
    eligibility_id: UUID | None
    season_id: str | None
    idempotent_replay: bool

    @property
    def is_win(self) -> bool:
        return self.status == SessionStatus.WON


@dataclass(slots=True)
class SessionHistoryItem:
    session_id: UUID
    category_code: str
    status: SessionStatus
    score: int
    total: int
    is_perfect: bool
    started_at: datetime
    completed_at: datetime | None
