from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class QuizQuestion:
    question_id: str
    text: str
    options: list[str]
    correct_option: int
    explanation: str = ""
    category: str | None = None
