"""Domain records of a quiz session."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

ALL_EXAMS = "all"


@dataclass(frozen=True)
class Question:
    id: str
    exam: str
    year: int | None
    prompt: str
    options: tuple[str, ...]
    answer_index: int
    explanation: str = ""
    image: str | None = None

    def is_correct(self, choice: int | None) -> bool:
        return choice is not None and self.has_valid_answer() and choice == self.answer_index

    def has_valid_answer(self) -> bool:
        return 0 <= self.answer_index < len(self.options)

    def meta_line(self) -> str:
        exam = self.exam or "Unknown"
        year = "" if self.year is None else str(self.year)
        return f"{exam} • {year}"


class QuizMode(str, Enum):
    RANDOM = "random"
    TIMED = "timed"
    REVIEW = "review"


class Phase(str, Enum):
    EMPTY = "empty"
    LOADED = "loaded"
    ACTIVE = "active"
    GRADED = "graded"


class Outcome(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    UNANSWERED = "unanswered"

    @property
    def is_wrong(self) -> bool:
        return self is not Outcome.CORRECT


@dataclass
class QuizSession:
    """State of one quiz attempt; selections are keyed by question position."""

    mode: QuizMode
    questions: list[Question]
    exam: str = ALL_EXAMS
    token: str | None = None
    selections: dict[int, int] = field(default_factory=dict)
    started_at_ms: int | None = None

    def __len__(self) -> int:
        return len(self.questions)

    def select(self, position: int, option_index: int) -> None:
        if not 0 <= position < len(self.questions):
            raise IndexError(f"No question at position {position}")
        self.selections[position] = int(option_index)

    def clear_selections(self) -> None:
        self.selections.clear()


@dataclass(frozen=True)
class WrongAnswerRecord:
    question_id: str
    count: int = 0
    last_wrong: datetime | None = None
    last_correct: datetime | None = None
    question_snapshot: str = ""

    @property
    def is_resolved(self) -> bool:
        """True when the latest evaluation of the question was correct."""

        if self.last_correct is None:
            return False
        if self.last_wrong is None:
            return True
        return self.last_correct > self.last_wrong

    @classmethod
    def from_mapping(cls, question_id: str, data: dict[str, Any]) -> "WrongAnswerRecord":
        return cls(
            question_id=str(question_id),
            count=int(data.get("count") or 0),
            last_wrong=data.get("last_wrong"),
            last_correct=data.get("last_correct"),
            question_snapshot=str(data.get("question_snapshot") or ""),
        )


__all__ = [
    "ALL_EXAMS",
    "Outcome",
    "Phase",
    "Question",
    "QuizMode",
    "QuizSession",
    "WrongAnswerRecord",
]
