"""Error taxonomy of the quiz session engine."""

from __future__ import annotations


class QuizError(RuntimeError):
    """Base class for engine errors."""


class BankLoadError(QuizError):
    """Raised when the question bank cannot be fetched or parsed."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"Unable to load {source}: {reason}")
        self.source = source
        self.reason = reason


class InsufficientQuestions(QuizError):
    """Raised when the filtered pool is smaller than the requested quiz size."""

    def __init__(self, found: int, needed: int, exam: str | None = None) -> None:
        label = exam if exam and exam != "all" else "all exams"
        super().__init__(f"Not enough questions for {label}. Found {found}, need {needed}.")
        self.found = found
        self.needed = needed
        self.exam = exam


class MissingRecord(QuizError):
    """The remote store has no wrong-answer record for the pair.

    Expected during normal operation: it drives the create fallback of a
    miss and turns a correction into a no-op.
    """

    def __init__(self, user_id: str, question_id: str) -> None:
        super().__init__(f"No wrong-answer record for user={user_id} question={question_id}")
        self.user_id = user_id
        self.question_id = question_id


class SyncWriteFailure(QuizError):
    """A wrong-answer mutation failed; carried inside sync outcomes, never raised to callers."""

    def __init__(self, question_id: str, operation: str, cause: BaseException) -> None:
        super().__init__(f"{operation} failed for question {question_id}: {cause!r}")
        self.question_id = question_id
        self.operation = operation
        self.cause = cause


__all__ = [
    "BankLoadError",
    "InsufficientQuestions",
    "MissingRecord",
    "QuizError",
    "SyncWriteFailure",
]
