"""Quiz selection, timing, grading and orchestration."""

from .models import ALL_EXAMS, Outcome, Phase, Question, QuizMode, QuizSession, WrongAnswerRecord

__all__ = [
    "ALL_EXAMS",
    "Outcome",
    "Phase",
    "Question",
    "QuizMode",
    "QuizSession",
    "WrongAnswerRecord",
]
