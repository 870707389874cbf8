"""Presentation-neutral rendering instructions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from quizdesk.quiz.grading import GradeResult, mark_options
from quizdesk.quiz.models import QuizSession, WrongAnswerRecord

NO_EXPLANATION = "No explanation provided."


@dataclass(frozen=True)
class OptionView:
    index: int
    text: str
    chosen: bool = False
    correct: bool = False
    wrong: bool = False


@dataclass(frozen=True)
class QuestionView:
    position: int
    question_id: str
    meta: str
    prompt: str
    options: tuple[OptionView, ...]
    explanation: str
    explanation_visible: bool = False
    image: str | None = None
    missed_count: int | None = None

    @property
    def legend(self) -> str:
        return f"{self.position + 1}. {self.prompt}"

    @property
    def missed_badge(self) -> str | None:
        if self.missed_count is None:
            return None
        return f"Previously missed ({self.missed_count})"


@dataclass(frozen=True)
class ScoreView:
    correct: int
    total: int
    percent: int

    @property
    def score_line(self) -> str:
        return f"Score: {self.correct} / {self.total}"

    @property
    def percent_line(self) -> str:
        return f"{self.percent}%"


def format_remaining(seconds: float) -> str:
    """Format a remaining duration as ``MM:SS``, never negative."""

    whole = int(max(0.0, seconds))
    return f"{whole // 60:02d}:{whole % 60:02d}"


def render_session(
    session: QuizSession,
    *,
    missed: Mapping[str, WrongAnswerRecord] | None = None,
    result: GradeResult | None = None,
) -> list[QuestionView]:
    """Build one view per question; marks and explanations appear once graded."""

    missed = missed or {}
    views: list[QuestionView] = []
    for position, question in enumerate(session.questions):
        selected = session.selections.get(position)
        if result is not None:
            marks = mark_options(question, selected)
            options = tuple(
                OptionView(
                    index=mark.index,
                    text=question.options[mark.index],
                    chosen=mark.chosen,
                    correct=mark.correct,
                    wrong=mark.wrong,
                )
                for mark in marks
            )
        else:
            options = tuple(
                OptionView(index=index, text=text, chosen=selected == index)
                for index, text in enumerate(question.options)
            )

        record = missed.get(question.id)
        views.append(
            QuestionView(
                position=position,
                question_id=question.id,
                meta=question.meta_line(),
                prompt=question.prompt,
                options=options,
                explanation=question.explanation or NO_EXPLANATION,
                explanation_visible=result is not None,
                image=question.image,
                missed_count=record.count if record is not None else None,
            )
        )
    return views


def score_view(result: GradeResult) -> ScoreView:
    return ScoreView(correct=result.correct, total=result.total, percent=result.percent)


__all__ = [
    "NO_EXPLANATION",
    "OptionView",
    "QuestionView",
    "ScoreView",
    "format_remaining",
    "render_session",
    "score_view",
]
