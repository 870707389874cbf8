"""Grading of a quiz session.

Unanswered questions score as wrong and are tracked as misses, but they never
carry a "wrong" option marker: only the correct option is marked. The correct
option is marked for every question regardless of outcome.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Container

from quizdesk.quiz.models import Outcome, Question, QuizSession


@dataclass(frozen=True)
class OptionMark:
    index: int
    chosen: bool
    correct: bool
    wrong: bool


@dataclass(frozen=True)
class QuestionOutcome:
    position: int
    question: Question
    outcome: Outcome
    selected: int | None
    marks: tuple[OptionMark, ...]

    @property
    def correct_index(self) -> int | None:
        return self.question.answer_index if self.question.has_valid_answer() else None


@dataclass(frozen=True)
class GradeResult:
    correct: int
    total: int
    outcomes: tuple[QuestionOutcome, ...]
    missed: tuple[Question, ...] = ()
    corrected: tuple[Question, ...] = ()

    @property
    def fraction(self) -> float:
        if not self.total:
            return 0.0
        return self.correct / self.total

    @property
    def percent(self) -> int:
        return int(math.floor(self.fraction * 100 + 0.5))


def mark_options(question: Question, selected: int | None) -> tuple[OptionMark, ...]:
    marks = []
    for index in range(len(question.options)):
        correct = question.has_valid_answer() and index == question.answer_index
        chosen = selected is not None and index == selected
        marks.append(OptionMark(index=index, chosen=chosen, correct=correct, wrong=chosen and not correct))
    return tuple(marks)


def classify(question: Question, selected: int | None) -> Outcome:
    if selected is None:
        return Outcome.UNANSWERED
    if question.is_correct(selected):
        return Outcome.CORRECT
    return Outcome.INCORRECT


def grade(session: QuizSession, previously_missed: Container[str] = frozenset()) -> GradeResult:
    """Grade ``session`` and collect the questions to forward to wrong-answer tracking.

    Every incorrect or unanswered question is reported as missed. A correct
    question is reported as corrected only when ``previously_missed`` still
    holds its id.
    """

    outcomes: list[QuestionOutcome] = []
    missed: list[Question] = []
    corrected: list[Question] = []
    correct_count = 0

    for position, question in enumerate(session.questions):
        selected = session.selections.get(position)
        outcome = classify(question, selected)
        if outcome is Outcome.CORRECT:
            correct_count += 1
            if question.id and question.id in previously_missed:
                corrected.append(question)
        elif question.id:
            missed.append(question)

        outcomes.append(
            QuestionOutcome(
                position=position,
                question=question,
                outcome=outcome,
                selected=selected,
                marks=mark_options(question, selected),
            )
        )

    return GradeResult(
        correct=correct_count,
        total=len(session.questions),
        outcomes=tuple(outcomes),
        missed=tuple(missed),
        corrected=tuple(corrected),
    )


__all__ = ["GradeResult", "OptionMark", "QuestionOutcome", "classify", "grade", "mark_options"]
