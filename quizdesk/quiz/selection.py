"""Question selection: random draws, token-seeded draws and review picks.

Token-seeded draws are the basis of shareable quizzes: the same token, exam
filter and bank always produce the same questions in the same order, on any
client, without a server round trip. The seed is an FNV-1a hash of
``"<TOKEN>|<exam>"`` and drives a mulberry32 generator feeding a
Fisher-Yates shuffle.
"""

from __future__ import annotations

import logging
import random
import string
from datetime import timezone
from typing import Callable, Iterable, Mapping, Sequence, TypeVar

from quizdesk.config import settings
from quizdesk.errors import InsufficientQuestions
from quizdesk.quiz.models import ALL_EXAMS, Question, QuizMode, WrongAnswerRecord

T = TypeVar("T")

TOKEN_LENGTH = 4
TOKEN_ALPHABET = string.ascii_uppercase

_FNV_OFFSET = 2166136261
_FNV_PRIME = 16777619
_MASK32 = 0xFFFFFFFF
_MULBERRY_INCREMENT = 0x6D2B79F5

logger = logging.getLogger(__name__)


def fnv1a_32(text: str) -> int:
    """Return the 32-bit FNV-1a hash of ``text`` over its UTF-16 code units."""

    h = _FNV_OFFSET
    encoded = text.encode("utf-16-le", "surrogatepass")
    for i in range(0, len(encoded), 2):
        unit = encoded[i] | (encoded[i + 1] << 8)
        h ^= unit
        h = (h * _FNV_PRIME) & _MASK32
    return h


def _imul(a: int, b: int) -> int:
    return (a * b) & _MASK32


def mulberry32(seed: int) -> Callable[[], float]:
    """Return a generator of floats in ``[0, 1)`` fully determined by ``seed``."""

    state = seed & _MASK32

    def _next() -> float:
        nonlocal state
        state = (state + _MULBERRY_INCREMENT) & _MASK32
        t = state
        t = _imul(t ^ (t >> 15), t | 1)
        t ^= (t + _imul(t ^ (t >> 7), t | 61)) & _MASK32
        return ((t ^ (t >> 14)) & _MASK32) / 4294967296

    return _next


def fisher_yates(items: Sequence[T], rnd: Callable[[], float]) -> list[T]:
    """Shuffle a copy of ``items`` using ``rnd`` as the randomness source."""

    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = int(rnd() * (i + 1))
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def normalize_token(raw: str | None, *, filler: str | None = None) -> str:
    """Fold any user-supplied string into exactly four letters A-Z."""

    fill = (filler or settings.TOKEN_FILLER)[:1] or "A"
    folded = (raw or "").upper()[:TOKEN_LENGTH]
    letters = "".join(ch if ch in TOKEN_ALPHABET else fill for ch in folded)
    return letters.ljust(TOKEN_LENGTH, fill)


def random_token(rng: random.Random | None = None) -> str:
    source = rng or random
    return "".join(source.choice(TOKEN_ALPHABET) for _ in range(TOKEN_LENGTH))


def token_seed(token: str, exam: str | None) -> int:
    return fnv1a_32(f"{token}|{exam or ALL_EXAMS}")


def filter_pool(pool: Iterable[Question], exam: str | None) -> list[Question]:
    if not exam or exam == ALL_EXAMS:
        return list(pool)
    return [question for question in pool if question.exam == exam]


def select_random(
    pool: Sequence[Question],
    size: int,
    exam: str | None = ALL_EXAMS,
    *,
    rng: random.Random | None = None,
) -> list[Question]:
    """Draw ``size`` questions uniformly at random; a new draw on every call."""

    filtered = filter_pool(pool, exam)
    if len(filtered) < size:
        raise InsufficientQuestions(found=len(filtered), needed=size, exam=exam)
    source = rng or random.Random()
    return fisher_yates(filtered, source.random)[:size]


def select_seeded(
    pool: Sequence[Question],
    size: int,
    token: str,
    exam: str | None = ALL_EXAMS,
) -> list[Question]:
    """Draw ``size`` questions reproducibly for ``token`` under ``exam``."""

    filtered = filter_pool(pool, exam)
    if len(filtered) < size:
        raise InsufficientQuestions(found=len(filtered), needed=size, exam=exam)
    rnd = mulberry32(token_seed(token, exam))
    return fisher_yates(filtered, rnd)[:size]


def questions_for_token(
    pool: Sequence[Question],
    size: int,
    token: str,
    exam: str | None = ALL_EXAMS,
) -> list[Question]:
    """Seeded draw that widens to the whole bank when the exam pool is too small.

    The seed keeps the requested exam even after widening, so a link carrying
    ``exam=X`` still maps to one fixed question set.
    """

    try:
        return select_seeded(pool, size, token, exam)
    except InsufficientQuestions as exc:
        logger.warning(
            "Not enough questions for exam=%r (found %s). Using all exams.",
            exam,
            exc.found,
        )
    rnd = mulberry32(token_seed(token, exam))
    shuffled = fisher_yates(list(pool), rnd)
    if len(shuffled) < size:
        logger.warning("Question bank has only %s questions, token quiz shortened", len(shuffled))
    return shuffled[:size]


def select(
    pool: Sequence[Question],
    mode: QuizMode,
    size: int,
    token: str | None = None,
    exam: str | None = ALL_EXAMS,
) -> list[Question]:
    """Draw a question set for ``mode``; a token switches to the seeded draw."""

    if mode is QuizMode.TIMED or token is not None:
        if token is None:
            raise ValueError("Seeded selection requires a token")
        return select_seeded(pool, size, normalize_token(token), exam)
    return select_random(pool, size, exam)


def _review_sort_key(record: WrongAnswerRecord) -> tuple[int, float]:
    last = record.last_wrong
    stamp = 0.0
    if last is not None:
        if last.tzinfo is None:
            last = last.replace(tzinfo=timezone.utc)
        stamp = last.timestamp()
    return (-record.count, -stamp)


def select_review(
    pool: Sequence[Question],
    missed: Mapping[str, WrongAnswerRecord],
    size: int,
    exam: str | None = ALL_EXAMS,
) -> list[Question]:
    """Pick previously missed questions, most frequently missed first."""

    by_id = {question.id: question for question in filter_pool(pool, exam)}
    records = sorted(
        (record for qid, record in missed.items() if qid in by_id),
        key=_review_sort_key,
    )
    if not records:
        raise InsufficientQuestions(found=0, needed=1, exam=exam)
    return [by_id[record.question_id] for record in records[:size]]


__all__ = [
    "TOKEN_LENGTH",
    "filter_pool",
    "fisher_yates",
    "fnv1a_32",
    "mulberry32",
    "normalize_token",
    "questions_for_token",
    "random_token",
    "select",
    "select_random",
    "select_review",
    "select_seeded",
    "token_seed",
]
