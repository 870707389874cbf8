from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quizdesk.db.models import Attempt

GROUP_LIMIT = 10


async def record(
    session: AsyncSession,
    user_id: str,
    question_id: str,
    question_text: str,
    correct: bool,
    *,
    ts: datetime | None = None,
) -> Attempt:
    attempt = Attempt(
        user_id=user_id,
        question_id=question_id,
        question_text=question_text,
        correct=bool(correct),
        ts=ts or datetime.now(timezone.utc),
    )
    session.add(attempt)
    await session.flush()
    return attempt


async def list_for_user(session: AsyncSession, user_id: str, limit: int = 500) -> Sequence[Attempt]:
    stmt = (
        select(Attempt)
        .where(Attempt.user_id == user_id)
        .order_by(Attempt.ts.desc(), Attempt.id.desc())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return result.scalars().all()


@dataclass(frozen=True)
class AttemptGroup:
    question_id: str
    question_text: str
    attempts: tuple[Attempt, ...]

    @property
    def correct(self) -> int:
        return sum(1 for item in self.attempts if item.correct)


@dataclass(frozen=True)
class ProfileSummary:
    total: int = 0
    correct: int = 0
    accuracy_percent: int = 0
    groups: tuple[AttemptGroup, ...] = field(default_factory=tuple)


def summarize_attempts(attempts: Iterable[Attempt]) -> ProfileSummary:
    """Totals plus per-question groups, most recent attempt first, ten per question at most."""

    ordered = sorted(attempts, key=lambda item: _ts_key(item.ts), reverse=True)
    total = len(ordered)
    correct = sum(1 for item in ordered if item.correct)
    accuracy = int(correct * 100 / total + 0.5) if total else 0

    buckets: "OrderedDict[str, list[Attempt]]" = OrderedDict()
    for item in ordered:
        bucket = buckets.setdefault(item.question_id, [])
        if len(bucket) < GROUP_LIMIT:
            bucket.append(item)

    groups = tuple(
        AttemptGroup(question_id=qid, question_text=items[0].question_text, attempts=tuple(items))
        for qid, items in buckets.items()
    )
    return ProfileSummary(total=total, correct=correct, accuracy_percent=accuracy, groups=groups)


def _ts_key(ts: datetime | None) -> float:
    if ts is None:
        return 0.0
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.timestamp()


__all__ = ["AttemptGroup", "GROUP_LIMIT", "ProfileSummary", "list_for_user", "record", "summarize_attempts"]
