"""Repository helpers for per-user wrong-answer records."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from quizdesk.db.models import WrongAnswer


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def list_for_user(session: AsyncSession, user_id: str) -> Sequence[WrongAnswer]:
    stmt = select(WrongAnswer).where(WrongAnswer.user_id == user_id).order_by(WrongAnswer.question_id.asc())
    result = await session.execute(stmt)
    return result.scalars().all()


async def increment(
    session: AsyncSession,
    user_id: str,
    question_id: str,
    snapshot: str = "",
    *,
    now: datetime | None = None,
) -> bool:
    """Atomically bump ``count`` of an existing record; False when there is none."""

    stmt = (
        update(WrongAnswer)
        .where(WrongAnswer.user_id == user_id, WrongAnswer.question_id == question_id)
        .values(
            count=WrongAnswer.count + 1,
            last_wrong=now or _utcnow(),
            question_snapshot=snapshot,
        )
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return (result.rowcount or 0) > 0


async def create(
    session: AsyncSession,
    user_id: str,
    question_id: str,
    snapshot: str = "",
    *,
    now: datetime | None = None,
) -> WrongAnswer:
    record = WrongAnswer(
        user_id=user_id,
        question_id=question_id,
        count=1,
        last_wrong=now or _utcnow(),
        question_snapshot=snapshot,
    )
    session.add(record)
    await session.flush()
    return record


async def mark_correct(
    session: AsyncSession,
    user_id: str,
    question_id: str,
    *,
    now: datetime | None = None,
) -> bool:
    """Set ``last_correct`` without touching ``count``; False when there is no record."""

    stmt = (
        update(WrongAnswer)
        .where(WrongAnswer.user_id == user_id, WrongAnswer.question_id == question_id)
        .values(last_correct=now or _utcnow())
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return (result.rowcount or 0) > 0


async def purge(session: AsyncSession, user_id: str) -> int:
    """Delete every record of ``user_id`` (explicit user request only)."""

    result = await session.execute(delete(WrongAnswer).where(WrongAnswer.user_id == user_id))
    return result.rowcount or 0


__all__ = ["create", "increment", "list_for_user", "mark_correct", "purge"]
