from __future__ import annotations

from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quizdesk.db.models import ScoreEntry


async def save(
    session: AsyncSession,
    user_id: str,
    score: int,
    total: int,
    *,
    exam: str = "all",
    email: Optional[str] = None,
    token: Optional[str] = None,
) -> ScoreEntry:
    entry = ScoreEntry(user_id=user_id, email=email, score=score, total=total, exam=exam, token=token)
    session.add(entry)
    await session.flush()
    return entry


async def list_for_user(session: AsyncSession, user_id: str, limit: int = 20) -> Sequence[ScoreEntry]:
    stmt = (
        select(ScoreEntry)
        .where(ScoreEntry.user_id == user_id)
        .order_by(ScoreEntry.created.desc(), ScoreEntry.id.desc())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return result.scalars().all()


__all__ = ["list_for_user", "save"]
