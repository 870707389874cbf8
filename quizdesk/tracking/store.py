"""Remote wrong-answer record store."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Protocol, Sequence

from quizdesk.db.models import WrongAnswer
from quizdesk.db.session import session_scope
from quizdesk.errors import MissingRecord
from quizdesk.quiz.models import WrongAnswerRecord
from quizdesk.repo import wrong_answers as repo

log = logging.getLogger("sync")


class RecordStore(Protocol):
    """Per-user, per-question record store.

    ``increment`` and ``mark_correct`` raise :class:`MissingRecord` when the
    pair has no record yet. ``create`` may raise the backend's integrity error
    when a concurrent writer created the record first.
    """

    async def fetch_all(self, user_id: str) -> Sequence[WrongAnswerRecord]: ...

    async def increment(self, user_id: str, question_id: str, snapshot: str, now: datetime) -> None: ...

    async def create(self, user_id: str, question_id: str, snapshot: str, now: datetime) -> None: ...

    async def mark_correct(self, user_id: str, question_id: str, now: datetime) -> None: ...


def _as_utc(value: datetime | None) -> datetime | None:
    # sqlite hands back naive datetimes even for timezone-aware columns
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def to_record(row: WrongAnswer) -> WrongAnswerRecord:
    return WrongAnswerRecord(
        question_id=row.question_id,
        count=int(row.count or 0),
        last_wrong=_as_utc(row.last_wrong),
        last_correct=_as_utc(row.last_correct),
        question_snapshot=row.question_snapshot or "",
    )


class SqlRecordStore:
    """:class:`RecordStore` over the ``wrong_answers`` table."""

    def __init__(self, scope_factory: Callable[[], Any] = session_scope) -> None:
        self._scope = scope_factory

    async def fetch_all(self, user_id: str) -> list[WrongAnswerRecord]:
        async with self._scope() as session:
            rows = await repo.list_for_user(session, user_id)
            return [to_record(row) for row in rows]

    async def increment(self, user_id: str, question_id: str, snapshot: str, now: datetime) -> None:
        async with self._scope() as session:
            updated = await repo.increment(session, user_id, question_id, snapshot, now=now)
            if not updated:
                await session.rollback()
                raise MissingRecord(user_id, question_id)
            await session.commit()

    async def create(self, user_id: str, question_id: str, snapshot: str, now: datetime) -> None:
        async with self._scope() as session:
            await repo.create(session, user_id, question_id, snapshot, now=now)
            await session.commit()

    async def mark_correct(self, user_id: str, question_id: str, now: datetime) -> None:
        async with self._scope() as session:
            updated = await repo.mark_correct(session, user_id, question_id, now=now)
            if not updated:
                await session.rollback()
                raise MissingRecord(user_id, question_id)
            await session.commit()


__all__ = ["RecordStore", "SqlRecordStore", "to_record"]
