"""Test configuration helpers."""

from __future__ import annotations

import asyncio
import os
import sys
from datetime import datetime
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("TIMER_STORE", "memory")
os.environ.setdefault("RECORD_ATTEMPTS", "false")

from quizdesk.errors import MissingRecord  # noqa: E402
from quizdesk.quiz.models import Question, WrongAnswerRecord  # noqa: E402


def pytest_configure(config: pytest.Config) -> None:
    """Register the asyncio marker for the lightweight runner below."""

    config.addinivalue_line("markers", "asyncio: execute the test inside an event loop")


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Execute ``@pytest.mark.asyncio`` tests without requiring pytest-asyncio."""

    marker = pyfuncitem.get_closest_marker("asyncio")
    if marker is None:
        return None

    func = pyfuncitem.obj
    if not asyncio.iscoroutinefunction(func):
        return None

    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        kwargs = {name: pyfuncitem.funcargs[name] for name in pyfuncitem._fixtureinfo.argnames}
        loop.run_until_complete(func(**kwargs))
    finally:
        pending = asyncio.all_tasks(loop)
        for task in pending:
            task.cancel()
        if pending:
            loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        asyncio.set_event_loop(None)
        loop.close()
    return True


def make_question(qid: str, exam: str = "A", answer: int = 0, *, year: int | None = 2020) -> Question:
    return Question(
        id=qid,
        exam=exam,
        year=year,
        prompt=f"Prompt {qid}",
        options=("w", "x", "y", "z"),
        answer_index=answer,
        explanation=f"Because {qid}",
    )


class FakeRecordStore:
    """In-memory record store with switchable failures and per-call delays."""

    def __init__(self) -> None:
        self.rows: dict[tuple[str, str], dict] = {}
        self.calls: list[tuple[str, str, str]] = []
        self.fail_ops: set[str] = set()
        self.delay = 0.0

    def seed(self, user_id: str, question_id: str, count: int = 1, **fields) -> None:
        self.rows[(user_id, question_id)] = {"count": count, "question_snapshot": "", **fields}

    async def _enter(self, op: str, user_id: str, question_id: str = "") -> None:
        self.calls.append((op, user_id, question_id))
        if self.delay:
            await asyncio.sleep(self.delay)
        if op in self.fail_ops:
            raise ConnectionError(f"{op} unavailable")

    async def fetch_all(self, user_id: str) -> list[WrongAnswerRecord]:
        await self._enter("fetch_all", user_id)
        return [
            WrongAnswerRecord.from_mapping(qid, data)
            for (uid, qid), data in sorted(self.rows.items())
            if uid == user_id
        ]

    async def increment(self, user_id: str, question_id: str, snapshot: str, now: datetime) -> None:
        await self._enter("increment", user_id, question_id)
        row = self.rows.get((user_id, question_id))
        if row is None:
            raise MissingRecord(user_id, question_id)
        row["count"] += 1
        row["last_wrong"] = now
        row["question_snapshot"] = snapshot

    async def create(self, user_id: str, question_id: str, snapshot: str, now: datetime) -> None:
        await self._enter("create", user_id, question_id)
        self.rows[(user_id, question_id)] = {"count": 1, "last_wrong": now, "question_snapshot": snapshot}

    async def mark_correct(self, user_id: str, question_id: str, now: datetime) -> None:
        await self._enter("mark_correct", user_id, question_id)
        row = self.rows.get((user_id, question_id))
        if row is None:
            raise MissingRecord(user_id, question_id)
        row["last_correct"] = now


@pytest.fixture
def record_store() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture
def question_factory():
    return make_question
