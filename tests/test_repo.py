import asyncio
from datetime import datetime, timedelta, timezone

import pytest

pytest.importorskip("aiosqlite")

from quizdesk.db.models import Base  # noqa: E402
from quizdesk.db.session import build_session_factory, init_db, scope_for  # noqa: E402
from quizdesk.errors import MissingRecord  # noqa: E402
from quizdesk.repo import attempts, scores, wrong_answers  # noqa: E402
from quizdesk.tracking.store import SqlRecordStore  # noqa: E402


class SessionManager:
    def __init__(self, path) -> None:
        self._engine, self._factory = build_session_factory(f"sqlite+aiosqlite:///{path}")
        self.scope = scope_for(self._factory)

    async def __aenter__(self) -> "SessionManager":
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self._engine.dispose()


def run(coro):
    return asyncio.run(coro)


NOW = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def test_wrong_answer_increment_and_create(tmp_path):
    async def _test():
        async with SessionManager(tmp_path / "db.sqlite") as db:
            async with db.scope() as session:
                assert await wrong_answers.increment(session, "u1", "q1", "Prompt", now=NOW) is False
                await wrong_answers.create(session, "u1", "q1", "Prompt", now=NOW)
                assert await wrong_answers.increment(session, "u1", "q1", "Prompt v2", now=NOW + timedelta(minutes=1))
                await session.commit()

            async with db.scope() as session:
                (row,) = await wrong_answers.list_for_user(session, "u1")
                assert row.count == 2
                assert row.question_snapshot == "Prompt v2"
                assert row.last_correct is None

                assert await wrong_answers.mark_correct(session, "u1", "q1", now=NOW + timedelta(hours=1))
                assert await wrong_answers.mark_correct(session, "u1", "missing", now=NOW) is False
                await session.commit()

            async with db.scope() as session:
                rows = await wrong_answers.list_for_user(session, "u1")
                assert [(r.question_id, r.count) for r in rows] == [("q1", 2)]
                assert rows[0].last_correct is not None

                assert await wrong_answers.purge(session, "u1") == 1
                await session.commit()
                assert await wrong_answers.list_for_user(session, "u1") == []

    run(_test())


def test_sql_record_store_contract(tmp_path):
    async def _test():
        async with SessionManager(tmp_path / "db.sqlite") as db:
            store = SqlRecordStore(db.scope)

            with pytest.raises(MissingRecord):
                await store.increment("u1", "q1", "Prompt", NOW)
            with pytest.raises(MissingRecord):
                await store.mark_correct("u1", "q1", NOW)

            await store.create("u1", "q1", "Prompt", NOW)
            await store.increment("u1", "q1", "Prompt", NOW + timedelta(minutes=5))
            await store.mark_correct("u1", "q1", NOW + timedelta(minutes=10))
            await store.create("u2", "q1", "Prompt", NOW)

            records = await store.fetch_all("u1")
            assert len(records) == 1
            record = records[0]
            assert record.count == 2
            assert record.last_wrong.tzinfo is not None
            assert record.last_correct == NOW + timedelta(minutes=10)
            assert record.is_resolved

    run(_test())


def test_sql_record_store_duplicate_create_raises_integrity_error(tmp_path):
    from sqlalchemy.exc import IntegrityError

    async def _test():
        async with SessionManager(tmp_path / "db.sqlite") as db:
            store = SqlRecordStore(db.scope)
            await store.create("u1", "q1", "Prompt", NOW)
            with pytest.raises(IntegrityError):
                await store.create("u1", "q1", "Prompt", NOW)

    run(_test())


def test_scores_and_attempts(tmp_path):
    async def _test():
        async with SessionManager(tmp_path / "db.sqlite") as db:
            async with db.scope() as session:
                await scores.save(session, "u1", 7, 10, exam="CPA", email="u1@example.com", token="ABCD")
                await attempts.record(session, "u1", "q1", "First", True, ts=NOW)
                await attempts.record(session, "u1", "q1", "First", False, ts=NOW + timedelta(minutes=1))
                await attempts.record(session, "u1", "q2", "Second", True, ts=NOW + timedelta(minutes=2))
                await attempts.record(session, "u2", "q1", "First", True, ts=NOW)
                await session.commit()

            async with db.scope() as session:
                saved = await scores.list_for_user(session, "u1")
                assert [(s.score, s.total, s.exam, s.token) for s in saved] == [(7, 10, "CPA", "ABCD")]

                rows = await attempts.list_for_user(session, "u1")
                assert [row.question_id for row in rows] == ["q2", "q1", "q1"]

    run(_test())


def test_init_db_creates_schema(tmp_path):
    async def _test():
        engine, _ = build_session_factory(f"sqlite+aiosqlite:///{tmp_path / 'nested' / 'db.sqlite'}")
        try:
            assert await init_db(engine) is True
        finally:
            await engine.dispose()

    run(_test())
    assert (tmp_path / "nested" / "db.sqlite").exists()
