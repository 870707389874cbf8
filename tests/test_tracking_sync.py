import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from quizdesk.errors import SyncWriteFailure
from quizdesk.identity import Identity
from quizdesk.quiz.grading import grade
from quizdesk.quiz.models import QuizMode, QuizSession
from quizdesk.tracking.sync import CREATED, INCREMENTED, WrongAnswerSync

ALICE = Identity(uid="alice", display_name="Alice")
BOB = Identity(uid="bob", display_name="Bob")


class StepClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def sync(record_store):
    return WrongAnswerSync(record_store, clock=StepClock())


@pytest.mark.asyncio
async def test_miss_creates_then_increments_then_correction(sync, record_store, question_factory):
    question = question_factory("q1")
    await sync.refresh(ALICE)

    assert await sync.record_miss(ALICE, question) == CREATED
    assert record_store.rows[("alice", "q1")]["count"] == 1

    assert await sync.record_miss(ALICE, question) == INCREMENTED
    assert record_store.rows[("alice", "q1")]["count"] == 2
    assert sync.cache.missed_count("q1") == 2

    assert await sync.record_correction(ALICE, question) is True
    row = record_store.rows[("alice", "q1")]
    assert row["count"] == 2
    assert row["last_correct"] > row["last_wrong"]
    assert "q1" not in sync.cache.missed_ids
    assert sync.cache.get("q1").count == 2


@pytest.mark.asyncio
async def test_correction_without_record_is_noop(sync, record_store, question_factory):
    await sync.refresh(ALICE)
    assert await sync.record_correction(ALICE, question_factory("nothing")) is False
    assert record_store.rows == {}
    assert sync.cache.records == {}


@pytest.mark.asyncio
async def test_refresh_replaces_cache_and_skips_resolved(sync, record_store):
    early = datetime(2024, 1, 1, tzinfo=timezone.utc)
    record_store.seed("alice", "open", count=4, last_wrong=early)
    record_store.seed("alice", "fixed", count=2, last_wrong=early, last_correct=early + timedelta(hours=1))
    record_store.seed("bob", "other", count=1, last_wrong=early)

    cache = await sync.refresh(ALICE)
    assert cache.missed_ids == frozenset({"open"})
    assert cache.missed_count("open") == 4
    assert cache.missed_count("fixed") is None
    assert "other" not in cache.records


@pytest.mark.asyncio
async def test_sign_out_clears_everything(sync, record_store):
    record_store.seed("alice", "q1", count=1, last_wrong=datetime(2024, 1, 1, tzinfo=timezone.utc))
    await sync.refresh(ALICE)
    assert len(sync.cache) == 1

    await sync.refresh(None)
    assert sync.identity is None
    assert sync.cache.records == {}
    assert sync.cache.owner is None


@pytest.mark.asyncio
async def test_optimistic_update_happens_before_remote_confirmation(sync, record_store, question_factory):
    await sync.refresh(ALICE)
    record_store.delay = 0.05
    question = question_factory("slow")

    pending = asyncio.ensure_future(sync.record_miss(ALICE, question))
    await asyncio.sleep(0)
    assert sync.cache.missed_count("slow") == 1
    assert ("alice", "slow") not in record_store.rows

    assert await pending == CREATED
    assert record_store.rows[("alice", "slow")]["count"] == 1


@pytest.mark.asyncio
async def test_late_result_for_previous_identity_is_dropped(sync, record_store, question_factory):
    await sync.refresh(ALICE)
    record_store.seed("alice", "q1", count=1)
    record_store.delay = 0.05

    pending = asyncio.ensure_future(sync.record_correction(ALICE, question_factory("q1")))
    await asyncio.sleep(0)
    sync.switch_identity(BOB)
    assert await pending is True

    assert sync.cache.owner == "bob"
    assert sync.cache.records == {}


@pytest.mark.asyncio
async def test_stale_refresh_is_dropped(sync, record_store):
    record_store.seed("alice", "q1", count=3)
    record_store.delay = 0.05

    pending = asyncio.ensure_future(sync.refresh(ALICE))
    await asyncio.sleep(0)
    record_store.delay = 0.0
    await sync.refresh(None)
    await pending

    assert sync.cache.owner is None
    assert sync.cache.records == {}


@pytest.mark.asyncio
async def test_concurrent_create_race_falls_back_to_increment(record_store, question_factory):
    class RacingStore(type(record_store)):
        async def create(self, user_id, question_id, snapshot, now):
            # another writer got there first
            self.seed(user_id, question_id, count=1)
            raise IntegrityError("INSERT INTO wrong_answers", {}, Exception("UNIQUE constraint failed"))

    store = RacingStore()
    sync = WrongAnswerSync(store, clock=StepClock())
    await sync.refresh(ALICE)

    assert await sync.record_miss(ALICE, question_factory("q1")) == INCREMENTED
    assert store.rows[("alice", "q1")]["count"] == 2


@pytest.mark.asyncio
async def test_apply_runs_all_mutations_and_collects_failures(sync, record_store, question_factory, caplog):
    record_store.seed("alice", "fixed", count=1, last_wrong=datetime(2024, 1, 1, tzinfo=timezone.utc))
    await sync.refresh(ALICE)
    questions = [question_factory("fixed"), question_factory("new"), question_factory("skip")]
    session = QuizSession(mode=QuizMode.RANDOM, questions=questions, selections={0: 0, 1: 1})
    result = grade(session, sync.cache.missed_ids)

    record_store.fail_ops = {"create"}
    report = await sync.apply(ALICE, result)

    assert {(item.question_id, item.operation) for item in report.outcomes} == {
        ("new", "miss"),
        ("skip", "miss"),
        ("fixed", "correction"),
    }
    assert len(report.failures) == 2
    assert all(isinstance(item.error, SyncWriteFailure) for item in report.failures)
    assert [item.result for item in report.outcomes if item.ok] == ["corrected"]
    assert "sync miss failed" in caplog.text
    # the optimistic miss stays visible even though the remote write failed
    assert sync.cache.missed_ids == frozenset({"new", "skip"})


@pytest.mark.asyncio
async def test_apply_when_everything_fails_still_returns(sync, record_store, question_factory):
    await sync.refresh(ALICE)
    record_store.fail_ops = {"increment", "create", "mark_correct"}
    session = QuizSession(mode=QuizMode.RANDOM, questions=[question_factory("a"), question_factory("b")])
    result = grade(session)

    report = await sync.apply(ALICE, result)
    assert not report.ok
    assert len(report.failures) == 2
    assert result.correct == 0 and result.total == 2


@pytest.mark.asyncio
async def test_apply_signed_out_does_nothing(sync, record_store, question_factory):
    session = QuizSession(mode=QuizMode.RANDOM, questions=[question_factory("a")])
    report = await sync.apply(None, grade(session))
    assert report.outcomes == ()
    assert record_store.calls == []


@pytest.mark.asyncio
async def test_missing_record_is_not_reported_as_failure(sync, record_store, question_factory):
    await sync.refresh(ALICE)
    question = question_factory("q1")
    session = QuizSession(mode=QuizMode.RANDOM, questions=[question], selections={0: 0})
    result = grade(session, previously_missed={"q1"})

    report = await sync.apply(ALICE, result)
    assert report.ok
    assert [item.result for item in report.outcomes] == ["noop"]
