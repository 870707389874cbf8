"""Wrong-answer tracking sync.

Reconciles misses and corrections produced by grading against the remote
record store while keeping a local cache that the render path reads. All
writes are best-effort: failures are logged and reported per question but
never raised to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.exc import IntegrityError

from quizdesk.errors import MissingRecord, SyncWriteFailure
from quizdesk.identity import Identity
from quizdesk.quiz.grading import GradeResult
from quizdesk.quiz.models import Question
from quizdesk.tracking.cache import WrongAnswerCache
from quizdesk.tracking.store import RecordStore

log = logging.getLogger("sync")

INCREMENTED = "incremented"
CREATED = "created"
CORRECTED = "corrected"
NOOP = "noop"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SyncOutcome:
    question_id: str
    operation: str
    result: str | None = None
    error: SyncWriteFailure | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class SyncReport:
    outcomes: tuple[SyncOutcome, ...] = ()

    @property
    def failures(self) -> tuple[SyncOutcome, ...]:
        return tuple(item for item in self.outcomes if not item.ok)

    @property
    def ok(self) -> bool:
        return not self.failures


class WrongAnswerSync:
    def __init__(
        self,
        store: RecordStore,
        cache: WrongAnswerCache | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._cache = cache or WrongAnswerCache()
        self._clock = clock
        self._identity: Identity | None = None

    @property
    def cache(self) -> WrongAnswerCache:
        return self._cache

    @property
    def identity(self) -> Identity | None:
        return self._identity

    def switch_identity(self, identity: Identity | None) -> None:
        """Drop everything cached for the previous identity."""

        previous = self._identity.uid if self._identity else None
        self._identity = identity
        self._cache.reset(identity.uid if identity else None)
        if previous != (identity.uid if identity else None):
            log.info("identity switched from=%s to=%s", previous, identity.uid if identity else None)

    async def refresh(self, identity: Identity | None) -> WrongAnswerCache:
        """Replace the cache with the store's records for ``identity``; ``None`` clears it."""

        if identity is None:
            self.switch_identity(None)
            return self._cache
        if self._identity is None or self._identity.uid != identity.uid:
            self.switch_identity(identity)

        generation = self._cache.generation
        records = await self._store.fetch_all(identity.uid)
        if not self._is_current(generation, identity):
            log.info("dropping stale refresh for uid=%s", identity.uid)
            return self._cache
        self._cache.replace(records)
        log.debug("refreshed uid=%s records=%d", identity.uid, len(records))
        return self._cache

    async def record_miss(self, identity: Identity, question: Question) -> str:
        """Increment the existing record or create one with ``count == 1``."""

        now = self._clock()
        generation = self._cache.generation
        write = asyncio.ensure_future(self._create_or_increment(identity.uid, question, now))
        if self._is_current(generation, identity):
            self._cache.note_miss(question.id, question.prompt, now)
        return await write

    async def record_correction(self, identity: Identity, question: Question) -> bool:
        """Stamp ``last_correct``; a missing record makes this a no-op returning False."""

        now = self._clock()
        generation = self._cache.generation
        try:
            await self._store.mark_correct(identity.uid, question.id, now)
        except MissingRecord:
            log.debug("no record to correct uid=%s question=%s", identity.uid, question.id)
            return False
        if self._is_current(generation, identity):
            self._cache.note_correction(question.id, now)
        else:
            log.info("dropping stale correction uid=%s question=%s", identity.uid, question.id)
        return True

    async def apply(self, identity: Identity | None, result: GradeResult) -> SyncReport:
        """Fire every miss and correction of one grading pass concurrently."""

        if identity is None:
            return SyncReport()

        jobs: list[tuple[str, str]] = []
        calls = []
        for question in result.missed:
            jobs.append((question.id, "miss"))
            calls.append(self.record_miss(identity, question))
        for question in result.corrected:
            jobs.append((question.id, "correction"))
            calls.append(self.record_correction(identity, question))

        results = await asyncio.gather(*calls, return_exceptions=True)

        outcomes: list[SyncOutcome] = []
        for (question_id, operation), value in zip(jobs, results):
            if isinstance(value, BaseException):
                failure = SyncWriteFailure(question_id, operation, value)
                log.warning("sync %s failed uid=%s question=%s", operation, identity.uid, question_id, exc_info=value)
                outcomes.append(SyncOutcome(question_id, operation, error=failure))
            elif operation == "correction":
                outcomes.append(SyncOutcome(question_id, operation, CORRECTED if value else NOOP))
            else:
                outcomes.append(SyncOutcome(question_id, operation, value))

        report = SyncReport(tuple(outcomes))
        if report.failures:
            log.warning("sync finished with %d/%d failures", len(report.failures), len(outcomes))
        return report

    async def _create_or_increment(self, user_id: str, question: Question, now: datetime) -> str:
        try:
            await self._store.increment(user_id, question.id, question.prompt, now)
            return INCREMENTED
        except MissingRecord:
            pass
        try:
            await self._store.create(user_id, question.id, question.prompt, now)
            return CREATED
        except IntegrityError:
            # another writer created it between our increment and create
            log.debug("create raced uid=%s question=%s; retrying increment", user_id, question.id)
            await self._store.increment(user_id, question.id, question.prompt, now)
            return INCREMENTED

    def _is_current(self, generation: int, identity: Identity) -> bool:
        return self._cache.generation == generation and self._cache.owner == identity.uid


__all__ = ["SyncOutcome", "SyncReport", "WrongAnswerSync"]
