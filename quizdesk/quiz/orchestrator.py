"""Session orchestrator: one object owning all state of the quiz page.

Every user action returns an :class:`ActionResult`. Bank, selection and
persistence errors come back as ``ActionResult.error`` and leave the previous
session untouched; wrong-answer sync failures are logged inside the sync
engine and only show up in ``ActionResult.sync``.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence

from quizdesk.config import Settings, settings
from quizdesk.db.session import session_scope
from quizdesk.errors import BankLoadError, InsufficientQuestions
from quizdesk.events import BankLoaded, EventHub, IdentityChanged, TimerExpired, TimerTick
from quizdesk.identity import Identity
from quizdesk.quiz import selection
from quizdesk.quiz.bank import list_exams, load_bank
from quizdesk.quiz.grading import GradeResult, grade
from quizdesk.quiz.links import build_share_url
from quizdesk.quiz.models import ALL_EXAMS, Phase, Question, QuizMode, QuizSession
from quizdesk.quiz.timer import SessionTimer
from quizdesk.quiz.views import QuestionView, ScoreView, format_remaining, render_session, score_view
from quizdesk.repo import attempts as attempts_repo
from quizdesk.repo import scores as scores_repo
from quizdesk.repo.attempts import ProfileSummary, summarize_attempts
from quizdesk.storage import TimerStateStore, build_timer_store
from quizdesk.tracking.store import SqlRecordStore
from quizdesk.tracking.sync import SyncReport, WrongAnswerSync

logger = logging.getLogger(__name__)

BankLoader = Callable[[], Awaitable[Sequence[Question]]]

RESTART_CONFIRMATION = "Restarting clears your answers and resets the timer. Confirm to continue."
ALREADY_SUBMITTED = "This quiz has already been submitted."
SIGN_IN_REQUIRED = "Sign in to use this feature."


@dataclass(frozen=True)
class ActionResult:
    views: tuple[QuestionView, ...] = ()
    score: ScoreView | None = None
    error: str | None = None
    share_url: str | None = None
    sync: SyncReport | None = None
    needs_confirmation: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.needs_confirmation


class QuizOrchestrator:
    def __init__(
        self,
        *,
        hub: EventHub | None = None,
        sync: WrongAnswerSync | None = None,
        timer: SessionTimer | None = None,
        timer_store: TimerStateStore | None = None,
        loader: BankLoader | None = None,
        scope_factory: Callable[[], Any] = session_scope,
        settings_obj: Settings | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._settings = settings_obj or settings
        self.hub = hub or EventHub()
        self.sync = sync or WrongAnswerSync(SqlRecordStore(scope_factory))
        self.timer = timer or SessionTimer(
            timer_store or build_timer_store(self._settings),
            hub=self.hub,
            duration=self._settings.TIMED_DURATION_SECONDS,
            interval=self._settings.TIMER_POLL_INTERVAL,
        )
        self._loader = loader or load_bank
        self._scope = scope_factory
        self._rng = rng or random.Random()

        self.phase = Phase.EMPTY
        self.bank: list[Question] = []
        self.session: QuizSession | None = None
        self.result: GradeResult | None = None
        self.identity: Identity | None = None
        self.remaining: float | None = None
        self._resuming = False

        self._unsubscribe = [
            self.hub.subscribe(IdentityChanged, self._on_identity_changed),
            self.hub.subscribe(TimerExpired, self._on_timer_expired),
            self.hub.subscribe(TimerTick, self._on_timer_tick),
        ]

    # ------------------------------------------------------------------ state

    @property
    def exams(self) -> list[str]:
        return list_exams(self.bank)

    @property
    def remaining_text(self) -> str | None:
        if self.remaining is None:
            return None
        return format_remaining(self.remaining)

    def views(self) -> tuple[QuestionView, ...]:
        if self.session is None:
            return ()
        missed = self.sync.cache.missed if self.identity else {}
        return tuple(render_session(self.session, missed=missed, result=self.result))

    def share_link(self) -> str | None:
        if self.session is None or self.session.token is None:
            return None
        return build_share_url(self._settings.SHARE_BASE_URL, self.session.token, self.session.exam)

    def _current(self, **extra: Any) -> ActionResult:
        score = score_view(self.result) if self.result is not None else None
        return ActionResult(views=self.views(), score=score, share_url=self.share_link(), **extra)

    def _fail(self, message: str, **extra: Any) -> ActionResult:
        return self._current(error=message, **extra)

    def _activate(self, session: QuizSession) -> None:
        self.session = session
        self.result = None
        self.phase = Phase.ACTIVE

    # ------------------------------------------------------------------ bank

    async def load(self) -> ActionResult:
        """Fetch the bank; on failure the previous state stays as it was."""

        try:
            questions = list(await self._loader())
        except BankLoadError as exc:
            logger.warning("bank load failed: %s", exc)
            return self._fail(str(exc))

        self.bank = questions
        if self.phase is Phase.EMPTY:
            self.phase = Phase.LOADED
        await self.hub.publish(BankLoaded(count=len(questions), exams=tuple(self.exams)))
        return self._current()

    async def _ensure_bank(self) -> str | None:
        if self.bank:
            return None
        loaded = await self.load()
        return loaded.error

    # ------------------------------------------------------------------ casual quiz

    async def shuffle(self, exam: str | None = None) -> ActionResult:
        """Draw a fresh random set, discarding any selections.

        Allowed from Active and Graded alike; from Graded it is the same move as
        :meth:`next` for a casual quiz, and leaves a timed or review session for a
        casual one.
        """

        error = await self._ensure_bank()
        if error:
            return self._fail(error)

        exam = exam or (self.session.exam if self.session else ALL_EXAMS)
        try:
            questions = selection.select_random(self.bank, self._settings.QUIZ_SIZE, exam, rng=self._rng)
        except InsufficientQuestions as exc:
            return self._fail(str(exc))

        self.timer.stop()
        self.remaining = None
        self._activate(QuizSession(mode=QuizMode.RANDOM, questions=questions, exam=exam))
        return self._current()

    def choose(self, position: int, option_index: int) -> ActionResult:
        if self.phase is Phase.GRADED:
            return self._fail(ALREADY_SUBMITTED)
        if self.phase is not Phase.ACTIVE or self.session is None:
            return self._fail("No active quiz.")
        question_count = len(self.session)
        if not 0 <= position < question_count:
            return self._fail(f"No question at position {position + 1}.")
        if not 0 <= option_index < len(self.session.questions[position].options):
            return self._fail(f"No option {option_index + 1} for question {position + 1}.")
        self.session.select(position, option_index)
        return self._current()

    async def submit(self) -> ActionResult:
        """Grade the active set; repeated submits and late expiries are no-ops."""

        return await self._grade(track=True)

    async def _grade(self, *, track: bool) -> ActionResult:
        if self.phase is not Phase.ACTIVE or self.session is None:
            return self._current()

        identity = self.identity
        previously_missed = self.sync.cache.missed_ids if identity else frozenset()
        self.result = grade(self.session, previously_missed)
        self.phase = Phase.GRADED
        self.timer.stop()
        logger.info(
            "graded mode=%s token=%s score=%s/%s",
            self.session.mode.value,
            self.session.token,
            self.result.correct,
            self.result.total,
        )

        report = None
        if identity is not None and track:
            report = await self.sync.apply(identity, self.result)
            if self._settings.RECORD_ATTEMPTS:
                await self._record_attempts(identity, self.result)
        return self._current(sync=report)

    async def _record_attempts(self, identity: Identity, result: GradeResult) -> None:
        try:
            async with self._scope() as session:
                for item in result.outcomes:
                    await attempts_repo.record(
                        session,
                        identity.uid,
                        item.question.id,
                        item.question.prompt,
                        not item.outcome.is_wrong,
                    )
                await session.commit()
        except Exception:
            logger.warning("attempt history not recorded uid=%s", identity.uid, exc_info=True)

    async def next(self) -> ActionResult:
        """Move on to a fresh set in the current mode."""

        if self.session is None:
            return await self.shuffle()
        if self.session.mode is QuizMode.TIMED:
            return await self.create_timed(self.session.exam)
        if self.session.mode is QuizMode.REVIEW:
            return await self.review(self.session.exam)
        return await self.shuffle(self.session.exam)

    async def restart(self, *, confirmed: bool = False) -> ActionResult:
        """Timed sessions keep their set and reset the timer; casual ones redraw."""

        if self.session is None or self.session.mode is not QuizMode.TIMED:
            return await self.next()
        if not confirmed:
            return self._current(error=RESTART_CONFIRMATION, needs_confirmation=True)

        token = self.session.token or ""
        self.session.clear_selections()
        self._activate(self.session)
        await self.timer.restart(token, confirmed=True)
        return self._current()

    # ------------------------------------------------------------------ timed quiz

    async def open_by_token(self, token: str, exam: str | None = None) -> ActionResult:
        """Reproduce the timed set for ``token`` and resume its countdown."""

        error = await self._ensure_bank()
        if error:
            return self._fail(error)

        normalized = selection.normalize_token(token, filler=self._settings.TOKEN_FILLER)
        exam = exam or ALL_EXAMS
        questions = selection.questions_for_token(self.bank, self._settings.TIMED_QUIZ_SIZE, normalized, exam)
        if not questions:
            return self._fail(str(InsufficientQuestions(0, self._settings.TIMED_QUIZ_SIZE, exam)))

        self.timer.stop()
        self._activate(QuizSession(mode=QuizMode.TIMED, questions=questions, exam=exam, token=normalized))
        # an expiry fired while resuming only reveals answers; nothing was attempted
        self._resuming = True
        try:
            self.remaining = await self.timer.start(normalized)
        finally:
            self._resuming = False
        if self.session is not None:
            self.session.started_at_ms = self.timer.started_ms
        return self._current()

    async def create_timed(self, exam: str | None = None) -> ActionResult:
        token = selection.random_token(self._rng)
        logger.info("timed quiz created token=%s exam=%s", token, exam or ALL_EXAMS)
        return await self.open_by_token(token, exam)

    # ------------------------------------------------------------------ review

    async def review(self, exam: str | None = None) -> ActionResult:
        if self.identity is None:
            return self._fail(SIGN_IN_REQUIRED)
        error = await self._ensure_bank()
        if error:
            return self._fail(error)

        exam = exam or ALL_EXAMS
        try:
            questions = selection.select_review(self.bank, self.sync.cache.missed, self._settings.QUIZ_SIZE, exam)
        except InsufficientQuestions:
            return self._fail("No previously missed questions to review yet.")

        self.timer.stop()
        self.remaining = None
        self._activate(QuizSession(mode=QuizMode.REVIEW, questions=questions, exam=exam))
        return self._current()

    # ------------------------------------------------------------------ account features

    async def save_score(self) -> ActionResult:
        if self.identity is None:
            return self._fail(SIGN_IN_REQUIRED)
        if self.result is None or self.session is None:
            return self._fail("Submit the quiz before saving your score.")

        try:
            async with self._scope() as session:
                await scores_repo.save(
                    session,
                    self.identity.uid,
                    self.result.correct,
                    self.result.total,
                    exam=self.session.exam,
                    email=self.identity.email,
                    token=self.session.token,
                )
                await session.commit()
        except Exception:
            logger.exception("score save failed uid=%s", self.identity.uid)
            return self._fail("Could not save your score. Please try again.")
        return self._current()

    async def profile(self) -> ProfileSummary | None:
        if self.identity is None:
            return None
        async with self._scope() as session:
            rows = await attempts_repo.list_for_user(session, self.identity.uid)
        return summarize_attempts(rows)

    # ------------------------------------------------------------------ subscriptions

    async def _on_identity_changed(self, event: IdentityChanged) -> None:
        self.identity = event.identity
        if event.identity is None:
            self.sync.switch_identity(None)
            return
        try:
            await self.sync.refresh(event.identity)
        except Exception:
            logger.warning("wrong-answer refresh failed uid=%s", event.identity.uid, exc_info=True)

    async def _on_timer_expired(self, event: TimerExpired) -> None:
        if self.session is None or self.session.token != event.token:
            return
        self.remaining = 0.0
        if self._resuming:
            logger.info("timed quiz already expired on open token=%s; revealing without tracking", event.token)
        await self._grade(track=not self._resuming)

    def _on_timer_tick(self, event: TimerTick) -> None:
        if self.session is not None and self.session.token == event.token:
            self.remaining = event.remaining

    async def aclose(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []
        await self.timer.aclose()


__all__ = ["ActionResult", "QuizOrchestrator"]
