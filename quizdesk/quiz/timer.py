"""Countdown for timed quizzes that resumes across reloads.

The first start for a token persists the current wall-clock instant; later
starts with the same token reuse it, so a reload resumes the countdown instead
of resetting it. Only :meth:`SessionTimer.restart` (confirmed by the user)
replaces the stored instant.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import suppress
from typing import Callable

from quizdesk.config import settings
from quizdesk.events import EventHub, TimerExpired, TimerTick
from quizdesk.storage import TimerStateStore

logger = logging.getLogger("timer")


class SessionTimer:
    def __init__(
        self,
        store: TimerStateStore,
        *,
        hub: EventHub | None = None,
        duration: float | None = None,
        interval: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._hub = hub or EventHub()
        self._duration = float(duration if duration is not None else settings.TIMED_DURATION_SECONDS)
        self._interval = float(interval if interval is not None else settings.TIMER_POLL_INTERVAL)
        self._clock = clock
        self._token: str | None = None
        self._started_ms: int | None = None
        self._expired = False
        self._task: asyncio.Task[None] | None = None

    @property
    def duration(self) -> float:
        return self._duration

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def expired(self) -> bool:
        return self._expired

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def started_ms(self) -> int | None:
        return self._started_ms

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def remaining(self) -> float:
        if self._started_ms is None:
            return self._duration
        elapsed = (self._now_ms() - self._started_ms) / 1000
        return max(0.0, self._duration - elapsed)

    async def elapsed(self, token: str) -> float | None:
        """Seconds since the stored start for ``token``; None if never started."""

        started = await self._store.get_start(token)
        if started is None:
            return None
        return max(0.0, (self._now_ms() - started) / 1000)

    async def start(self, token: str) -> float:
        """Start or resume the countdown for ``token`` and return the remaining seconds."""

        self.stop()
        started = await self._store.get_start(token)
        if started is None:
            started = self._now_ms()
            await self._store.set_start(token, started)
            logger.info("timer started token=%s", token)
        else:
            logger.info("timer resumed token=%s started_ms=%s", token, started)

        self._token = token
        self._started_ms = started
        self._expired = False

        remaining = await self._tick(token)
        if remaining > 0:
            self._task = asyncio.create_task(self._run(token), name=f"quiz-timer:{token}")
        return remaining

    async def restart(self, token: str, *, confirmed: bool) -> bool:
        """Discard the stored start for ``token`` and count down from the full duration."""

        if not confirmed:
            logger.info("timer restart declined token=%s", token)
            return False
        self.stop()
        await self._store.clear_start(token)
        await self.start(token)
        return True

    def stop(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def aclose(self) -> None:
        task = self._task
        self.stop()
        if task is not None and task is not asyncio.current_task():
            with suppress(asyncio.CancelledError):
                await task
        await self._store.aclose()

    async def _run(self, token: str) -> None:
        while True:
            await asyncio.sleep(self._interval)
            if self._token != token:
                return
            remaining = await self._tick(token)
            if remaining <= 0:
                return

    async def _tick(self, token: str) -> float:
        remaining = self.remaining()
        await self._hub.publish(TimerTick(token=token, remaining=remaining))
        if remaining <= 0 and not self._expired:
            self._expired = True
            self._task = None
            logger.info("timer expired token=%s", token)
            await self._hub.publish(TimerExpired(token=token))
        return remaining


__all__ = ["SessionTimer"]
