"""Typed event subscriptions between the engine components."""

from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar, Union

if TYPE_CHECKING:  # pragma: no cover - import only for typing
    from quizdesk.identity import Identity

logger = logging.getLogger(__name__)

E = TypeVar("E")
Handler = Callable[[Any], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class IdentityChanged:
    identity: "Identity | None"


@dataclass(frozen=True)
class BankLoaded:
    count: int
    exams: tuple[str, ...]


@dataclass(frozen=True)
class TimerTick:
    token: str
    remaining: float


@dataclass(frozen=True)
class TimerExpired:
    token: str


class EventHub:
    """Dispatch events to handlers registered for the event's exact type."""

    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Callable[[E], Any]) -> Callable[[], None]:
        """Register ``handler`` and return a callable that removes it again."""

        self._handlers[event_type].append(handler)

        def _unsubscribe() -> None:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

        return _unsubscribe

    async def publish(self, event: object) -> None:
        for handler in list(self._handlers.get(type(event), ())):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("event handler failed for %s", type(event).__name__)


__all__ = ["BankLoaded", "EventHub", "IdentityChanged", "TimerExpired", "TimerTick"]
