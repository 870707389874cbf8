"""Signed-in identity as supplied by the external identity provider."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from quizdesk.events import EventHub, IdentityChanged

logger = logging.getLogger("identity")


@dataclass(frozen=True)
class Identity:
    uid: str
    display_name: str | None = None
    email: str | None = None

    @property
    def label(self) -> str:
        return self.display_name or self.email or "User"


class IdentityFeed:
    """In-process identity provider publishing sign-in/sign-out transitions."""

    def __init__(self) -> None:
        self._hubs: list[EventHub] = []
        self._current: Identity | None = None

    @property
    def current(self) -> Identity | None:
        return self._current

    def subscribe(self, hub: EventHub) -> None:
        if hub not in self._hubs:
            self._hubs.append(hub)

    async def sign_in(self, identity: Identity) -> None:
        logger.info("signed in uid=%s name=%s", identity.uid, identity.label)
        await self._publish(identity)

    async def sign_out(self) -> None:
        if self._current is not None:
            logger.info("signed out uid=%s", self._current.uid)
        await self._publish(None)

    async def _publish(self, identity: Identity | None) -> None:
        self._current = identity
        for hub in list(self._hubs):
            await hub.publish(IdentityChanged(identity))


__all__ = ["Identity", "IdentityFeed"]
