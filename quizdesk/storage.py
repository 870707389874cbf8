"""Durable storage for timed-quiz start instants.

A start instant is stored as epoch milliseconds under ``timed_<TOKEN>_start``;
absence means the timer for that token has not been started yet.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Dict, Protocol

from quizdesk.config import Settings, settings

logger = logging.getLogger("storage")


def timer_key(token: str) -> str:
    return f"timed_{token}_start"


class TimerStateStore(Protocol):
    async def get_start(self, token: str) -> int | None: ...

    async def set_start(self, token: str, started_ms: int) -> None: ...

    async def clear_start(self, token: str) -> None: ...

    async def aclose(self) -> None: ...


class MemoryTimerStore:
    """Process-local store, mainly for tests."""

    def __init__(self, initial: Mapping[str, int] | None = None) -> None:
        self._data: Dict[str, int] = dict(initial or {})

    async def get_start(self, token: str) -> int | None:
        return self._data.get(timer_key(token))

    async def set_start(self, token: str, started_ms: int) -> None:
        self._data[timer_key(token)] = int(started_ms)

    async def clear_start(self, token: str) -> None:
        self._data.pop(timer_key(token), None)

    async def aclose(self) -> None:
        return None


class FileTimerStore:
    """JSON file store that survives process restarts."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    async def get_start(self, token: str) -> int | None:
        data = self._read()
        value = data.get(timer_key(token))
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed timer state for token=%s: %r", token, value)
            return None

    async def set_start(self, token: str, started_ms: int) -> None:
        async with self._lock:
            data = self._read()
            data[timer_key(token)] = int(started_ms)
            self._write(data)

    async def clear_start(self, token: str) -> None:
        async with self._lock:
            data = self._read()
            if data.pop(timer_key(token), None) is not None:
                self._write(data)

    async def aclose(self) -> None:
        return None

    def _read(self) -> Dict[str, object]:
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError:
            logger.warning("Invalid timer state file: %s", self._path)
            return {}
        if not isinstance(payload, Mapping):
            return {}
        return dict(payload)

    def _write(self, data: Mapping[str, object]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(dict(data), sort_keys=True, indent=2), encoding="utf-8")


class RedisTimerStore:
    async def get_start(self, token: str) -> int | None:
        from quizdesk import storage_redis

        return await storage_redis.timer_get(timer_key(token))

    async def set_start(self, token: str, started_ms: int) -> None:
        from quizdesk import storage_redis

        await storage_redis.timer_set(timer_key(token), started_ms)

    async def clear_start(self, token: str) -> None:
        from quizdesk import storage_redis

        await storage_redis.timer_delete(timer_key(token))

    async def aclose(self) -> None:
        from quizdesk import storage_redis

        await storage_redis.close()


def build_timer_store(settings_obj: Settings | None = None) -> TimerStateStore:
    cfg = settings_obj or settings
    backend = cfg.TIMER_STORE
    if backend == "redis":
        return RedisTimerStore()
    if backend == "memory":
        return MemoryTimerStore()
    return FileTimerStore(cfg.TIMER_STATE_FILE)


__all__ = [
    "FileTimerStore",
    "MemoryTimerStore",
    "RedisTimerStore",
    "TimerStateStore",
    "build_timer_store",
    "timer_key",
]
