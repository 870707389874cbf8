import json

import pytest

from quizdesk.config import Settings
from quizdesk.storage import FileTimerStore, MemoryTimerStore, RedisTimerStore, build_timer_store, timer_key


def test_timer_key_format():
    assert timer_key("ABCD") == "timed_ABCD_start"


@pytest.mark.asyncio
async def test_memory_store_roundtrip():
    store = MemoryTimerStore()
    assert await store.get_start("ABCD") is None
    await store.set_start("ABCD", 1234)
    assert await store.get_start("ABCD") == 1234
    await store.clear_start("ABCD")
    assert await store.get_start("ABCD") is None


@pytest.mark.asyncio
async def test_file_store_survives_new_instance(tmp_path):
    path = tmp_path / "state" / "timers.json"
    await FileTimerStore(path).set_start("WXYZ", 42_000)

    assert json.loads(path.read_text(encoding="utf-8")) == {"timed_WXYZ_start": 42_000}
    assert await FileTimerStore(path).get_start("WXYZ") == 42_000

    await FileTimerStore(path).clear_start("WXYZ")
    assert await FileTimerStore(path).get_start("WXYZ") is None


@pytest.mark.asyncio
async def test_file_store_tolerates_garbage(tmp_path, caplog):
    path = tmp_path / "timers.json"
    path.write_text("{not json", encoding="utf-8")
    store = FileTimerStore(path)
    assert await store.get_start("ABCD") is None

    path.write_text(json.dumps({"timed_ABCD_start": "soon"}), encoding="utf-8")
    assert await store.get_start("ABCD") is None
    assert "malformed timer state" in caplog.text


def test_build_timer_store_backends(tmp_path):
    assert isinstance(build_timer_store(Settings(TIMER_STORE="memory")), MemoryTimerStore)
    assert isinstance(build_timer_store(Settings(TIMER_STORE="redis")), RedisTimerStore)
    file_store = build_timer_store(Settings(TIMER_STORE="file", TIMER_STATE_FILE=str(tmp_path / "t.json")))
    assert isinstance(file_store, FileTimerStore)


@pytest.mark.asyncio
async def test_redis_store_uses_timer_keys(monkeypatch):
    from quizdesk import storage_redis

    calls = []

    async def fake_get(key):
        calls.append(("get", key))
        return 99

    async def fake_set(key, value):
        calls.append(("set", key, value))

    async def fake_delete(key):
        calls.append(("delete", key))

    monkeypatch.setattr(storage_redis, "timer_get", fake_get)
    monkeypatch.setattr(storage_redis, "timer_set", fake_set)
    monkeypatch.setattr(storage_redis, "timer_delete", fake_delete)

    store = RedisTimerStore()
    assert await store.get_start("ABCD") == 99
    await store.set_start("ABCD", 5)
    await store.clear_start("ABCD")
    assert calls == [
        ("get", "timed_ABCD_start"),
        ("set", "timed_ABCD_start", 5),
        ("delete", "timed_ABCD_start"),
    ]


@pytest.mark.asyncio
async def test_timer_shutdown_closes_the_redis_client(monkeypatch):
    from quizdesk import storage_redis
    from quizdesk.quiz.timer import SessionTimer

    class FakeClient:
        closed = False

        async def aclose(self):
            self.closed = True

    client = FakeClient()
    monkeypatch.setattr(storage_redis, "_redis", client)

    timer = SessionTimer(RedisTimerStore(), duration=600, interval=60)
    await timer.aclose()

    assert client.closed
    assert storage_redis._redis is None
