import pytest
from pydantic import ValidationError

from quizdesk.config import Settings


def test_defaults(monkeypatch):
    for name in ("QUIZ_SIZE", "TIMED_QUIZ_SIZE", "TIMED_DURATION_SECONDS", "TOKEN_FILLER"):
        monkeypatch.delenv(name, raising=False)
    cfg = Settings(_env_file=None)
    assert cfg.QUIZ_SIZE == 5
    assert cfg.TIMED_QUIZ_SIZE == 10
    assert cfg.TIMED_DURATION_SECONDS == 600
    assert cfg.timed_duration_ms == 600_000
    assert cfg.TIMER_POLL_INTERVAL == 0.5
    assert cfg.TOKEN_FILLER == "A"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("QUIZ_SIZE", "8")
    monkeypatch.setenv("token_filler", "z")
    monkeypatch.setenv("TIMER_STORE", "Redis")
    cfg = Settings(_env_file=None)
    assert cfg.QUIZ_SIZE == 8
    assert cfg.TOKEN_FILLER == "Z"
    assert cfg.TIMER_STORE == "redis"


@pytest.mark.parametrize("field, value", [("TOKEN_FILLER", "7"), ("TOKEN_FILLER", "AB"), ("TIMER_STORE", "s3"), ("QUIZ_SIZE", 0)])
def test_invalid_values_rejected(field, value):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{field: value})
