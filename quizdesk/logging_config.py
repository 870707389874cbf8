"""Logging setup for the quiz engine: console plus two rotating files."""

from __future__ import annotations

import logging
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

MAIN_LOG = "quizdesk.log"
ERROR_LOG = "errors.log"

# identity display names and e-mails pass through these
SCRUBBED_LOGGERS = ("sync", "identity")
QUIET_LOGGERS = {"aiosqlite": logging.WARNING, "httpx": logging.WARNING, "sqlalchemy.engine": logging.WARNING}

_EMAIL = re.compile(r"\b[\w.%+-]+@[\w.-]+\.[a-z]{2,}\b", re.IGNORECASE)
_CREDENTIAL = re.compile(r"\b(api_?key|secret|password)(\s*[=:]\s*)\S{4,}", re.IGNORECASE)


def scrub(text: str) -> str:
    text = _EMAIL.sub("<email>", text)
    return _CREDENTIAL.sub(r"\1\2<secret>", text)


class PiiScrubbingFilter(logging.Filter):
    """Renders the message once and masks e-mails and credential values in it."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = scrub(record.getMessage())
        record.args = ()
        return True


def resolve_log_level(value: str | int | None) -> int:
    """Accept ``"debug"``, ``"10"`` or ``10``; anything else falls back to INFO."""

    if isinstance(value, int):
        return value
    text = str(value or "").strip()
    if text.isdigit():
        return int(text)
    level = logging.getLevelName(text.upper())
    return level if isinstance(level, int) else logging.INFO


def _rotating(path: Path, max_bytes: int, backups: int, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backups, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _drop_handlers(root: logging.Logger) -> None:
    for handler in list(root.handlers):
        root.removeHandler(handler)
        try:
            handler.close()
        except Exception:  # pragma: no cover
            pass


def setup_logging(log_dir: str = "logs", level: int = logging.INFO) -> None:
    """(Re)configure the root logger; safe to call more than once."""

    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    root = logging.getLogger()
    _drop_handlers(root)
    root.setLevel(level)

    console = logging.StreamHandler()
    console.setLevel(max(level, logging.WARNING))
    console.setFormatter(formatter)

    errors = _rotating(directory / ERROR_LOG, 2_000_000, 3, logging.WARNING, formatter)
    errors.addFilter(PiiScrubbingFilter())

    for handler in (console, _rotating(directory / MAIN_LOG, 5_000_000, 5, level, formatter), errors):
        root.addHandler(handler)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    for name in SCRUBBED_LOGGERS:
        scrubbed = logging.getLogger(name)
        for existing in [f for f in scrubbed.filters if isinstance(f, PiiScrubbingFilter)]:
            scrubbed.removeFilter(existing)
        scrubbed.addFilter(PiiScrubbingFilter())

    root.info("logging initialized, level=%s dir=%s", logging.getLevelName(level), directory.resolve())


__all__ = ["PiiScrubbingFilter", "resolve_log_level", "scrub", "setup_logging"]
