"""Question bank loading with default-filling at the boundary."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Sequence

import httpx
import yaml

from quizdesk.config import settings
from quizdesk.errors import BankLoadError
from quizdesk.http_client import async_http_client, request_with_retries
from quizdesk.quiz.models import Question

logger = logging.getLogger("bank")

_YAML_SUFFIXES = {".yaml", ".yml"}


def _coerce_year(value: Any) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


def _coerce_answer(value: Any) -> int:
    if isinstance(value, bool):
        return -1
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return -1


def question_from_dict(raw: dict[str, Any], index: int) -> Question:
    """Build a :class:`Question`, filling defaults for anything missing."""

    exam = str(raw.get("exam") or "")
    year = _coerce_year(raw.get("year"))

    raw_id = raw.get("id")
    if raw_id is None or raw_id == "":
        qid = f"{raw.get('exam') or 'Q'}-{raw.get('year') or '0'}-{index}"
    else:
        qid = str(raw_id)

    prompt = raw.get("question")
    if prompt is None:
        prompt = raw.get("prompt", "")

    options_raw = raw.get("options") or []
    if isinstance(options_raw, (str, bytes)) or not isinstance(options_raw, Sequence):
        options_raw = []
    options = tuple(str(option) for option in options_raw)

    answer = raw.get("answer")
    if answer is None:
        answer = raw.get("answerIndex")

    image = raw.get("image") or None

    return Question(
        id=qid,
        exam=exam,
        year=year,
        prompt=str(prompt or ""),
        options=options,
        answer_index=_coerce_answer(answer),
        explanation=str(raw.get("explanation") or ""),
        image=str(image) if image is not None else None,
    )


def parse_bank(payload: Any, *, source: str = "question bank") -> list[Question]:
    """Validate a decoded bank payload and convert it into questions."""

    if not isinstance(payload, list):
        raise BankLoadError(source, "question bank must be an array")

    questions: list[Question] = []
    for index, raw in enumerate(payload):
        if not isinstance(raw, dict):
            logger.warning("Skipping malformed bank entry #%s in %s", index, source)
            continue
        questions.append(question_from_dict(raw, index))
    return questions


def list_exams(questions: Sequence[Question]) -> list[str]:
    """Return distinct non-empty exam labels in sorted order."""

    return sorted({question.exam for question in questions if question.exam})


def _is_url(source: str) -> bool:
    return source.startswith("http://") or source.startswith("https://")


def _read_file(path: Path) -> Any:
    with path.open(encoding="utf-8") as fh:
        if path.suffix.lower() in _YAML_SUFFIXES:
            return yaml.safe_load(fh)
        return json.load(fh)


async def _fetch_url(url: str, client: httpx.AsyncClient | None) -> Any:
    async def _get(active: httpx.AsyncClient) -> Any:
        response = await request_with_retries(
            "GET",
            url,
            client=active,
            headers={"Cache-Control": "no-store"},
        )
        if response.status_code >= 400:
            raise BankLoadError(url, f"HTTP {response.status_code}")
        return response.json()

    if client is not None:
        return await _get(client)
    async with async_http_client() as fresh:
        return await _get(fresh)


async def load_bank(
    source: str | Path | None = None,
    *,
    client: httpx.AsyncClient | None = None,
) -> list[Question]:
    """Load the question bank from a local JSON/YAML file or an HTTP URL."""

    location = str(source or settings.QUESTIONS_SOURCE)
    try:
        if _is_url(location):
            payload = await _fetch_url(location, client)
        else:
            payload = await asyncio.to_thread(_read_file, Path(location))
        questions = parse_bank(payload, source=location)
    except BankLoadError:
        raise
    except FileNotFoundError as exc:
        raise BankLoadError(location, "file not found") from exc
    except (httpx.HTTPError, OSError) as exc:
        raise BankLoadError(location, str(exc) or type(exc).__name__) from exc
    except (ValueError, TypeError, OverflowError, yaml.YAMLError) as exc:
        raise BankLoadError(location, f"invalid content: {exc}") from exc

    logger.info("bank loaded source=%s questions=%s", location, len(questions))
    return questions


__all__ = ["list_exams", "load_bank", "parse_bank", "question_from_dict"]
