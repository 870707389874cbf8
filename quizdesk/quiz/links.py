"""Helpers for round-tripping a quiz token and exam filter through a URL."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from quizdesk.quiz.models import ALL_EXAMS

TOKEN_PARAM = "quiz"
EXAM_PARAM = "exam"


@dataclass(frozen=True)
class ShareParams:
    token: str | None
    exam: str = ALL_EXAMS


def build_share_url(base_url: str, token: str | None, exam: str | None = ALL_EXAMS) -> str:
    """Return ``base_url`` with the quiz token and exam filter applied."""

    parts = urlsplit(base_url)
    params = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True, errors="surrogateescape")
        if key not in (TOKEN_PARAM, EXAM_PARAM)
    ]
    if token:
        params.append((TOKEN_PARAM, token))
    if exam and exam != ALL_EXAMS:
        params.append((EXAM_PARAM, exam))
    return urlunsplit(parts._replace(query=urlencode(params, errors="surrogateescape")))


def parse_share_url(url: str) -> ShareParams:
    """Extract the token and exam filter; the token is returned unsanitized."""

    query = dict(parse_qsl(urlsplit(url).query, keep_blank_values=False, errors="surrogateescape"))
    token = query.get(TOKEN_PARAM) or None
    exam = query.get(EXAM_PARAM) or ALL_EXAMS
    return ShareParams(token=token, exam=exam)


__all__ = ["EXAM_PARAM", "ShareParams", "TOKEN_PARAM", "build_share_url", "parse_share_url"]
