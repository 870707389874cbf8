"""httpx helpers used to fetch remote question banks."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Iterator

import httpx

from quizdesk.config import settings

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (httpx.TimeoutException, httpx.NetworkError)


def configured_timeout() -> httpx.Timeout:
    # the total budget also caps how long a request may wait for a pooled connection
    return httpx.Timeout(
        settings.HTTP_TIMEOUT_TOTAL,
        connect=settings.HTTP_TIMEOUT_CONNECT,
        read=settings.HTTP_TIMEOUT_READ,
        write=settings.HTTP_TIMEOUT_WRITE,
    )


@asynccontextmanager
async def async_http_client(**overrides: Any) -> AsyncIterator[httpx.AsyncClient]:
    """Yield an ``AsyncClient`` with the configured timeouts and optional proxy."""

    options: dict[str, Any] = {"timeout": configured_timeout(), "follow_redirects": True}
    if settings.HTTP_PROXY_URL:
        options["proxy"] = settings.HTTP_PROXY_URL
    options.update(overrides)
    async with httpx.AsyncClient(**options) as client:
        yield client


def _backoff(initial: float, cap: float) -> Iterator[float]:
    delay = max(0.0, initial)
    while True:
        yield delay
        delay *= 2
        if cap > 0:
            delay = min(delay, cap)


async def request_with_retries(
    method: str,
    url: str,
    *,
    client: httpx.AsyncClient,
    retries: int | None = None,
    backoff_factor: float | None = None,
    backoff_max: float | None = None,
    retry_statuses: Iterable[int] | None = None,
    **kwargs: Any,
) -> httpx.Response:
    """Send a request, retrying timeouts, network errors and retryable statuses.

    Once attempts run out the last retryable response is returned as is, and
    the last transport error is re-raised.
    """

    retries = settings.HTTP_RETRY_ATTEMPTS if retries is None else retries
    statuses = frozenset(settings.HTTP_RETRY_STATUS_CODES if retry_statuses is None else retry_statuses)
    delays = _backoff(
        settings.HTTP_RETRY_BACKOFF_INITIAL if backoff_factor is None else backoff_factor,
        settings.HTTP_RETRY_BACKOFF_MAX if backoff_max is None else backoff_max,
    )
    total = max(1, int(retries) + 1)

    for attempt in range(1, total + 1):
        final = attempt == total
        try:
            response = await client.request(method, url, **kwargs)
        except TRANSIENT_ERRORS as exc:
            logger.warning("%s %s attempt %s/%s: %s", method, url, attempt, total, exc)
            if final:
                raise
        else:
            if response.status_code not in statuses:
                return response
            logger.warning("%s %s attempt %s/%s: status %s", method, url, attempt, total, response.status_code)
            if final:
                return response

        delay = next(delays)
        if delay > 0:
            await asyncio.sleep(delay)

    raise AssertionError("unreachable")


__all__ = ["async_http_client", "configured_timeout", "request_with_retries"]
