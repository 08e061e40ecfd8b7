"""JSON-over-HTTP client for the economic data API, with retry and an asyncio adapter."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10
DEFAULT_RETRIES = 3
BACKOFF_BASE = 2.0
MAX_RETRY_AFTER = 30.0

# 429 and gateway-type failures are worth another attempt; other statuses are final.
RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


class NetworkError(Exception):
    """The upstream could not be reached or answered with a failing status."""


class ParseError(Exception):
    """The upstream answered, but not with JSON."""


def _retry_delay(attempt: int, resp: requests.Response | None) -> float:
    """Exponential backoff, unless a 429 names its own ``Retry-After`` in seconds."""
    if resp is not None and resp.status_code == 429:
        header = resp.headers.get("Retry-After", "")
        if header.strip().isdigit():
            return min(float(header), MAX_RETRY_AFTER)
    return BACKOFF_BASE ** attempt


def get_json(
    url: str,
    *,
    params: dict[str, Any] | None = None,
    timeout: int = DEFAULT_TIMEOUT,
    retries: int = DEFAULT_RETRIES,
    session: requests.Session | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """
    GET *url* and decode the body as JSON.

    Only *url* is logged, never *params*: the API key travels in the query.

    Raises:
        NetworkError: connection failure, timeout, or a non-2xx status after retries.
        ParseError:   a 2xx response whose body is not JSON.
    """
    client = session or requests.Session()
    attempts = max(1, retries)
    failure = "no attempt made"

    for attempt in range(1, attempts + 1):
        resp: requests.Response | None = None
        try:
            resp = client.get(url, params=params, timeout=timeout)
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as exc:
            failure = type(exc).__name__
        else:
            if resp.ok:
                try:
                    return resp.json()
                except ValueError as exc:
                    raise ParseError(f"Response from {url} is not valid JSON") from exc
            failure = f"HTTP {resp.status_code}"
            if resp.status_code not in RETRYABLE_STATUS:
                logger.warning("%s from %s (not retried)", failure, url)
                break

        logger.warning("%s on attempt %d/%d: %s", failure, attempt, attempts, url)
        if attempt < attempts:
            wait = _retry_delay(attempt - 1, resp)
            logger.debug("Retrying %s in %.1fs", url, wait)
            sleep(wait)

    raise NetworkError(f"GET {url} failed: {failure}")


async def aget_json(url: str, **kwargs: Any) -> Any:
    """Await :func:`get_json`; the blocking request runs in a worker thread."""
    return await asyncio.to_thread(get_json, url, **kwargs)
