"""
Key-value cache for precomputed representative items.

Cache Keys:
- representative_items:{country}:{category} -> {"items": [...], "timestamp": epoch_ms}

Entries are written with a store-level TTL and additionally carry their own
``timestamp``; readers treat anything older than the expiry window as a
miss, independent of whether the store has evicted it yet.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from typing import Any, Callable, Protocol

import redis

from .models import RepresentativeItem
from .normalize import to_float

logger = logging.getLogger(__name__)

CACHE_EXPIRY_SECONDS = 60 * 60 * 24 * 7  # 7 days


class CacheStore(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...


class RedisCacheStore:
    """Redis-backed store; blocking client calls run in a worker thread."""

    def __init__(self, url: str | None = None):
        self.url = url or os.getenv("REDIS_URL", "redis://localhost:6379/0")
        self._client = redis.from_url(
            self.url,
            decode_responses=True,
            socket_keepalive=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )

    async def get(self, key: str) -> str | None:
        return await asyncio.to_thread(self._client.get, key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await asyncio.to_thread(self._client.setex, key, ttl_seconds, value)


class MemoryCacheStore:
    """In-process store for local runs and tests. Honours TTLs lazily on read."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._data: dict[str, tuple[str, float]] = {}

    async def get(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._data[key] = (value, self._clock() + ttl_seconds)

    def __len__(self) -> int:
        return len(self._data)


def representative_items_key(country: str, category: str) -> str:
    return f"representative_items:{country}:{category}"


def _now_ms() -> int:
    return int(time.time() * 1000)


async def write_cached_items(
    store: CacheStore,
    country: str,
    category: str,
    items: list[RepresentativeItem],
    *,
    now_ms: int | None = None,
    expiry_seconds: int = CACHE_EXPIRY_SECONDS,
) -> None:
    """Overwrite the entry for (country, category). Concurrent writers: last write wins."""
    payload: dict[str, Any] = {
        "items": [item.as_dict() for item in items],
        "timestamp": _now_ms() if now_ms is None else now_ms,
    }
    key = representative_items_key(country, category)
    await store.set(key, json.dumps(payload), expiry_seconds)
    logger.info("Cached %d representative item(s) under %s", len(items), key)


async def read_cached_items(
    store: CacheStore,
    country: str,
    category: str,
    *,
    now_ms: int | None = None,
    expiry_seconds: int = CACHE_EXPIRY_SECONDS,
) -> list[RepresentativeItem]:
    """
    Return fresh cached items for (country, category), or ``[]``.

    Missing, stale, unreadable and malformed entries are all reported as a
    miss so the caller can fall back to static data or recompute.
    """
    key = representative_items_key(country, category)
    try:
        raw = await store.get(key)
    except Exception as exc:
        logger.warning("Cache read failed for %s: %s", key, exc)
        return []
    if not raw:
        return []

    try:
        entry = json.loads(raw)
        timestamp = to_float(entry["timestamp"])
        rows = list(entry["items"])
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
        logger.warning("Malformed cache entry %s: %s", key, exc)
        return []
    if timestamp is None:
        logger.warning("Malformed cache entry %s: timestamp %r", key, entry["timestamp"])
        return []

    now = _now_ms() if now_ms is None else now_ms
    if now - timestamp >= expiry_seconds * 1000:
        logger.debug("Cache entry %s is stale (age %.0fs)", key, (now - timestamp) / 1000)
        return []

    items: list[RepresentativeItem] = []
    for row in rows:
        try:
            items.append(RepresentativeItem.from_dict(row))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Dropping cached item under %s: %s", key, exc)
    return items
