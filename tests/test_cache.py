"""Tests for cache.py"""

import asyncio
import json

from tariff_impact.cache import (
    CACHE_EXPIRY_SECONDS,
    MemoryCacheStore,
    read_cached_items,
    representative_items_key,
    write_cached_items,
)
from tariff_impact.models import RepresentativeItem

ITEMS = [
    RepresentativeItem("Steel Coil", 650.0, 0.55, "$4.2B annual trade volume", "2026-01-05T00:00:00+00:00"),
    RepresentativeItem("Fasteners", 12.5, 0.8, "$0.9B annual trade volume"),
]

T0 = 1_700_000_000_000  # epoch ms


def run(coro):
    return asyncio.run(coro)


def test_key_format():
    assert representative_items_key("China", "Electronics") == "representative_items:China:Electronics"


def test_round_trip_before_expiry():
    store = MemoryCacheStore()
    run(write_cached_items(store, "Canada", "Housing & Utilities", ITEMS, now_ms=T0))
    later = T0 + (CACHE_EXPIRY_SECONDS - 60) * 1000
    assert run(read_cached_items(store, "Canada", "Housing & Utilities", now_ms=later)) == ITEMS


def test_stale_entry_is_a_miss():
    store = MemoryCacheStore()
    run(write_cached_items(store, "Canada", "Housing & Utilities", ITEMS, now_ms=T0))
    expired = T0 + CACHE_EXPIRY_SECONDS * 1000
    assert run(read_cached_items(store, "Canada", "Housing & Utilities", now_ms=expired)) == []


def test_store_ttl_evicts():
    clock = [1000.0]
    store = MemoryCacheStore(clock=lambda: clock[0])
    run(store.set("k", "v", 10))
    assert run(store.get("k")) == "v"
    clock[0] += 10
    assert run(store.get("k")) is None
    assert len(store) == 0


def test_last_write_wins():
    store = MemoryCacheStore()
    run(write_cached_items(store, "China", "Clothing", ITEMS[:1], now_ms=T0))
    run(write_cached_items(store, "China", "Clothing", ITEMS[1:], now_ms=T0 + 1))
    assert run(read_cached_items(store, "China", "Clothing", now_ms=T0 + 2)) == ITEMS[1:]


def test_entry_payload_shape():
    store = MemoryCacheStore()
    run(write_cached_items(store, "Mexico", "Electronics", ITEMS, now_ms=T0))
    raw = json.loads(run(store.get(representative_items_key("Mexico", "Electronics"))))
    assert raw["timestamp"] == T0
    assert raw["items"][0] == {
        "name": "Steel Coil",
        "basePrice": 650.0,
        "importShare": 0.55,
        "explanation": "$4.2B annual trade volume",
        "lastUpdated": "2026-01-05T00:00:00+00:00",
    }


def test_malformed_entries_are_misses():
    store = MemoryCacheStore()
    key = representative_items_key("China", "Electronics")
    for blob in ("not json", json.dumps({"items": []}), json.dumps({"timestamp": T0, "items": [{"name": "x"}]})):
        run(store.set(key, blob, 60))
        assert run(read_cached_items(store, "China", "Electronics", now_ms=T0)) == []


def test_store_errors_are_misses():
    class BrokenStore:
        async def get(self, key):
            raise ConnectionError("redis down")

        async def set(self, key, value, ttl_seconds):
            raise ConnectionError("redis down")

    assert run(read_cached_items(BrokenStore(), "China", "Electronics")) == []


def test_invalid_cached_rows_are_dropped_individually():
    store = MemoryCacheStore()
    key = representative_items_key("China", "Electronics")
    rows = [
        {"name": "NaN Price", "basePrice": float("nan"), "importShare": 0.5},
        {"name": "Infinite Price", "basePrice": float("inf"), "importShare": 0.5},
        {"name": "Free", "basePrice": 0, "importShare": 0.5},
        {"name": "No Share", "basePrice": 10.0, "importShare": "lots"},
        {"name": "Oversized Share", "basePrice": 10.0, "importShare": 7.0},
        {"name": "Negative Share", "basePrice": "12.5", "importShare": -0.3},
    ]
    # json.dumps writes NaN / Infinity literals, which json.loads accepts back
    run(store.set(key, json.dumps({"timestamp": T0, "items": rows}), 60))

    items = run(read_cached_items(store, "China", "Electronics", now_ms=T0))
    assert [(i.name, i.base_price, i.import_share) for i in items] == [
        ("Oversized Share", 10.0, 1.0),
        ("Negative Share", 12.5, 0.0),
    ]


def test_non_finite_timestamp_is_a_miss():
    store = MemoryCacheStore()
    key = representative_items_key("China", "Electronics")
    payload = {"timestamp": float("nan"), "items": [item.as_dict() for item in ITEMS]}
    run(store.set(key, json.dumps(payload), 60))
    assert run(read_cached_items(store, "China", "Electronics", now_ms=T0)) == []
