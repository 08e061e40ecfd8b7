"""Tests for refresh.py"""

import asyncio

import pytest

from tariff_impact.cache import MemoryCacheStore, read_cached_items
from tariff_impact.http import NetworkError
from tariff_impact.indicators import TRADE_PATH, IndicatorRecord, build_path
from tariff_impact.refresh import RefreshScheduler, build_items, refresh_all_trade_data

from conftest import FakeSource

UPDATED_AT = "2026-01-05T00:00:00+00:00"


def run(coro):
    return asyncio.run(coro)


def _rec(symbol, value, volume, price=None, category=""):
    return IndicatorRecord(category=category, value=value, price=price, symbol=symbol, volume=volume)


def _trade_path(country, flow, slug):
    return build_path(TRADE_PATH, country=country, flow=flow, slug=slug)


def test_build_items_top_three_by_volume():
    records = [
        _rec("A", -10.0, 500.0),
        _rec("B", 20.0, 900.0),
        _rec("C", -5.0, 300.0),
        _rec("D", -1.0, 200.0),
        _rec("E", -1.0, 50.0),  # below minimum volume
    ]
    items = build_items(records, "Electronics", UPDATED_AT)
    assert [i.name for i in items] == ["B", "A", "C"]
    assert items[0].explanation == "$0.9B annual trade volume"
    assert all(i.last_updated == UPDATED_AT for i in items)


def test_build_items_import_share_per_symbol():
    records = [
        _rec("LUMBER", -400.0, 600.0),
        _rec("LUMBER", 100.0, 200.0),
    ]
    items = build_items(records, "Housing & Utilities", UPDATED_AT)
    assert items[0].import_share == pytest.approx(600 / 800)
    assert items[0].base_price == 400.0


def test_build_items_falls_back_to_price_then_category():
    records = [_rec(None, None, 150.0, price=-42.0, category="Furniture")]
    items = build_items(records, "Other Goods", UPDATED_AT)
    assert items[0].name == "Furniture"
    assert items[0].base_price == 42.0
    assert items[0].import_share == 0.0


def test_build_items_nothing_significant():
    assert build_items([_rec("A", -1.0, 99.0), _rec("B", -1.0, None)], "Clothing", UPDATED_AT) == []


def test_refresh_writes_pairs_with_data_only():
    slug = "electronics-computers"
    source = FakeSource(
        {
            _trade_path("China", "imports", slug): [
                {"symbol": "SEMICONDUCTORS", "value": -250.0, "volume": 4000.0},
                {"symbol": "LAPTOPS", "value": -900.0, "volume": 2500.0},
            ],
            _trade_path("China", "trade", slug): NetworkError("503"),
        }
    )
    store = MemoryCacheStore()
    summary = run(
        refresh_all_trade_data(source, store, countries=("China",), categories=("Electronics", "Clothing"))
    )
    assert summary.updated == ["China/Electronics"]
    assert summary.skipped == ["China/Clothing"]
    assert summary.failed == []

    items = run(read_cached_items(store, "China", "Electronics"))
    assert [i.name for i in items] == ["SEMICONDUCTORS", "LAPTOPS"]
    assert items[0].import_share == 1.0


def test_refresh_continues_after_pair_failure(monkeypatch):
    import tariff_impact.refresh as refresh

    async def flaky(source, store, country, category, **kwargs):
        if country == "Mexico":
            raise RuntimeError("boom")
        return True

    monkeypatch.setattr(refresh, "refresh_pair", flaky)
    summary = run(
        refresh.refresh_all_trade_data(
            FakeSource(), MemoryCacheStore(), countries=("Mexico", "Canada"), categories=("Clothing",)
        )
    )
    assert summary.failed == ["Mexico/Clothing"]
    assert summary.updated == ["Canada/Clothing"]


def _electronics_source():
    slug = "electronics-computers"
    return FakeSource(
        {
            _trade_path("China", "imports", slug): [{"symbol": "SEMICONDUCTORS", "value": -250.0, "volume": 4000.0}],
            _trade_path("China", "trade", slug): [],
        }
    )


def test_scheduler_refreshes_missed_pair():
    source = _electronics_source()
    store = MemoryCacheStore()
    scheduler = RefreshScheduler(source, store)

    async def scenario():
        assert scheduler.schedule("China", "Electronics") is True
        assert scheduler.schedule("China", "Electronics") is False  # already running
        assert scheduler.pending == 1
        await scheduler.drain()

    run(scenario())
    assert scheduler.pending == 0
    items = run(read_cached_items(store, "China", "Electronics"))
    assert [i.name for i in items] == ["SEMICONDUCTORS"]


def test_scheduler_logs_failures(monkeypatch, caplog):
    import tariff_impact.refresh as refresh

    async def broken(*args, **kwargs):
        raise RuntimeError("redis down")

    monkeypatch.setattr(refresh, "refresh_pair", broken)
    scheduler = RefreshScheduler(FakeSource(), MemoryCacheStore())

    async def scenario():
        scheduler.schedule("Canada", "Clothing")
        await scheduler.drain()

    run(scenario())
    assert scheduler.pending == 0
    assert "Background refresh of Canada/Clothing failed" in caplog.text
