"""Scheduled rebuild of the representative-item cache from trade-flow data."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

import pandas as pd

from .cache import CACHE_EXPIRY_SECONDS, CacheStore, write_cached_items
from .indicators import TRADE_PATH, Defaulted, IndicatorRecord, SourceLike, build_path, load_indicator
from .models import RepresentativeItem
from .normalize import normalize_import_share
from .reference_data import CATEGORIES, TRADE_CATEGORY_SLUGS, TRADE_PARTNERS

logger = logging.getLogger(__name__)

MIN_TRADE_VOLUME = 100.0  # million USD
MAX_ITEMS = 3

_COLUMNS = ["name", "symbol", "value", "price", "volume"]


@dataclass
class RefreshSummary:
    updated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {"updated": self.updated, "skipped": self.skipped, "failed": self.failed}


async def _trade_records(source: SourceLike, country: str, slug: str) -> list[IndicatorRecord]:
    results = await asyncio.gather(
        *(
            load_indicator(source, build_path(TRADE_PATH, country=country, flow=flow, slug=slug))
            for flow in ("imports", "trade")
        )
    )
    records: list[IndicatorRecord] = []
    for flow, result in zip(("imports", "trade"), results):
        if isinstance(result, Defaulted):
            logger.debug("No %s data for %s/%s: %s", flow, country, slug, result.reason)
            continue
        records.extend(result.indicator.records)
    return records


def build_items(
    records: list[IndicatorRecord],
    fallback_name: str,
    updated_at: str,
) -> list[RepresentativeItem]:
    """
    Turn raw trade-flow records into at most :data:`MAX_ITEMS` representative items.

    Records at or below :data:`MIN_TRADE_VOLUME` are ignored.  Items are the
    largest flows by volume; each item's import share is the fraction of its
    symbol's volume that is inbound (negative ``value``).
    """
    rows = [
        {
            "name": rec.symbol or rec.category or fallback_name,
            "symbol": rec.symbol or "",
            "value": rec.value,
            "price": rec.price,
            "volume": rec.volume,
        }
        for rec in records
        if rec.volume is not None and rec.volume > MIN_TRADE_VOLUME
    ]
    if not rows:
        return []

    df = pd.DataFrame(rows, columns=_COLUMNS)
    df["inbound"] = df["volume"].where(df["value"].fillna(0) < 0, 0.0)
    by_symbol = df.groupby("symbol")[["volume", "inbound"]].sum()

    top = df.sort_values("volume", ascending=False, kind="stable").head(MAX_ITEMS)
    items: list[RepresentativeItem] = []
    for row in top.itertuples(index=False):
        totals = by_symbol.loc[row.symbol]
        value = row.value if pd.notna(row.value) and row.value != 0 else row.price
        items.append(
            RepresentativeItem(
                name=row.name,
                base_price=abs(float(value)) if pd.notna(value) else 0.0,
                import_share=normalize_import_share(totals["inbound"], scale=totals["volume"]),
                explanation=f"${row.volume / 1000:.1f}B annual trade volume",
                last_updated=updated_at,
            )
        )
    return items


async def refresh_pair(
    source: SourceLike,
    store: CacheStore,
    country: str,
    category: str,
    *,
    expiry_seconds: int = CACHE_EXPIRY_SECONDS,
) -> bool:
    """Recompute one cache entry. Returns ``False`` when there was nothing to write."""
    slug = TRADE_CATEGORY_SLUGS.get(category)
    if not slug:
        return False
    records = await _trade_records(source, country, slug)
    updated_at = datetime.now(timezone.utc).isoformat()
    items = build_items(records, category, updated_at)
    if not items:
        logger.info("No trade data found for %s/%s", country, category)
        return False
    await write_cached_items(store, country, category, items, expiry_seconds=expiry_seconds)
    return True


async def refresh_all_trade_data(
    source: SourceLike,
    store: CacheStore,
    *,
    countries: tuple[str, ...] = TRADE_PARTNERS,
    categories: tuple[str, ...] = CATEGORIES,
    expiry_seconds: int = CACHE_EXPIRY_SECONDS,
) -> RefreshSummary:
    """Overwrite the cache entry of every (country, category) pair that has data."""
    logger.info("Starting trade data update for %d countries × %d categories", len(countries), len(categories))
    summary = RefreshSummary()
    for country in countries:
        for category in categories:
            pair = f"{country}/{category}"
            try:
                if await refresh_pair(source, store, country, category, expiry_seconds=expiry_seconds):
                    summary.updated.append(pair)
                else:
                    summary.skipped.append(pair)
            except Exception as exc:
                logger.error("Error updating %s: %s", pair, exc)
                summary.failed.append(pair)
    logger.info(
        "Trade data update complete: %d updated, %d skipped, %d failed",
        len(summary.updated),
        len(summary.skipped),
        len(summary.failed),
    )
    return summary


class RefreshScheduler:
    """
    Recompute single cache entries in the background after a cache miss.

    Running tasks are held until they finish, and a pair that is already
    being refreshed is not scheduled again.  Failures are logged, never
    raised.  ``schedule`` must be called from inside a running event loop.
    """

    def __init__(
        self,
        source: SourceLike,
        store: CacheStore,
        *,
        expiry_seconds: int = CACHE_EXPIRY_SECONDS,
    ) -> None:
        self.source = source
        self.store = store
        self.expiry_seconds = expiry_seconds
        self._tasks: dict[tuple[str, str], asyncio.Task] = {}

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, country: str, category: str) -> bool:
        """Start a refresh of (country, category). Returns ``False`` if one is already running."""
        pair = (country, category)
        if pair in self._tasks:
            return False
        logger.info("Cache miss for %s/%s, refreshing in background", country, category)
        task = asyncio.get_running_loop().create_task(
            refresh_pair(self.source, self.store, country, category, expiry_seconds=self.expiry_seconds)
        )
        self._tasks[pair] = task
        task.add_done_callback(lambda t, pair=pair: self._finished(pair, t))
        return True

    def _finished(self, pair: tuple[str, str], task: asyncio.Task) -> None:
        if self._tasks.get(pair) is task:
            del self._tasks[pair]
        if task.cancelled():
            logger.warning("Background refresh of %s/%s was cancelled", *pair)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background refresh of %s/%s failed: %s", *pair, exc)

    async def drain(self) -> None:
        """Wait for every scheduled refresh to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)
