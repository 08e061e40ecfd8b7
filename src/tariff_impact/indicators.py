"""
Economic indicator source client and the per-region fetchers built on it.

Every ``fetch_*`` coroutine in this module has the same contract: it never
raises to the caller.  Network errors, non-2xx responses and malformed
payloads are logged and replaced with an economically neutral default so
that an impact calculation can always complete.

Raw payloads are first reduced to a tagged result, :class:`Ok` or
:class:`Defaulted`, by :func:`parse_indicator_payload`; fetchers branch on
that instead of probing optional JSON fields.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Protocol, Sequence, Union
from urllib.parse import quote

import requests

from .cache import CacheStore, read_cached_items
from .http import DEFAULT_RETRIES, DEFAULT_TIMEOUT, NetworkError, ParseError, aget_json
from .models import (
    CategoryConfig,
    CategoryFactors,
    CountryIndicators,
    RepresentativeItem,
    StateFactors,
    static_items,
)
from .normalize import (
    IMPORT_SHARE_RANGE,
    PASSTHROUGH_RANGE,
    SUPPLY_CHAIN_RANGE,
    calculate_volatility,
    clamp,
    normalize_elasticity,
    normalize_import_dependence,
    normalize_passthrough_rate,
    normalize_state_multiplier,
    normalize_substitution_effect,
    normalize_trade_intensity,
    to_float,
)
from .reference_data import CATEGORIES, CATEGORY_INDICATORS, COMMODITY_SYMBOLS
from .throttle import RequestLimiter

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.tradingeconomics.com"

# Upstream paths; placeholders are URL-quoted before substitution.
_STATE_PATH = "/state/{state}"
_COUNTRY_PATH = "/country/{country}"
_CATEGORY_PATH = "/historical/country/united states/indicator/{indicator}"
_COMMODITY_PATH = "/markets/commodity/{symbol}"
TRADE_PATH = "/country/{country}/{flow}/{slug}"

_BALANCE_OF_TRADE = ("balance of trade", "trade balance")
_IMPORT_EXPOSURE = ("import exposure", "imports exposure")
_LOGISTICS = ("logistics multiplier", "logistics cost index")
_RESILIENCY = ("economic resiliency", "economic resilience")

# Field-name variants seen in indicator payloads -> canonical names.
_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "category": ("category", "Category"),
    "value": ("value", "Value", "LatestValue"),
    "price": ("price", "Price", "Last"),
    "symbol": ("symbol", "Symbol"),
    "volume": ("volume", "Volume"),
    "date": ("date", "DateTime", "LatestValueDate"),
}
_KNOWN_FIELDS = {alias for aliases in _FIELD_ALIASES.values() for alias in aliases}


# ── Source client ─────────────────────────────────────────────────────────────

class IndicatorSource:
    """
    Thin async client for the economic-data API.

    Requests go through a shared :class:`RequestLimiter`.  ``fetch`` raises
    :class:`NetworkError` / :class:`ParseError`; the fetchers below turn those
    into defaults.
    """

    def __init__(
        self,
        api_key: str | None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        limiter: RequestLimiter | None = None,
        timeout: int = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.limiter = limiter or RequestLimiter()
        self.timeout = timeout
        self.retries = retries
        self.session = session or requests.Session()

    async def fetch(self, path: str, params: dict[str, Any] | None = None) -> Any:
        if not self.api_key:
            raise NetworkError("Economic data API key is not configured")
        await self.limiter.acquire()
        query = {"c": self.api_key, "format": "json", **(params or {})}
        return await aget_json(
            f"{self.base_url}{path}",
            params=query,
            timeout=self.timeout,
            retries=self.retries,
            session=self.session,
        )


class SourceLike(Protocol):
    """Anything with an awaitable ``fetch(path, params)``."""

    async def fetch(self, path: str, params: dict[str, Any] | None = None) -> Any: ...


def build_path(template: str, **parts: str) -> str:
    return template.format(**{k: quote(v.strip().lower(), safe="") for k, v in parts.items()})


# ── Tagged payload parsing ────────────────────────────────────────────────────

@dataclass(frozen=True)
class IndicatorRecord:
    category: str = ""
    value: float | None = None
    price: float | None = None
    symbol: str | None = None
    volume: float | None = None
    date: str | None = None
    attributes: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class ParsedIndicator:
    records: tuple[IndicatorRecord, ...]

    def value_of(self, names: Iterable[str]) -> float | None:
        """Value of the first record whose category matches one of *names*."""
        wanted = {n.lower() for n in names}
        for rec in self.records:
            if rec.category.lower() in wanted and rec.value is not None:
                return rec.value
        return None

    def series(self) -> list[float]:
        return [rec.value for rec in self.records if rec.value is not None]

    def first_price(self) -> float | None:
        for rec in self.records:
            price = rec.price if rec.price is not None else rec.value
            if price is not None and price > 0:
                return price
        return None

    def attribute(self, name: str) -> float | None:
        for rec in self.records:
            if name in rec.attributes:
                return rec.attributes[name]
        return None


@dataclass(frozen=True)
class Ok:
    indicator: ParsedIndicator


@dataclass(frozen=True)
class Defaulted:
    reason: str


IndicatorResult = Union[Ok, Defaulted]


def _pick(raw: dict[str, Any], name: str) -> Any:
    for alias in _FIELD_ALIASES[name]:
        if alias in raw:
            return raw[alias]
    return None


def _parse_record(raw: dict[str, Any]) -> IndicatorRecord:
    category = _pick(raw, "category")
    symbol = _pick(raw, "symbol")
    date = _pick(raw, "date")
    attributes = {
        key: number
        for key, value in raw.items()
        if key not in _KNOWN_FIELDS and (number := to_float(value)) is not None
    }
    return IndicatorRecord(
        category=str(category).strip() if category is not None else "",
        value=to_float(_pick(raw, "value")),
        price=to_float(_pick(raw, "price")),
        symbol=str(symbol) if symbol else None,
        volume=to_float(_pick(raw, "volume")),
        date=str(date) if date else None,
        attributes=attributes,
    )


def parse_indicator_payload(payload: Any) -> IndicatorResult:
    """
    Reduce an indicator-source response to :class:`Ok` or :class:`Defaulted`.

    Accepts a list of records, a single record, or a ``{"data": [...]}``
    wrapper.  Error envelopes, empty lists and lists without a single dict
    record are ``Defaulted``.
    """
    if isinstance(payload, dict):
        if "error" in payload:
            return Defaulted(f"upstream error: {payload['error']}")
        payload = payload["data"] if isinstance(payload.get("data"), list) else [payload]
    if not isinstance(payload, list):
        return Defaulted(f"unexpected payload type {type(payload).__name__}")

    records = tuple(_parse_record(r) for r in payload if isinstance(r, dict))
    if not records:
        return Defaulted("no records in payload")
    return Ok(ParsedIndicator(records))


async def load_indicator(
    source: SourceLike,
    path: str,
    params: dict[str, Any] | None = None,
) -> IndicatorResult:
    """Fetch and parse one indicator payload; failures become ``Defaulted``."""
    try:
        payload = await source.fetch(path, params)
    except (NetworkError, ParseError) as exc:
        return Defaulted(str(exc))
    except Exception as exc:
        logger.warning("Unexpected indicator source failure for %s: %s", path, exc)
        return Defaulted(f"unexpected error: {exc}")
    return parse_indicator_payload(payload)


# ── State factors ─────────────────────────────────────────────────────────────

async def fetch_state_factors(source: SourceLike, state_code: str) -> StateFactors:
    """Import exposure, logistics and resiliency multipliers for a US state."""
    code = (state_code or "").strip().upper()
    if not code:
        logger.warning("No state code supplied, using neutral state factors")
        return StateFactors()

    result = await load_indicator(source, build_path(_STATE_PATH, state=code))
    if isinstance(result, Defaulted):
        logger.warning("State factors for %s defaulted: %s", code, result.reason)
        return StateFactors()

    ind = result.indicator
    factors = StateFactors(
        import_exposure=normalize_state_multiplier(ind.value_of(_IMPORT_EXPOSURE)),
        logistics_multiplier=normalize_state_multiplier(ind.value_of(_LOGISTICS)),
        economic_resiliency=normalize_state_multiplier(ind.value_of(_RESILIENCY)),
    )
    logger.debug("State factors for %s: %s", code, factors)
    return factors


# ── Country indicators ────────────────────────────────────────────────────────

CountryResolver = Callable[[SourceLike, str], Awaitable["CountryIndicators | None"]]


def _reconcile(base: CountryIndicators | None) -> dict[str, CategoryFactors]:
    """Category factors for every category, clamped, from *base* where it has them."""
    factors: dict[str, CategoryFactors] = {}
    for category in CATEGORIES:
        f = base.factors_for(category) if base else CategoryFactors()
        factors[category] = CategoryFactors(
            import_share=clamp(f.import_share, *IMPORT_SHARE_RANGE),
            supply_chain_effect=clamp(f.supply_chain_effect, *SUPPLY_CHAIN_RANGE),
        )
    return factors


async def resolve_live_country(source: SourceLike, country: str) -> CountryIndicators | None:
    """Trade intensity from the live balance of trade, category mix from the static table."""
    result = await load_indicator(source, build_path(_COUNTRY_PATH, country=country))
    if isinstance(result, Defaulted):
        logger.warning("Live country indicators for %s unavailable: %s", country, result.reason)
        return None
    balance = result.indicator.value_of(_BALANCE_OF_TRADE)
    if balance is None:
        logger.warning("Live payload for %s has no balance of trade", country)
        return None
    return CountryIndicators(
        trade_intensity=normalize_trade_intensity(balance),
        category_factors=_reconcile(CountryIndicators.from_static(country)),
        source="live",
    )


async def resolve_static_country(source: SourceLike, country: str) -> CountryIndicators | None:
    static = CountryIndicators.from_static(country)
    if static is None:
        return None
    return CountryIndicators(
        trade_intensity=static.trade_intensity,
        category_factors=_reconcile(static),
        source="static",
    )


async def resolve_default_country(source: SourceLike, country: str) -> CountryIndicators | None:
    return CountryIndicators(category_factors=_reconcile(None), source="default")


COUNTRY_RESOLVERS: tuple[CountryResolver, ...] = (
    resolve_live_country,
    resolve_static_country,
    resolve_default_country,
)


async def fetch_country_indicators(
    source: SourceLike,
    country: str,
    resolvers: Sequence[CountryResolver] = COUNTRY_RESOLVERS,
) -> CountryIndicators:
    """Try each resolver in order; the first non-``None`` answer wins."""
    for resolver in resolvers:
        try:
            indicators = await resolver(source, country)
        except Exception as exc:
            logger.warning("Country resolver %s failed for %s: %s", resolver.__name__, country, exc)
            continue
        if indicators is not None:
            logger.debug(
                "Country indicators for %s from %s (trade intensity %.2f)",
                country,
                indicators.source,
                indicators.trade_intensity,
            )
            return indicators
    return CountryIndicators(category_factors=_reconcile(None), source="default")


# ── Category economics ────────────────────────────────────────────────────────

async def fetch_category_config(source: SourceLike, category: str) -> CategoryConfig:
    """
    Passthrough economics for *category*.

    The base passthrough rate comes from an explicit ``basePassthroughRate``
    field when the payload carries one, otherwise from the volatility of the
    category's indicator series.  Elasticity, import dependence and
    substitution are read from like-named fields.  Everything is clamped.
    """
    symbol = COMMODITY_SYMBOLS.get(category)
    indicator_name = CATEGORY_INDICATORS.get(category, "Consumer Price Index")

    result = await load_indicator(source, build_path(_CATEGORY_PATH, indicator=indicator_name))
    if isinstance(result, Defaulted):
        logger.warning("Category factors for %s defaulted: %s", category, result.reason)
        return CategoryConfig(commodity_symbol=symbol)

    ind = result.indicator
    explicit = ind.attribute("basePassthroughRate")
    series = ind.series()
    if explicit is not None:
        base = clamp(explicit, *PASSTHROUGH_RANGE)
    elif len(series) >= 2:
        base = normalize_passthrough_rate(calculate_volatility(series))
    else:
        base = CategoryConfig.base_passthrough_rate

    return CategoryConfig(
        base_passthrough_rate=base,
        price_elasticity=normalize_elasticity(ind.attribute("priceElasticity")),
        import_dependence=normalize_import_dependence(ind.attribute("importDependence")),
        substitution_effect=normalize_substitution_effect(ind.attribute("substitutionEffect")),
        commodity_symbol=symbol,
    )


# ── Commodity prices ──────────────────────────────────────────────────────────

async def _fetch_commodity_price(source: SourceLike, symbol: str) -> float | None:
    result = await load_indicator(source, build_path(_COMMODITY_PATH, symbol=symbol))
    if isinstance(result, Defaulted):
        logger.warning("No price for commodity %s: %s", symbol, result.reason)
        return None
    return result.indicator.first_price()


async def fetch_commodity_prices(source: SourceLike, categories: Iterable[str]) -> dict[str, float]:
    """Spot price per distinct commodity symbol; symbols without a price are omitted."""
    symbols = list(dict.fromkeys(s for c in categories if (s := COMMODITY_SYMBOLS.get(c))))
    if not symbols:
        return {}
    prices = await asyncio.gather(*(_fetch_commodity_price(source, s) for s in symbols))
    return {s: p for s, p in zip(symbols, prices) if p is not None}


# ── Representative items ──────────────────────────────────────────────────────

async def fetch_representative_items(
    store: CacheStore | None,
    country: str,
    category: str,
    *,
    on_miss: Callable[[str, str], Any] | None = None,
) -> list[RepresentativeItem]:
    """
    Fresh cache entry, else the static table, else an empty list.

    When a store is configured but holds no fresh entry, ``on_miss(country,
    category)`` is called so the caller can have the entry recomputed; the
    static items are still returned for this request.
    """
    if store is not None:
        cached = await read_cached_items(store, country, category)
        if cached:
            return cached
        if on_miss is not None:
            on_miss(country, category)
    return static_items(country, category)
