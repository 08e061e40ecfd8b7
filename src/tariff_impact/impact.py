"""
Household tariff-impact aggregation.

``compute_impact`` fetches the shared inputs (state factors, country
indicators, commodity prices) once, then runs one task per spending category
concurrently.  A category that fails or lacks a base price is dropped from
the result and logged; only a failure outside the per-category guards
surfaces to the caller, as :class:`CalculationError`.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Callable, Mapping

from .cache import CacheStore
from .indicators import (
    SourceLike,
    fetch_category_config,
    fetch_commodity_prices,
    fetch_country_indicators,
    fetch_representative_items,
    fetch_state_factors,
)
from .models import CategoryImpact, CountryIndicators, ImpactResult, ItemImpact, StateFactors
from .normalize import clamp, to_float
from .passthrough import calculate_effective_passthrough
from .reference_data import BASE_PRICES, INCOME_SHARES, canonical_country
from .refresh import RefreshScheduler

logger = logging.getLogger(__name__)

MAX_COMMODITY_ADJUSTMENT = 0.2
MONTHS_PER_YEAR = 12


class InputError(ValueError):
    """Raised when income or tariff percentage is outside the accepted range."""


class CalculationError(Exception):
    """Raised when the impact calculation fails as a whole."""


def _round2(value: float) -> float:
    return round(value, 2)


def validate_tariff_percent(tariff_rate_percent: float) -> float:
    rate = to_float(tariff_rate_percent)
    if rate is None or not 0 <= rate <= 100:
        raise InputError(f"Tariff percentage must be between 0 and 100, got {tariff_rate_percent!r}")
    return rate


def allocate_spending(annual_income: float) -> dict[str, float]:
    """Monthly spend per category for a household with *annual_income* (USD)."""
    income = to_float(annual_income)
    if income is None or income <= 0:
        raise InputError(f"Income must be greater than 0, got {annual_income!r}")
    monthly = income / MONTHS_PER_YEAR
    return {category: monthly * share for category, share in INCOME_SHARES.items()}


def commodity_adjusted_spend(monthly_spend: float, base_price: float, commodity_price: float | None) -> float:
    """
    Scale *monthly_spend* by the commodity's deviation from *base_price*.

    The deviation is clamped to ±20 % so one volatile price cannot dominate.
    """
    if commodity_price is None or base_price <= 0:
        return monthly_spend
    deviation = (commodity_price - base_price) / base_price
    return monthly_spend * (1 + clamp(deviation, -MAX_COMMODITY_ADJUSTMENT, MAX_COMMODITY_ADJUSTMENT))


async def _category_impact(
    category: str,
    monthly_spend: float,
    base_price: float,
    *,
    tariff_fraction: float,
    state: StateFactors,
    country: str,
    country_indicators: CountryIndicators,
    commodity_prices: Mapping[str, float],
    source: SourceLike,
    store: CacheStore | None,
    on_cache_miss: Callable[[str, str], Any] | None = None,
) -> CategoryImpact:
    config = await fetch_category_config(source, category)
    factors = country_indicators.factors_for(category)

    price = commodity_prices.get(config.commodity_symbol) if config.commodity_symbol else None
    adjusted_spend = commodity_adjusted_spend(monthly_spend, base_price, price)

    passthrough = calculate_effective_passthrough(config, tariff_fraction, state)
    country_passthrough = passthrough * country_indicators.trade_intensity * factors.supply_chain_effect

    max_impact = adjusted_spend * tariff_fraction
    actual_impact = max_impact * country_passthrough * factors.import_share
    annual_impact = actual_impact * MONTHS_PER_YEAR
    if not math.isfinite(annual_impact):
        raise ValueError(f"non-finite impact {annual_impact!r}")

    items = await fetch_representative_items(store, country, category, on_miss=on_cache_miss)
    item_impacts = []
    for item in items:
        value = item.base_price * tariff_fraction * country_passthrough * item.import_share
        if not math.isfinite(value) or value < 0:
            logger.warning("Skipping item %r in %s: impact %r", item.name, category, value)
            continue
        item_impacts.append(ItemImpact(name=item.name, impact=_round2(value), explanation=item.explanation))

    logger.debug(
        "Impact for %s: annual=%.2f passthrough=%.3f country_adjusted=%.3f items=%d",
        category,
        annual_impact,
        passthrough,
        country_passthrough,
        len(item_impacts),
    )
    return CategoryImpact(impact=_round2(annual_impact), representative_items=tuple(item_impacts))


async def compute_impact(
    base_prices: Mapping[str, float],
    tariff_rate_percent: float,
    spending_by_category: Mapping[str, float],
    state_code: str,
    country: str,
    *,
    source: SourceLike,
    store: CacheStore | None = None,
    refresher: RefreshScheduler | None = None,
) -> ImpactResult:
    """
    Estimate the annual dollar impact of a tariff on a household budget.

    Args:
        base_prices:          Base monthly price unit per category.
        tariff_rate_percent:  Tariff in percent, 0–100.
        spending_by_category: Monthly spend per category (USD).
        state_code:           Two-letter US state code.
        country:              Trading partner the tariff targets.
        source:               Indicator source used by the fetchers.
        store:                Optional representative-item cache.
        refresher:            Optional scheduler; cache misses for representative
                              items are handed to it for background recomputation.

    Raises:
        InputError:       tariff percentage out of range.
        CalculationError: the calculation failed outside any category guard.
    """
    rate = validate_tariff_percent(tariff_rate_percent)
    tariff_fraction = rate / 100
    logger.info("Starting tariff impact calculation: country=%s state=%s tariff=%.2f%%", country, state_code, rate)

    try:
        state, country_indicators, commodity_prices = await asyncio.gather(
            fetch_state_factors(source, state_code),
            fetch_country_indicators(source, country),
            fetch_commodity_prices(source, spending_by_category.keys()),
        )

        async def guarded(category: str, monthly_spend: float) -> tuple[str, CategoryImpact] | None:
            base_price = to_float(base_prices.get(category))
            if not base_price:
                logger.warning("No base price found for category: %s", category)
                return None
            spend = to_float(monthly_spend)
            if spend is None or spend < 0:
                logger.warning("Invalid monthly spend for %s: %r", category, monthly_spend)
                return None
            try:
                impact = await _category_impact(
                    category,
                    spend,
                    base_price,
                    tariff_fraction=tariff_fraction,
                    state=state,
                    country=country,
                    country_indicators=country_indicators,
                    commodity_prices=commodity_prices,
                    source=source,
                    store=store,
                    on_cache_miss=refresher.schedule if refresher is not None else None,
                )
            except Exception as exc:
                logger.error("Error calculating impact for category %s: %s", category, exc)
                return None
            return category, impact

        results = await asyncio.gather(
            *(guarded(category, spend) for category, spend in spending_by_category.items())
        )
    except Exception as exc:
        logger.exception("Tariff impact calculation failed")
        raise CalculationError("Tariff impact calculation failed") from exc

    category_impacts = {category: impact for category, impact in filter(None, results)}
    total = _round2(sum(ci.impact for ci in category_impacts.values()))
    logger.info("Calculated total annual impact %.2f across %d categories", total, len(category_impacts))
    return ImpactResult(total_impact=total, category_impacts=category_impacts)


async def estimate_household_impact(
    income: float,
    state_code: str,
    tariff_rate_percent: float,
    country: str,
    *,
    source: SourceLike,
    store: CacheStore | None = None,
    refresher: RefreshScheduler | None = None,
) -> ImpactResult:
    """Allocate *income* across the standard budget and run :func:`compute_impact`."""
    spending = allocate_spending(income)
    validate_tariff_percent(tariff_rate_percent)
    return await compute_impact(
        BASE_PRICES,
        tariff_rate_percent,
        spending,
        state_code,
        canonical_country(country) or country.strip(),
        source=source,
        store=store,
        refresher=refresher,
    )
