"""Indicator value parsing and normalisation into bounded factors."""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Iterable

import pandas as pd

logger = logging.getLogger(__name__)

_NUMBER = re.compile(r"^\s*([-+]?\d+(?:\.\d+)?)\s*%?\s*$")

# Trade balance is reported in millions of USD; a +/-50bn balance saturates
# the intensity multiplier.
TRADE_BALANCE_SCALE = 100_000.0
# Import volume (millions of USD) at which the import share saturates.
IMPORT_VOLUME_SCALE = 100_000.0

TRADE_INTENSITY_RANGE = (0.5, 1.5)
IMPORT_SHARE_RANGE = (0.0, 1.0)
SUPPLY_CHAIN_RANGE = (0.0, 1.0)
PASSTHROUGH_RANGE = (0.3, 0.9)
ELASTICITY_RANGE = (0.1, 0.9)
IMPORT_DEPENDENCE_RANGE = (0.2, 0.9)
SUBSTITUTION_RANGE = (0.2, 0.8)
STATE_MULTIPLIER_RANGE = (0.5, 1.5)


def to_float(raw: Any) -> float | None:
    """
    Coerce an upstream value to a finite float.

    Accepts ints, floats and numeric strings (``"1,234.5"``, ``"12%"``).
    Returns ``None`` for ``None``, NaN, infinities, booleans and anything
    unparseable.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        m = _NUMBER.match(raw.replace(",", ""))
        if not m:
            return None
        value = float(m.group(1))
    else:
        return None
    if pd.isna(value) or math.isinf(value):
        return None
    return value


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _bounded(raw: Any, default: float, bounds: tuple[float, float]) -> float:
    value = to_float(raw)
    if value is None:
        value = default
    return clamp(value, *bounds)


def normalize_trade_intensity(balance: Any, scale: float = TRADE_BALANCE_SCALE) -> float:
    """Trade balance -> multiplier in [0.5, 1.5]; missing balance is neutral (1.0)."""
    value = to_float(balance)
    if value is None:
        return 1.0
    return clamp(1.0 + value / scale, *TRADE_INTENSITY_RANGE)


def normalize_import_share(volume: Any, scale: float = IMPORT_VOLUME_SCALE) -> float:
    """Import volume -> share in [0, 1]."""
    value = to_float(volume)
    if value is None or scale <= 0:
        return 0.0
    return clamp(value / scale, *IMPORT_SHARE_RANGE)


def normalize_supply_chain_effect(score: Any) -> float:
    """Integration score on a 0-100 scale -> [0, 1]."""
    return _bounded(score, 0.0, (0.0, 100.0)) / 100.0


def normalize_passthrough_rate(volatility: Any) -> float:
    """
    Price-series volatility -> passthrough in [0.3, 0.9].

    Volatile prices mean sellers already absorb swings, so passthrough falls
    as volatility rises.
    """
    value = to_float(volatility)
    if value is None:
        value = 0.0
    return clamp(1.0 - value / 10.0, *PASSTHROUGH_RANGE)


def normalize_elasticity(raw: Any) -> float:
    return _bounded(raw, 0.5, ELASTICITY_RANGE)


def normalize_import_dependence(raw: Any) -> float:
    return _bounded(raw, 0.4, IMPORT_DEPENDENCE_RANGE)


def normalize_substitution_effect(raw: Any) -> float:
    return _bounded(raw, 0.5, SUBSTITUTION_RANGE)


def normalize_state_multiplier(raw: Any) -> float:
    """State exposure / logistics / resiliency reading -> multiplier in [0.5, 1.5]."""
    return _bounded(raw, 1.0, STATE_MULTIPLIER_RANGE)


def calculate_volatility(values: Iterable[Any]) -> float:
    """
    Sample standard deviation (n - 1) of the numeric readings in *values*.

    Non-numeric readings are dropped first; fewer than two remaining samples
    give ``0.0``.
    """
    numbers = [v for v in (to_float(x) for x in values) if v is not None]
    if len(numbers) < 2:
        return 0.0
    return float(pd.Series(numbers, dtype="float64").std(ddof=1))
