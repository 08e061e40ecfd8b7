"""Tests for normalize.py"""

import math

import pytest

from tariff_impact.normalize import (
    calculate_volatility,
    normalize_elasticity,
    normalize_import_dependence,
    normalize_import_share,
    normalize_passthrough_rate,
    normalize_state_multiplier,
    normalize_substitution_effect,
    normalize_supply_chain_effect,
    normalize_trade_intensity,
    to_float,
)


def test_to_float_numbers_and_strings():
    assert to_float(3) == 3.0
    assert to_float("1,234.5") == 1234.5
    assert to_float("12%") == 12.0


def test_to_float_rejects_junk():
    assert to_float(None) is None
    assert to_float("n/a") is None
    assert to_float(float("nan")) is None
    assert to_float(float("inf")) is None
    assert to_float(True) is None
    assert to_float({"value": 1}) is None


def test_trade_intensity_neutral_and_clamped():
    assert normalize_trade_intensity(0) == 1.0
    assert normalize_trade_intensity(None) == 1.0
    assert normalize_trade_intensity(25_000) == pytest.approx(1.25)
    assert normalize_trade_intensity(10_000_000) == 1.5
    assert normalize_trade_intensity(-10_000_000) == 0.5


def test_import_share_bounds():
    assert normalize_import_share(50_000) == pytest.approx(0.5)
    assert normalize_import_share(-5) == 0.0
    assert normalize_import_share(10**9) == 1.0
    assert normalize_import_share(30, scale=60) == pytest.approx(0.5)
    assert normalize_import_share(30, scale=0) == 0.0
    assert normalize_import_share("garbage") == 0.0


def test_supply_chain_effect():
    assert normalize_supply_chain_effect(90) == pytest.approx(0.9)
    assert normalize_supply_chain_effect(250) == 1.0
    assert normalize_supply_chain_effect(-3) == 0.0
    assert normalize_supply_chain_effect(None) == 0.0


def test_passthrough_inverse_to_volatility():
    assert normalize_passthrough_rate(0) == 0.9
    assert normalize_passthrough_rate(5) == pytest.approx(0.5)
    assert normalize_passthrough_rate(50) == 0.3
    assert normalize_passthrough_rate(2) > normalize_passthrough_rate(4)


def test_clamp_only_factors():
    assert normalize_elasticity(5) == 0.9
    assert normalize_elasticity(0) == 0.1
    assert normalize_elasticity(None) == 0.5
    assert normalize_import_dependence(0.05) == 0.2
    assert normalize_import_dependence(2) == 0.9
    assert normalize_substitution_effect(-1) == 0.2
    assert normalize_substitution_effect("0.6") == pytest.approx(0.6)
    assert normalize_state_multiplier(None) == 1.0
    assert normalize_state_multiplier(9) == 1.5


def test_volatility_is_sample_std():
    # mean 5, squared deviations sum 32, n - 1 = 7
    values = [2, 4, 4, 4, 5, 5, 7, 9]
    assert calculate_volatility(values) == pytest.approx(math.sqrt(32 / 7))


def test_volatility_needs_two_samples():
    assert calculate_volatility([]) == 0.0
    assert calculate_volatility([3.0]) == 0.0
    assert calculate_volatility([3.0, None, "x"]) == 0.0


def test_every_normalizer_is_finite_on_bad_input():
    funcs = [
        normalize_trade_intensity,
        normalize_import_share,
        normalize_supply_chain_effect,
        normalize_passthrough_rate,
        normalize_elasticity,
        normalize_import_dependence,
        normalize_substitution_effect,
        normalize_state_multiplier,
    ]
    for func in funcs:
        for raw in (None, float("nan"), float("inf"), "", "abc", [], -1e12, 1e12):
            assert math.isfinite(func(raw))
