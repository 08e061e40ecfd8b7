"""Effective tariff passthrough for one spending category."""

from __future__ import annotations

import math

from .models import CategoryConfig, StateFactors

MIN_ELASTICITY_ADJUSTMENT = 0.1
MAX_IMPORT_EFFECT = 1.5
MIN_SUBSTITUTION_ADJUSTMENT = 0.5


def calculate_effective_passthrough(
    config: CategoryConfig,
    tariff_rate: float,
    state: StateFactors,
) -> float:
    """
    Fraction of the tariff's sticker cost that reaches the consumer.

    Args:
        config:      Category economics (base passthrough, elasticity, ...).
        tariff_rate: Tariff as a fraction, e.g. ``0.25`` for 25 %.
        state:       Consuming state's exposure / resiliency / logistics factors.

    Returns:
        Passthrough rate in ``[0, 1]``.
    """
    elasticity_adjustment = max(
        MIN_ELASTICITY_ADJUSTMENT, 1.0 - config.price_elasticity * tariff_rate
    )
    import_effect = min(MAX_IMPORT_EFFECT, config.import_dependence * state.import_exposure)
    substitution_adjustment = max(
        MIN_SUBSTITUTION_ADJUSTMENT,
        1.0 - config.substitution_effect * tariff_rate * state.economic_resiliency,
    )

    rate = min(
        1.0,
        config.base_passthrough_rate
        * elasticity_adjustment
        * import_effect
        * substitution_adjustment
        * state.logistics_multiplier,
    )
    # Negative or non-finite inputs must never leak into the dollar estimate.
    if not math.isfinite(rate):
        return 0.0
    return max(0.0, rate)
