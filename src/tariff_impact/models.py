"""Value types shared by the fetchers, the passthrough calculator and the aggregator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .normalize import IMPORT_SHARE_RANGE, clamp, to_float
from .reference_data import (
    COUNTRY_TRADE_FACTORS,
    DEFAULT_IMPORT_SHARE,
    DEFAULT_SUPPLY_CHAIN_EFFECT,
    DEFAULT_TRADE_INTENSITY,
    REPRESENTATIVE_ITEMS,
)


@dataclass(frozen=True)
class StateFactors:
    import_exposure: float = 1.0
    logistics_multiplier: float = 1.0
    economic_resiliency: float = 1.0


@dataclass(frozen=True)
class CategoryFactors:
    import_share: float = DEFAULT_IMPORT_SHARE
    supply_chain_effect: float = DEFAULT_SUPPLY_CHAIN_EFFECT


@dataclass(frozen=True)
class CountryIndicators:
    trade_intensity: float = DEFAULT_TRADE_INTENSITY
    category_factors: dict[str, CategoryFactors] = field(default_factory=dict)
    source: str = "default"

    def factors_for(self, category: str) -> CategoryFactors:
        """Per-category factors, falling back to the neutral default."""
        return self.category_factors.get(category) or CategoryFactors()

    @classmethod
    def from_static(cls, country: str) -> "CountryIndicators | None":
        entry = COUNTRY_TRADE_FACTORS.get(country)
        if entry is None:
            return None
        intensity, factors = entry
        return cls(
            trade_intensity=intensity,
            category_factors={
                cat: CategoryFactors(import_share=share, supply_chain_effect=effect)
                for cat, (share, effect) in factors.items()
            },
            source="static",
        )


@dataclass(frozen=True)
class CategoryConfig:
    base_passthrough_rate: float = 0.7
    price_elasticity: float = 0.5
    import_dependence: float = 0.4
    substitution_effect: float = 0.5
    commodity_symbol: str | None = None


@dataclass(frozen=True)
class RepresentativeItem:
    name: str
    base_price: float
    import_share: float
    explanation: str
    last_updated: str | None = None

    def as_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "basePrice": self.base_price,
            "importShare": self.import_share,
            "explanation": self.explanation,
        }
        if self.last_updated:
            result["lastUpdated"] = self.last_updated
        return result

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "RepresentativeItem":
        """
        Build from a cached / JSON item.

        ``basePrice`` must be a finite positive number and ``importShare`` a
        finite number, which is clamped into [0, 1].  Raises ``KeyError`` /
        ``ValueError`` otherwise.
        """
        price = to_float(raw["basePrice"])
        if price is None or price <= 0:
            raise ValueError(f"invalid basePrice {raw['basePrice']!r}")
        share = to_float(raw["importShare"])
        if share is None:
            raise ValueError(f"invalid importShare {raw['importShare']!r}")
        return cls(
            name=str(raw["name"]),
            base_price=price,
            import_share=clamp(share, *IMPORT_SHARE_RANGE),
            explanation=str(raw.get("explanation") or ""),
            last_updated=raw.get("lastUpdated"),
        )


def static_items(country: str, category: str) -> list[RepresentativeItem]:
    """Representative goods from the static table (empty when none are listed)."""
    rows = REPRESENTATIVE_ITEMS.get(country, {}).get(category, [])
    return [RepresentativeItem(name, price, share, note) for name, price, share, note in rows]


@dataclass(frozen=True)
class ItemImpact:
    name: str
    impact: float
    explanation: str

    def as_dict(self) -> dict[str, Any]:
        return {"name": self.name, "impact": self.impact, "explanation": self.explanation}


@dataclass(frozen=True)
class CategoryImpact:
    impact: float
    representative_items: tuple[ItemImpact, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        return {
            "impact": self.impact,
            "representativeItems": [i.as_dict() for i in self.representative_items],
        }


@dataclass(frozen=True)
class ImpactResult:
    total_impact: float
    category_impacts: dict[str, CategoryImpact] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "totalImpact": self.total_impact,
            "categoryImpacts": {cat: ci.as_dict() for cat, ci in self.category_impacts.items()},
        }
