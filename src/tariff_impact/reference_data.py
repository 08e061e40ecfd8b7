"""
Static reference tables: spending categories, trading partners, and
representative goods.

All tables are keyed by the category *label* (e.g. ``"Groceries & Food"``)
so that they line up with the keys callers use in spending maps and with the
cache keys written by the refresh job.

The indicator and trade-slug mappings must cover every category; this is
checked once at import time by :func:`validate_reference_tables`.  The
commodity-symbol mapping is partial on purpose: categories without a traded
commodity (Healthcare, Entertainment, Other Goods) get no price adjustment.
"""

from __future__ import annotations

from enum import Enum


class ReferenceDataError(Exception):
    """Raised when a hand-maintained mapping does not cover every category."""


class SpendingCategory(str, Enum):
    GROCERIES = "Groceries & Food"
    TRANSPORTATION = "Transportation"
    HOUSING = "Housing & Utilities"
    HEALTHCARE = "Healthcare"
    ENTERTAINMENT = "Entertainment"
    CLOTHING = "Clothing"
    ELECTRONICS = "Electronics"
    OTHER = "Other Goods"

    @classmethod
    def from_label(cls, label: str) -> "SpendingCategory | None":
        """Return the category for a display label, or ``None`` if unknown."""
        cleaned = label.strip().lower()
        for member in cls:
            if member.value.lower() == cleaned:
                return member
        return None


CATEGORIES: tuple[str, ...] = tuple(c.value for c in SpendingCategory)

# ── Household budget ─────────────────────────────────────────────────────────

# Fraction of monthly income spent per category.
INCOME_SHARES: dict[str, float] = {
    "Groceries & Food": 0.13,
    "Transportation": 0.16,
    "Housing & Utilities": 0.33,
    "Healthcare": 0.08,
    "Entertainment": 0.05,
    "Clothing": 0.03,
    "Electronics": 0.02,
    "Other Goods": 0.20,
}

# Base monthly spending unit per category (USD).
BASE_PRICES: dict[str, float] = {
    "Groceries & Food": 100.0,
    "Transportation": 150.0,
    "Housing & Utilities": 300.0,
    "Healthcare": 200.0,
    "Entertainment": 80.0,
    "Clothing": 60.0,
    "Electronics": 100.0,
    "Other Goods": 150.0,
}

# ── Upstream mappings ────────────────────────────────────────────────────────

COMMODITY_SYMBOLS: dict[str, str] = {
    "Groceries & Food": "WHEAT",
    "Transportation": "GASOLINE",
    "Housing & Utilities": "LUMBER",
    "Clothing": "COTTON",
    "Electronics": "COPPER",
}

# Indicator series whose volatility drives the category passthrough rate.
CATEGORY_INDICATORS: dict[str, str] = {
    "Groceries & Food": "Food Inflation",
    "Transportation": "Transport CPI",
    "Housing & Utilities": "Housing Index",
    "Healthcare": "Healthcare Index",
    "Entertainment": "Consumer Spending",
    "Clothing": "Consumer Price Index",
    "Electronics": "Consumer Price Index",
    "Other Goods": "Consumer Price Index",
}

# Trade-data slugs used by the representative-item refresh job.
TRADE_CATEGORY_SLUGS: dict[str, str] = {
    "Groceries & Food": "food-beverage",
    "Transportation": "transport-equipment",
    "Housing & Utilities": "construction-materials",
    "Healthcare": "medical-pharmaceutical",
    "Entertainment": "recreation-culture",
    "Clothing": "textiles-clothing",
    "Electronics": "electronics-computers",
    "Other Goods": "consumer-goods",
}

# ── Trading partners ─────────────────────────────────────────────────────────

TRADE_PARTNERS: tuple[str, ...] = ("Mexico", "Canada", "China")

DEFAULT_TRADE_INTENSITY = 1.0
DEFAULT_IMPORT_SHARE = 0.2
DEFAULT_SUPPLY_CHAIN_EFFECT = 0.7

# country -> (trade intensity, {category: (import share, supply-chain effect)})
COUNTRY_TRADE_FACTORS: dict[str, tuple[float, dict[str, tuple[float, float]]]] = {
    "Mexico": (
        1.2,
        {
            "Groceries & Food": (0.45, 0.8),
            "Transportation": (0.35, 0.7),
            "Housing & Utilities": (0.15, 0.5),
            "Healthcare": (0.10, 0.4),
            "Entertainment": (0.20, 0.5),
            "Clothing": (0.25, 0.6),
            "Electronics": (0.30, 0.7),
            "Other Goods": (0.20, 0.5),
        },
    ),
    "Canada": (
        1.1,
        {
            "Groceries & Food": (0.30, 0.7),
            "Transportation": (0.40, 0.8),
            "Housing & Utilities": (0.50, 0.9),
            "Healthcare": (0.15, 0.5),
            "Entertainment": (0.10, 0.4),
            "Clothing": (0.05, 0.3),
            "Electronics": (0.15, 0.4),
            "Other Goods": (0.25, 0.6),
        },
    ),
    "China": (
        1.3,
        {
            "Groceries & Food": (0.15, 0.5),
            "Transportation": (0.25, 0.6),
            "Housing & Utilities": (0.20, 0.5),
            "Healthcare": (0.30, 0.6),
            "Entertainment": (0.40, 0.7),
            "Clothing": (0.70, 0.9),
            "Electronics": (0.75, 0.9),
            "Other Goods": (0.60, 0.8),
        },
    ),
}

# country -> category -> [(name, base price, import share, explanation)]
REPRESENTATIVE_ITEMS: dict[str, dict[str, list[tuple[str, float, float, str]]]] = {
    "Mexico": {
        "Groceries & Food": [
            ("Avocados", 1.50, 0.80, "Mexico supplies 80% of US avocados"),
            ("Tomatoes", 2.00, 0.70, "Mexico is the largest tomato supplier to US"),
        ],
        "Transportation": [
            ("Auto Parts", 100.0, 0.60, "Major auto manufacturing hub"),
        ],
        "Electronics": [
            ("TVs & Displays", 400.0, 0.70, "Large electronics manufacturing base"),
        ],
    },
    "Canada": {
        "Groceries & Food": [
            ("Dairy Products", 5.00, 0.40, "Significant dairy trade relationship"),
            ("Wheat Products", 3.00, 0.50, "Major grain exporter to US"),
        ],
        "Transportation": [
            ("Auto Parts", 100.0, 0.50, "Integrated auto manufacturing"),
        ],
        "Housing & Utilities": [
            ("Lumber", 1000.0, 0.70, "Primary lumber supplier to US"),
        ],
    },
    "China": {
        "Electronics": [
            ("Consumer Electronics", 400.0, 0.80, "Major electronics manufacturer"),
            ("Computer Parts", 200.0, 0.75, "Primary supplier of components"),
        ],
        "Clothing": [
            ("Apparel", 50.0, 0.70, "Large textile manufacturing base"),
        ],
        "Other Goods": [
            ("Furniture", 800.0, 0.60, "Major furniture exporter to US"),
            ("Home Goods", 200.0, 0.65, "Various household items"),
        ],
    },
}


def canonical_country(name: str) -> str | None:
    """Match *name* case-insensitively against :data:`TRADE_PARTNERS`."""
    cleaned = name.strip().lower()
    return next((c for c in TRADE_PARTNERS if c.lower() == cleaned), None)


def validate_reference_tables() -> None:
    """Fail fast when a required mapping is missing a category."""
    required = {
        "INCOME_SHARES": INCOME_SHARES,
        "BASE_PRICES": BASE_PRICES,
        "CATEGORY_INDICATORS": CATEGORY_INDICATORS,
        "TRADE_CATEGORY_SLUGS": TRADE_CATEGORY_SLUGS,
    }
    for table_name, table in required.items():
        missing = [c for c in CATEGORIES if c not in table]
        if missing:
            raise ReferenceDataError(f"{table_name} has no entry for: {', '.join(missing)}")

    unknown = sorted(set(COMMODITY_SYMBOLS) - set(CATEGORIES))
    if unknown:
        raise ReferenceDataError(f"COMMODITY_SYMBOLS references unknown categories: {unknown}")

    for country, (_, factors) in COUNTRY_TRADE_FACTORS.items():
        unknown = sorted(set(factors) - set(CATEGORIES))
        if unknown:
            raise ReferenceDataError(f"COUNTRY_TRADE_FACTORS[{country!r}] has unknown categories: {unknown}")


validate_reference_tables()
