"""Report generation for an impact estimate: Markdown, JSON, and a short text summary."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from dateutil import tz

from .models import ImpactResult

logger = logging.getLogger(__name__)

_DISCLAIMER = (
    "> **Disclaimer:** This estimate is illustrative only. It combines published economic "
    "indicators with simplified passthrough assumptions and does not attempt real macroeconomic "
    "accuracy. Actual price changes depend on retailer behaviour, exchange rates, exemptions, "
    "and timing."
)


def _now_local(timezone_str: str) -> datetime:
    local_tz = tz.gettz(timezone_str) or tz.tzlocal()
    return datetime.now(tz=local_tz)


def _money(value: float) -> str:
    return f"${value:,.2f}"


def _ranked(result: ImpactResult) -> list[tuple[str, Any]]:
    """Categories ordered by impact, largest first."""
    return sorted(result.category_impacts.items(), key=lambda kv: kv[1].impact, reverse=True)


def _md_table(result: ImpactResult) -> str:
    if not result.category_impacts:
        return "_No category impacts could be calculated._\n"
    header = "| Category | Annual Impact | Share of Total |\n"
    separator = "|---|---:|---:|\n"
    rows = []
    for category, ci in _ranked(result):
        share = (ci.impact / result.total_impact * 100) if result.total_impact else 0.0
        rows.append(f"| {category} | {_money(ci.impact)} | {share:.1f}% |")
    return header + separator + "\n".join(rows) + "\n"


def _md_items(result: ImpactResult) -> str:
    sections = []
    for category, ci in _ranked(result):
        if not ci.representative_items:
            continue
        lines = [f"### {category}", ""]
        for item in ci.representative_items:
            lines.append(f"- **{item.name}**: +{_money(item.impact)} per purchase: {item.explanation}")
        sections.append("\n".join(lines))
    return "\n\n".join(sections) if sections else "_No representative goods listed for this country._"


def generate_markdown_report(
    result: ImpactResult,
    inputs: dict[str, Any],
    run_date_str: str,
    timezone_str: str = "America/Los_Angeles",
) -> str:
    income = inputs.get("income")
    income_line = _money(float(income)) if income is not None else "_n/a_"
    return f"""# Tariff Impact Estimate

**Date:** {run_date_str} ({timezone_str})
**Household income:** {income_line}
**State:** {inputs.get('state', '?')}
**Tariff:** {inputs.get('tariff_percentage', '?')}% on imports from {inputs.get('country', '?')}

---

## 💵 Estimated Annual Impact

**{_money(result.total_impact)}** per year

---

## 📊 By Spending Category

{_md_table(result)}

---

## 🛒 Example Goods

{_md_items(result)}

---

## ⚠️ Disclaimer

{_DISCLAIMER}
"""


def generate_json_report(
    result: ImpactResult,
    inputs: dict[str, Any],
    run_date_str: str,
    timezone_str: str = "America/Los_Angeles",
) -> dict[str, Any]:
    return {
        "meta": {
            "date": run_date_str,
            "timezone": timezone_str,
            "inputs": inputs,
            "categories_calculated": len(result.category_impacts),
        },
        "result": result.as_dict(),
    }


def generate_text_summary(result: ImpactResult, inputs: dict[str, Any], top: int = 3) -> str:
    """Return a short plain-text summary suitable for a terminal."""
    lines = [
        f"Estimated annual impact: {_money(result.total_impact)}",
        f"  ({inputs.get('tariff_percentage', '?')}% tariff on {inputs.get('country', '?')}, "
        f"state {inputs.get('state', '?')})",
    ]
    ranked = _ranked(result)[:top]
    if ranked:
        lines.append("Largest categories:")
        lines.extend(f"  • {category}: {_money(ci.impact)}" for category, ci in ranked)
    else:
        lines.append("No category impacts could be calculated.")
    return "\n".join(lines)


def write_reports(
    result: ImpactResult,
    inputs: dict[str, Any],
    reports_dir: str | Path,
    timezone_str: str = "America/Los_Angeles",
) -> tuple[Path, Path]:
    """
    Write Markdown + JSON reports to reports_dir.
    Returns (md_path, json_path).
    """
    reports_dir = Path(reports_dir)
    reports_dir.mkdir(parents=True, exist_ok=True)

    now = _now_local(timezone_str)
    date_str = now.strftime("%Y-%m-%d")
    country = str(inputs.get("country", "unknown")).lower().replace(" ", "_")
    file_stem = f"impact_{country}_{now.strftime('%Y%m%d_%H%M%S')}"

    md_path = reports_dir / f"{file_stem}.md"
    json_path = reports_dir / f"{file_stem}.json"

    md_path.write_text(generate_markdown_report(result, inputs, date_str, timezone_str), encoding="utf-8")
    json_path.write_text(
        json.dumps(generate_json_report(result, inputs, date_str, timezone_str), indent=2, default=str),
        encoding="utf-8",
    )

    logger.info("Report written: %s", md_path)
    logger.info("Report written: %s", json_path)
    return md_path, json_path
