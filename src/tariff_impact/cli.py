"""Command-line entry point for Tariff Impact."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tariff-impact",
        description="Estimate how a proposed import tariff changes a household's annual budget.",
    )
    sub = parser.add_subparsers(dest="command")

    # ── estimate ───────────────────────────────────────────────────────────
    est_cmd = sub.add_parser("estimate", help="Estimate the annual cost of a tariff for one household.")
    est_cmd.add_argument("--income", required=True, type=float, help="Annual household income in USD.")
    est_cmd.add_argument("--state", required=True, help="Two-letter US state code, e.g. CA.")
    est_cmd.add_argument("--tariff", required=True, type=float, help="Tariff percentage, 0–100.")
    est_cmd.add_argument("--country", required=True, help="Trading partner: Mexico, Canada or China.")
    est_cmd.add_argument("--config", default=None, help="Path to config.yaml (default: environment only).")
    est_cmd.add_argument(
        "--json",
        dest="output_json",
        action="store_true",
        help="Output only machine-readable JSON.",
    )
    est_cmd.add_argument("--report-dir", default=None, help="Also write Markdown + JSON reports here.")

    # ── refresh ────────────────────────────────────────────────────────────
    ref_cmd = sub.add_parser("refresh", help="Rebuild the representative-item cache from trade data.")
    ref_cmd.add_argument("--config", default=None, help="Path to config.yaml (default: environment only).")

    return parser


def _load(path: str | None):
    from .config import ConfigError, config_from_env, load_config

    if path is None:
        return config_from_env()
    try:
        return load_config(path)
    except ConfigError as exc:
        print(f"[ERROR] Configuration error: {exc}", file=sys.stderr)
        sys.exit(2)


# ---------------------------------------------------------------------------
# Sub-command implementations
# ---------------------------------------------------------------------------

def _cmd_estimate(args: argparse.Namespace) -> None:
    """Run one household estimate and print it."""
    from .config import build_source, build_store
    from .impact import CalculationError, InputError, estimate_household_impact
    from .reference_data import TRADE_PARTNERS, canonical_country
    from .refresh import RefreshScheduler
    from .report import generate_text_summary, write_reports

    cfg = _load(args.config)

    country = canonical_country(args.country)
    if country is None:
        print(
            f"[ERROR] Unknown country {args.country!r}; choose one of: {', '.join(TRADE_PARTNERS)}",
            file=sys.stderr,
        )
        sys.exit(2)

    inputs = {
        "income": args.income,
        "state": args.state.strip().upper(),
        "tariff_percentage": args.tariff,
        "country": country,
    }

    source, store = build_source(cfg), build_store(cfg)
    # Only a shared store outlives this process, so only then is a miss worth refreshing.
    refresher = None
    if cfg.cache.redis_url:
        refresher = RefreshScheduler(source, store, expiry_seconds=cfg.cache.expiry_seconds)

    async def run_estimate():
        try:
            return await estimate_household_impact(
                args.income,
                inputs["state"],
                args.tariff,
                country,
                source=source,
                store=store,
                refresher=refresher,
            )
        finally:
            if refresher is not None:
                await refresher.drain()

    try:
        result = asyncio.run(run_estimate())
    except InputError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        sys.exit(2)
    except CalculationError as exc:
        print(f"[ERROR] {exc}: {exc.__cause__}", file=sys.stderr)
        sys.exit(4)

    if args.report_dir:
        try:
            write_reports(result, inputs, Path(args.report_dir), cfg.runtime.timezone)
        except OSError as exc:
            print(f"[ERROR] Report generation failed: {exc}", file=sys.stderr)
            sys.exit(4)

    if args.output_json:
        print(json.dumps(result.as_dict(), indent=2, ensure_ascii=False))
        return

    print(generate_text_summary(result, inputs))


def _cmd_refresh(args: argparse.Namespace) -> None:
    """Rebuild every (country, category) representative-item entry."""
    from .config import build_source, build_store
    from .refresh import refresh_all_trade_data

    cfg = _load(args.config)
    if not cfg.cache.redis_url:
        logger.warning("No redis_url configured; refreshed items will not outlive this process.")

    summary = asyncio.run(
        refresh_all_trade_data(
            build_source(cfg),
            build_store(cfg),
            expiry_seconds=cfg.cache.expiry_seconds,
        )
    )
    print(json.dumps(summary.as_dict(), indent=2))
    if summary.failed:
        sys.exit(3)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "estimate":
        _cmd_estimate(args)
    elif args.command == "refresh":
        _cmd_refresh(args)
    else:
        parser.print_help()
        sys.exit(0)

    sys.exit(0)


if __name__ == "__main__":
    main()
