"""FastAPI web API for Tariff Impact."""

from __future__ import annotations

import hmac
import logging
import os
from dataclasses import dataclass
from typing import Any

from fastapi import BackgroundTasks, Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .cache import CacheStore
from .config import AppConfig, build_source, build_store, config_from_env, load_config
from .impact import CalculationError, InputError, estimate_household_impact
from .indicators import SourceLike, fetch_representative_items
from .reference_data import CATEGORIES, TRADE_PARTNERS, SpendingCategory, canonical_country
from .refresh import RefreshScheduler, refresh_all_trade_data

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

app = FastAPI(
    title="Tariff Impact API",
    description="Estimate how a proposed import tariff affects a household's annual budget.",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.environ.get("CORS_ORIGINS", "*").split(","),
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@dataclass
class Services:
    """Collaborators built once per process and injected into handlers."""

    config: AppConfig
    source: SourceLike
    store: CacheStore
    refresher: RefreshScheduler


def build_services(cfg: AppConfig) -> Services:
    source, store = build_source(cfg), build_store(cfg)
    refresher = RefreshScheduler(source, store, expiry_seconds=cfg.cache.expiry_seconds)
    return Services(config=cfg, source=source, store=store, refresher=refresher)


@app.on_event("startup")
def startup() -> None:
    path = os.environ.get("TARIFF_IMPACT_CONFIG")
    cfg = load_config(path) if path else config_from_env()
    app.state.services = build_services(cfg)
    if not cfg.source.api_key:
        logger.warning("No economic data API key configured; every estimate will use default factors.")
    logger.info("Tariff Impact API started.")


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        services = build_services(config_from_env())
        request.app.state.services = services
    return services


# ── Health ───────────────────────────────────────────────────────────────────

@app.get("/health", tags=["meta"])
def health() -> dict[str, str]:
    return {"status": "ok", "version": API_VERSION}


@app.get("/reference", tags=["meta"])
def reference() -> dict[str, list[str]]:
    """Supported trading partners and spending categories."""
    return {"countries": list(TRADE_PARTNERS), "categories": list(CATEGORIES)}


# ── Impact estimate ──────────────────────────────────────────────────────────

class ImpactRequest(BaseModel):
    income: float = Field(gt=0, description="Annual household income in USD")
    state: str = Field(min_length=2, max_length=2, description="Two-letter US state code")
    tariff_percentage: float = Field(ge=0, le=100, description="Tariff rate in percent")
    country: str = Field(description="Trading partner: Mexico, Canada or China")


@app.post("/impact", tags=["impact"])
async def post_impact(
    body: ImpactRequest,
    background_tasks: BackgroundTasks,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """
    Estimate the annual household cost of a tariff.

    Income is split across eight spending categories using fixed budget
    shares, then each category's exposure to the tariff is estimated from
    state, country and category indicators.  Representative items missing
    from the cache are recomputed in the background after the response.

    **Example body:** `{"income": 60000, "state": "CA", "tariff_percentage": 25, "country": "China"}`
    """
    country = canonical_country(body.country)
    if country is None:
        raise HTTPException(
            status_code=422,
            detail=f"Unknown country {body.country!r}; choose one of: {', '.join(TRADE_PARTNERS)}",
        )
    try:
        result = await estimate_household_impact(
            body.income,
            body.state.upper(),
            body.tariff_percentage,
            country,
            source=services.source,
            store=services.store,
            refresher=services.refresher,
        )
    except InputError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except CalculationError as exc:
        logger.error("Impact calculation failed: %s", exc.__cause__)
        raise HTTPException(status_code=500, detail="Failed to calculate tariff impact.") from exc
    background_tasks.add_task(services.refresher.drain)
    return result.as_dict()


# ── Representative items ─────────────────────────────────────────────────────

@app.get("/representative-items", tags=["impact"])
async def get_representative_items(
    background_tasks: BackgroundTasks,
    country: str = Query(description="Trading partner, e.g. 'China'"),
    category: str = Query(description="Spending category, e.g. 'Electronics'"),
    services: Services = Depends(get_services),
) -> list[dict[str, Any]]:
    """Illustrative goods for a (country, category) pair: cached trade data, else static examples."""
    partner = canonical_country(country)
    cat = SpendingCategory.from_label(category)
    if partner is None or cat is None:
        raise HTTPException(status_code=400, detail="Missing or unknown country or category")
    items = await fetch_representative_items(
        services.store, partner, cat.value, on_miss=services.refresher.schedule
    )
    background_tasks.add_task(services.refresher.drain)
    return [item.as_dict() for item in items]


# ── Scheduled refresh ────────────────────────────────────────────────────────

def _authorized(header: str | None, secret: str | None) -> bool:
    if not secret or not header:
        return False
    return hmac.compare_digest(header.encode("utf-8"), f"Bearer {secret}".encode("utf-8"))


@app.get("/cron/update-trade-data", tags=["cron"])
async def update_trade_data(
    authorization: str | None = Header(default=None),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Rebuild the representative-item cache. Requires `Authorization: Bearer <CRON_SECRET>`."""
    if not _authorized(authorization, services.config.cron.secret):
        raise HTTPException(status_code=401, detail="Unauthorized")
    try:
        summary = await refresh_all_trade_data(
            services.source,
            services.store,
            expiry_seconds=services.config.cache.expiry_seconds,
        )
    except Exception as exc:
        logger.error("Cron job failed: %s", exc)
        raise HTTPException(status_code=500, detail="Update failed") from exc
    return {"success": True, **summary.as_dict()}
