"""Configuration loader with ENV:VAR_NAME resolution."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .cache import CacheStore, MemoryCacheStore, RedisCacheStore
from .indicators import DEFAULT_BASE_URL, IndicatorSource
from .throttle import RequestLimiter

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration is missing or invalid."""


def _resolve(value: Any) -> Any:
    """Recursively resolve ENV:VAR_NAME references."""
    if isinstance(value, str) and value.startswith("ENV:"):
        var = value[4:]
        resolved = os.environ.get(var)
        if resolved is None:
            logger.debug("Environment variable %s not set (value stays None)", var)
        return resolved
    if isinstance(value, dict):
        return {k: _resolve(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve(v) for v in value]
    return value


@dataclass
class SourceConfig:
    base_url: str = DEFAULT_BASE_URL
    api_key: str | None = None
    timeout: int = 10
    retries: int = 3
    min_request_interval: float = 2.0


@dataclass
class CacheConfig:
    redis_url: str | None = None
    expiry_days: int = 7

    @property
    def expiry_seconds(self) -> int:
        return self.expiry_days * 24 * 60 * 60


@dataclass
class CronConfig:
    secret: str | None = None


@dataclass
class RuntimeConfig:
    timezone: str = "America/Los_Angeles"
    log_level: str = "INFO"


@dataclass
class AppConfig:
    source: SourceConfig = field(default_factory=SourceConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    cron: CronConfig = field(default_factory=CronConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)


def _section(raw: dict, name: str) -> dict:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping, got {type(value).__name__}")
    return value


def load_config(path: str | Path) -> AppConfig:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with path.open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file {path} is not valid YAML: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level")

    raw = _resolve(raw)
    cfg = AppConfig()

    try:
        src = _section(raw, "source")
        cfg.source = SourceConfig(
            base_url=src.get("base_url") or DEFAULT_BASE_URL,
            api_key=src.get("api_key"),
            timeout=int(src.get("timeout", 10)),
            retries=int(src.get("retries", 3)),
            min_request_interval=float(src.get("min_request_interval", 2.0)),
        )

        ca = _section(raw, "cache")
        cfg.cache = CacheConfig(
            redis_url=ca.get("redis_url") or None,
            expiry_days=int(ca.get("expiry_days", 7)),
        )

        cr = _section(raw, "cron")
        cfg.cron = CronConfig(secret=cr.get("secret") or None)

        rt = _section(raw, "runtime")
        cfg.runtime = RuntimeConfig(
            timezone=rt.get("timezone", "America/Los_Angeles"),
            log_level=rt.get("log_level", "INFO"),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value in {path}: {exc}") from exc

    logging.basicConfig(level=getattr(logging, cfg.runtime.log_level.upper(), logging.INFO))
    return cfg


def config_from_env() -> AppConfig:
    """Defaults plus the standard environment variables, for runs without a config file."""
    cfg = AppConfig()
    cfg.source.api_key = os.environ.get("TRADING_ECONOMICS_API_KEY")
    cfg.cache.redis_url = os.environ.get("REDIS_URL") or None
    cfg.cron.secret = os.environ.get("CRON_SECRET") or None
    return cfg


def build_source(cfg: AppConfig) -> IndicatorSource:
    return IndicatorSource(
        cfg.source.api_key,
        base_url=cfg.source.base_url,
        limiter=RequestLimiter(cfg.source.min_request_interval),
        timeout=cfg.source.timeout,
        retries=cfg.source.retries,
    )


def build_store(cfg: AppConfig) -> CacheStore:
    """Redis when a URL is configured, otherwise an in-process store."""
    if cfg.cache.redis_url:
        return RedisCacheStore(cfg.cache.redis_url)
    logger.info("No redis_url configured, using in-memory representative-item cache")
    return MemoryCacheStore()
