"""Tests for config.py"""

import tempfile
from pathlib import Path

import pytest

from tariff_impact.cache import MemoryCacheStore
from tariff_impact.config import AppConfig, ConfigError, build_source, build_store, config_from_env, load_config

SAMPLE_YAML = """
source:
  api_key: ENV:TEST_TE_KEY
  min_request_interval: 0.5
  retries: 2
cache:
  expiry_days: 3
cron:
  secret: ENV:TEST_CRON_SECRET
runtime:
  timezone: America/New_York
  log_level: DEBUG
"""


def _write(text: str) -> Path:
    fh = tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False, encoding="utf-8")
    fh.write(text)
    fh.close()
    return Path(fh.name)


def test_load_config_resolves_env(monkeypatch):
    monkeypatch.setenv("TEST_TE_KEY", "abc123")
    monkeypatch.delenv("TEST_CRON_SECRET", raising=False)
    cfg = load_config(_write(SAMPLE_YAML))
    assert cfg.source.api_key == "abc123"
    assert cfg.source.min_request_interval == 0.5
    assert cfg.source.retries == 2
    assert cfg.source.base_url == "https://api.tradingeconomics.com"
    assert cfg.cache.expiry_seconds == 3 * 24 * 3600
    assert cfg.cron.secret is None
    assert cfg.runtime.timezone == "America/New_York"


def test_missing_file():
    with pytest.raises(ConfigError):
        load_config("/nonexistent/config.yaml")


def test_invalid_section_type():
    with pytest.raises(ConfigError):
        load_config(_write("source: [1, 2]\n"))


def test_invalid_number():
    with pytest.raises(ConfigError):
        load_config(_write("source:\n  timeout: soon\n"))


def test_empty_file_gives_defaults():
    cfg = load_config(_write(""))
    assert cfg == AppConfig()


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("TRADING_ECONOMICS_API_KEY", "k")
    monkeypatch.setenv("CRON_SECRET", "s")
    monkeypatch.delenv("REDIS_URL", raising=False)
    cfg = config_from_env()
    assert cfg.source.api_key == "k"
    assert cfg.cron.secret == "s"
    assert cfg.cache.redis_url is None


def test_builders():
    cfg = AppConfig()
    cfg.source.min_request_interval = 0.25
    source = build_source(cfg)
    assert source.limiter.min_interval == 0.25
    assert isinstance(build_store(cfg), MemoryCacheStore)
