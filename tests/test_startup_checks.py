"""Tests for startup configuration checks."""
import pytest

from config.settings import settings
from affiliate_tracker.startup_checks import validate_settings


def test_dev_defaults_warn(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_KEY", "")
    warnings = validate_settings()
    assert any("JWT_SECRET" in w for w in warnings)
    assert any("ADMIN_API_KEY" in w for w in warnings)


def test_default_secret_blocks_production(monkeypatch):
    monkeypatch.setattr(settings, "DATABASE_URL", "postgresql+asyncpg://db/affiliates")
    monkeypatch.setattr(settings, "JWT_SECRET", "affiliates-dev-secret-change-in-prod")
    with pytest.raises(SystemExit):
        validate_settings()


def test_clean_production_config(monkeypatch):
    monkeypatch.setattr(settings, "DATABASE_URL", "postgresql+asyncpg://db/affiliates")
    monkeypatch.setattr(settings, "JWT_SECRET", "a-real-secret")
    monkeypatch.setattr(settings, "ADMIN_API_KEY", "admin")
    monkeypatch.setattr(settings, "CORS_ORIGINS", ["https://app.example.com"])
    monkeypatch.setattr(settings, "AFFILIATE_BASE_URL", "https://go.example.com")
    monkeypatch.setattr(settings, "DEFAULT_ATTRIBUTION_WINDOW_DAYS", 30)
    assert validate_settings() == []


def test_window_out_of_range_warns(monkeypatch):
    monkeypatch.setattr(settings, "DEFAULT_ATTRIBUTION_WINDOW_DAYS", 0)
    assert any("DEFAULT_ATTRIBUTION_WINDOW_DAYS" in w for w in validate_settings())
