"""Unit tests for Costimator configuration management.

Tests AppConfig loading from environment variables, validation, and defaults.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest

from costimator.config import AppConfig, get_config, reset_config


class TestAppConfig:
    """Test AppConfig creation and validation."""

    def test_from_env_requires_database_url(self, monkeypatch):
        """Test DATABASE_URL is required."""
        monkeypatch.delenv("DATABASE_URL", raising=False)

        with pytest.raises(KeyError) as exc_info:
            AppConfig.from_env()

        assert "DATABASE_URL" in str(exc_info.value)

    def test_from_env_with_minimal_config(self, monkeypatch):
        """Test loading with only required env vars."""
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
        for name in ("OCM_PERCENTAGE", "CP_PERCENTAGE", "VAT_PERCENTAGE", "DPWH_CATALOG_PATH"):
            monkeypatch.delenv(name, raising=False)

        config = AppConfig.from_env()

        assert config.db.url == "sqlite+aiosqlite:///./test.db"
        assert config.markups.ocm_percentage == Decimal("10")
        assert config.markups.cp_percentage == Decimal("10")
        assert config.markups.vat_percentage == Decimal("12")
        assert config.markups.currency == "PHP"
        assert config.workflow.default_reviewer == "Admin"
        assert config.workflow.default_created_by == "system"

    def test_custom_markups(self, monkeypatch):
        """Test markup percentages come from the environment."""
        monkeypatch.setenv("OCM_PERCENTAGE", "8")
        monkeypatch.setenv("VAT_PERCENTAGE", "0")

        config = AppConfig.from_env()

        assert config.markups.ocm_percentage == Decimal("8")
        assert config.markups.vat_percentage == Decimal("0")

    def test_pool_settings(self, monkeypatch):
        monkeypatch.setenv("DB_POOL_SIZE", "3")
        monkeypatch.setenv("DB_ECHO", "true")

        config = AppConfig.from_env()

        assert config.db.pool_size == 3
        assert config.db.echo is True

    def test_catalog_path_default_and_override(self, monkeypatch, tmp_path: Path):
        monkeypatch.delenv("DPWH_CATALOG_PATH", raising=False)
        assert AppConfig.from_env().dpwh_catalog_path.name == "dpwh_catalog.yaml"

        custom = tmp_path / "catalog.yaml"
        monkeypatch.setenv("DPWH_CATALOG_PATH", str(custom))
        assert AppConfig.from_env().dpwh_catalog_path == custom


class TestConfigSingleton:
    def test_get_config_cached_until_reset(self, monkeypatch):
        first = get_config()
        assert get_config() is first

        monkeypatch.setenv("DEFAULT_REVIEWER", "Regional Director")
        reset_config()

        assert get_config().workflow.default_reviewer == "Regional Director"
