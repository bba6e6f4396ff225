"""Costimator configuration management.

Loads configuration from environment variables with sensible defaults.
Follows DPWH conventions (PHP currency, OCM/CP/VAT markups).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


@dataclass
class DBConfig:
    """Database connection configuration."""

    url: str
    pool_size: int = 10
    pool_max_overflow: int = 20
    pool_timeout: int = 30
    echo: bool = False  # SQL logging


@dataclass
class MarkupConfig:
    """Indirect cost markups applied to new estimates (percent)."""

    ocm_percentage: Decimal = Decimal("10")
    cp_percentage: Decimal = Decimal("10")
    vat_percentage: Decimal = Decimal("12")
    currency: str = "PHP"


@dataclass
class WorkflowConfig:
    """Actor names stamped when a caller does not supply one."""

    default_created_by: str = "system"
    default_reviewer: str = "Admin"


@dataclass
class AppConfig:
    """Root application configuration.

    Loads from environment variables with fail-fast on missing required values.
    """

    db: DBConfig
    log_level: str = "INFO"
    log_format: str = "text"  # json or text
    catalog_path: Path | None = None

    markups: MarkupConfig = field(default_factory=MarkupConfig)
    workflow: WorkflowConfig = field(default_factory=WorkflowConfig)

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load configuration from environment variables.

        Required environment variables:
        - DATABASE_URL: SQLAlchemy async connection string

        Optional (with defaults):
        - LOG_LEVEL: Logging verbosity (default: "INFO")
        - DPWH_CATALOG_PATH: Pay item dataset (default: config/dpwh_catalog.yaml)

        Raises:
            KeyError: If required environment variables are missing
        """
        database_url = os.environ.get("DATABASE_URL")
        if not database_url:
            raise KeyError(
                "DATABASE_URL environment variable is required. "
                "Example: sqlite+aiosqlite:///./costimator.db"
            )

        catalog_path = os.getenv("DPWH_CATALOG_PATH")

        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
            catalog_path=Path(catalog_path) if catalog_path else None,
            db=DBConfig(
                url=database_url,
                pool_size=int(os.getenv("DB_POOL_SIZE", "10")),
                pool_max_overflow=int(os.getenv("DB_POOL_MAX_OVERFLOW", "20")),
                pool_timeout=int(os.getenv("DB_POOL_TIMEOUT", "30")),
                echo=os.getenv("DB_ECHO", "false").lower() == "true",
            ),
            markups=MarkupConfig(
                ocm_percentage=Decimal(os.getenv("OCM_PERCENTAGE", "10")),
                cp_percentage=Decimal(os.getenv("CP_PERCENTAGE", "10")),
                vat_percentage=Decimal(os.getenv("VAT_PERCENTAGE", "12")),
                currency=os.getenv("DEFAULT_CURRENCY", "PHP"),
            ),
            workflow=WorkflowConfig(
                default_created_by=os.getenv("DEFAULT_CREATED_BY", "system"),
                default_reviewer=os.getenv("DEFAULT_REVIEWER", "Admin"),
            ),
        )

    @property
    def config_root(self) -> Path:
        """Root directory for configuration files (catalog YAML)."""
        return Path(__file__).parent.parent / "config"

    @property
    def dpwh_catalog_path(self) -> Path:
        """Path to the DPWH pay item dataset."""
        return self.catalog_path or self.config_root / "dpwh_catalog.yaml"


# Singleton instance (lazy-loaded)
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Get or create singleton AppConfig instance from environment.

    Raises:
        KeyError: If required environment variables are missing
    """
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def reset_config() -> None:
    """Drop the cached config so the next call re-reads the environment."""
    global _config
    _config = None
