"""Smoke tests for the Costimator CLI against a temporary SQLite file."""

from __future__ import annotations

from pathlib import Path

import pytest
from rich.console import Console
from typer.testing import CliRunner

from costimator import cli
from costimator.cli import app
from costimator.config import reset_config
from costimator.db import connection
from costimator.errors import CostimatorError

runner = CliRunner()


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    """Keep rich tables on one line per row so output assertions are stable."""
    monkeypatch.setattr(cli, "console", Console(width=200))


@pytest.fixture
def cli_db(monkeypatch, tmp_path: Path) -> Path:
    db_path = tmp_path / "costimator.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setattr(connection, "_engine", None)
    monkeypatch.setattr(connection, "_session_factory", None)
    reset_config()
    return db_path


def test_classify_shipped_items():
    result = runner.invoke(app, ["classify", "800 (1)", "A.1.1 (1)"])

    assert result.exit_code == 0
    assert "PART C" in result.output
    assert "PART A" in result.output


def test_init_and_create_project(cli_db: Path):
    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0, result.output
    assert cli_db.exists()

    result = runner.invoke(app, ["create-project", "Barangay Health Center", "--location", "Ormoc"])
    assert result.exit_code == 0, result.output
    assert "Created project" in result.output


def test_domain_error_exits_with_code_1(cli_db: Path):
    assert runner.invoke(app, ["init"]).exit_code == 0

    result = runner.invoke(app, ["estimates", "submit", "--project", "missing", "--version", "1"])

    assert result.exit_code == 1
    assert "not found" in result.output


def test_invalid_direct_cost():
    result = runner.invoke(app, ["estimates", "create", "--project", "p1", "--direct-cost", "lots"])

    assert result.exit_code == 2
    assert "Invalid direct cost" in result.output


@pytest.mark.parametrize(
    "args",
    [
        ["classify", "800 (1)"],
        ["generate-boq", "--project", "p1"],
        ["import-schedule", "doors.csv", "--project", "p1"],
        ["export-boq", "--project", "p1", "--out", "boq.xlsx"],
    ],
)
def test_missing_catalog_exits_with_code_1(monkeypatch, tmp_path: Path, args: list[str]):
    monkeypatch.setenv("DPWH_CATALOG_PATH", str(tmp_path / "missing.yaml"))
    reset_config()

    result = runner.invoke(app, args)

    assert result.exit_code == 1
    assert "Catalog dataset not found" in result.output
    assert not isinstance(result.exception, CostimatorError)
