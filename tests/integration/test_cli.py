"""CLI tests using typer's CliRunner."""

from __future__ import annotations

import logging

import pytest
from rich.console import Console
from typer.testing import CliRunner

from ngomigrate.cli import app
from ngomigrate.config import reset_config
from ngomigrate.pipeline.types import UserImportStats

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_env(monkeypatch, tmp_path):
    monkeypatch.setenv("STRAPI_URL", "http://strapi.test")
    monkeypatch.delenv("STRAPI_TOKEN", raising=False)
    monkeypatch.delenv("DRY_RUN", raising=False)
    monkeypatch.delenv("DRY_RUN_CHECK_EXISTING", raising=False)
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.setattr("ngomigrate.cli.console", Console(width=200))
    reset_config()

    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    reset_config()


@pytest.fixture
def workbook(workbook_factory, sample_row, row_factory, monkeypatch):
    path = workbook_factory([sample_row, row_factory("绿色环保协会"), row_factory("")])
    monkeypatch.setenv("EXCEL_FILE", str(path))
    return path


def test_help_short_flag():
    result = runner.invoke(app, ["-h"])

    assert result.exit_code == 0
    assert "--dry-run" in result.output
    assert "import-users" in result.output


def test_dry_run_import(workbook, tmp_path):
    result = runner.invoke(app, ["--dry-run"])

    assert result.exit_code == 0, result.output
    assert "DRY RUN" in result.output
    assert "爱心教育基金会" in result.output
    assert "Import Summary" in result.output
    assert "100.0%" in result.output
    assert "Log files: 0 failed, 0 contact user failed, 0 skipped" in result.output
    assert len(list((tmp_path / "logs").iterdir())) == 3


def test_short_dry_run_flag(workbook):
    result = runner.invoke(app, ["-d"])
    assert result.exit_code == 0, result.output


def test_missing_token_exits_with_error(workbook):
    result = runner.invoke(app, [])

    assert result.exit_code == 1
    assert "STRAPI_TOKEN" in result.output


def test_missing_file_exits_with_error(tmp_path, monkeypatch):
    monkeypatch.setenv("EXCEL_FILE", str(tmp_path / "missing.xlsx"))

    result = runner.invoke(app, ["--dry-run"])

    assert result.exit_code == 1
    assert "not found" in result.output


def test_invalid_batch_size_exits_with_error(workbook, monkeypatch):
    monkeypatch.setenv("BATCH_SIZE", "0")

    result = runner.invoke(app, ["--dry-run"])

    assert result.exit_code == 1
    assert "BATCH_SIZE" in result.output


def test_import_users_dry_run(workbook):
    result = runner.invoke(app, ["import-users", "--dry-run"])

    assert result.exit_code == 0, result.output
    assert "liming@aixin.org" in result.output
    assert "Created: 1" in result.output


@pytest.mark.parametrize(
    "args,expected",
    [
        (["-d", "import-users"], True),
        (["--dry-run", "import-users"], True),
        (["import-users", "-d"], True),
        (["import-users"], False),
    ],
)
def test_import_users_honors_dry_run_flag(workbook, monkeypatch, args, expected):
    monkeypatch.setenv("STRAPI_TOKEN", "test-token")
    seen = {}

    async def fake_import(config, on_progress=None):
        seen["dry_run"] = config.importer.dry_run
        return UserImportStats()

    monkeypatch.setattr("ngomigrate.cli.import_contact_users", fake_import)

    result = runner.invoke(app, args)

    assert result.exit_code == 0, result.output
    assert seen == {"dry_run": expected}


def test_analyze(workbook):
    result = runner.invoke(app, ["analyze", str(workbook)])

    assert result.exit_code == 0, result.output
    assert "机构" in result.output
    assert "常用名称" in result.output


def test_analyze_missing_file(tmp_path):
    result = runner.invoke(app, ["analyze", str(tmp_path / "missing.xlsx")])
    assert result.exit_code == 1
