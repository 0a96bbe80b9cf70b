"""Unit tests for ngomigrate configuration management.

Tests AppConfig loading from environment variables, validation, and defaults.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from ngomigrate.config import AppConfig, ConfigError, get_config, reset_config

ENV_VARS = (
    "STRAPI_URL",
    "STRAPI_TOKEN",
    "STRAPI_TIMEOUT",
    "EXCEL_FILE",
    "SHEET_NAME",
    "MAX_ROWS",
    "BATCH_SIZE",
    "BATCH_DELAY",
    "DRY_RUN",
    "DRY_RUN_CHECK_EXISTING",
    "CREATE_CONTACT_USERS",
    "CONTACT_USER_ROLE",
    "LOG_DIR",
    "LOG_LEVEL",
    "JSON_LOGS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


class TestAppConfig:
    """Test AppConfig creation and validation."""

    def test_defaults(self):
        config = AppConfig.from_env()

        assert config.strapi.base_url == "http://localhost:1337"
        assert config.strapi.token == ""
        assert config.strapi.timeout_seconds == 30.0
        assert config.source.excel_file == Path("教育公益开放式数据库.xlsx")
        assert config.source.sheet_name is None
        assert config.source.max_rows == 0
        assert config.importer.batch_size == 10
        assert config.importer.dry_run is False
        assert config.importer.create_contact_users is True
        assert config.log_dir == Path("logs")

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("STRAPI_URL", "https://cms.example.org")
        monkeypatch.setenv("STRAPI_TOKEN", "abc")
        monkeypatch.setenv("BATCH_SIZE", "25")
        monkeypatch.setenv("BATCH_DELAY", "0.5")
        monkeypatch.setenv("DRY_RUN", "true")
        monkeypatch.setenv("CREATE_CONTACT_USERS", "no")
        monkeypatch.setenv("SHEET_NAME", "Sheet2")
        monkeypatch.setenv("MAX_ROWS", "100")

        config = AppConfig.from_env()

        assert config.strapi.base_url == "https://cms.example.org"
        assert config.strapi.token == "abc"
        assert config.importer.batch_size == 25
        assert config.importer.batch_delay_seconds == 0.5
        assert config.importer.dry_run is True
        assert config.importer.create_contact_users is False
        assert config.source.sheet_name == "Sheet2"
        assert config.source.max_rows == 100

    @pytest.mark.parametrize("value", ["0", "-3"])
    def test_batch_size_must_be_positive(self, monkeypatch, value):
        monkeypatch.setenv("BATCH_SIZE", value)
        with pytest.raises(ConfigError, match="BATCH_SIZE"):
            AppConfig.from_env()

    def test_non_numeric_value(self, monkeypatch):
        monkeypatch.setenv("BATCH_SIZE", "ten")
        with pytest.raises(ConfigError, match="must be an integer"):
            AppConfig.from_env()

    def test_negative_delay(self, monkeypatch):
        monkeypatch.setenv("BATCH_DELAY", "-1")
        with pytest.raises(ConfigError, match="BATCH_DELAY"):
            AppConfig.from_env()

    def test_validate_requires_token_outside_dry_run(self, tmp_path):
        excel = tmp_path / "orgs.xlsx"
        excel.touch()
        config = AppConfig.from_env()
        config.source.excel_file = excel

        with pytest.raises(ConfigError, match="STRAPI_TOKEN"):
            config.validate()

        config.importer.dry_run = True
        config.validate()

    def test_validate_requires_existing_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("STRAPI_TOKEN", "abc")
        monkeypatch.setenv("EXCEL_FILE", str(tmp_path / "missing.xlsx"))

        with pytest.raises(ConfigError, match="not found"):
            AppConfig.from_env().validate()

    def test_get_config_is_cached(self, monkeypatch):
        first = get_config()
        monkeypatch.setenv("BATCH_SIZE", "3")
        assert get_config() is first

        reset_config()
        assert get_config().importer.batch_size == 3
