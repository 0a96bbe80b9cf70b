"""ngomigrate configuration management.

Loads configuration from environment variables (and a ``.env`` file when
present).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


class ConfigError(Exception):
    """Configuration is missing or invalid; the run cannot start."""


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


@dataclass
class StrapiConfig:
    """Remote content backend connection."""

    base_url: str = "http://localhost:1337"
    token: str = ""
    timeout_seconds: float = 30.0
    api_prefix: str = "/api"


@dataclass
class SourceConfig:
    """Input spreadsheet."""

    excel_file: Path = Path("教育公益开放式数据库.xlsx")
    sheet_name: Optional[str] = None  # None -> first sheet
    max_rows: int = 0  # 0 -> all rows


@dataclass
class ImporterConfig:
    """Batch import behaviour."""

    batch_size: int = 10
    batch_delay_seconds: float = 0.0
    dry_run: bool = False
    check_existing_in_dry_run: bool = False
    create_contact_users: bool = True
    contact_user_role: int = 1


@dataclass
class AppConfig:
    """Root application configuration."""

    strapi: StrapiConfig = field(default_factory=StrapiConfig)
    source: SourceConfig = field(default_factory=SourceConfig)
    importer: ImporterConfig = field(default_factory=ImporterConfig)
    log_dir: Path = Path("logs")
    log_level: str = "INFO"
    json_logs: bool = False

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load configuration from environment variables.

        Optional (with defaults):
        - STRAPI_URL, STRAPI_TOKEN, STRAPI_TIMEOUT
        - EXCEL_FILE, SHEET_NAME, MAX_ROWS
        - BATCH_SIZE, BATCH_DELAY, DRY_RUN, DRY_RUN_CHECK_EXISTING
        - CREATE_CONTACT_USERS, CONTACT_USER_ROLE
        - LOG_DIR, LOG_LEVEL, JSON_LOGS

        Raises:
            ConfigError: If a numeric variable cannot be parsed or is out of range
        """
        batch_size = _env_int("BATCH_SIZE", "10")
        if batch_size < 1:
            raise ConfigError(f"BATCH_SIZE must be at least 1, got {batch_size}")
        batch_delay = _env_float("BATCH_DELAY", "0")
        if batch_delay < 0:
            raise ConfigError(f"BATCH_DELAY must not be negative, got {batch_delay}")

        return cls(
            strapi=StrapiConfig(
                base_url=os.getenv("STRAPI_URL", "http://localhost:1337"),
                token=os.getenv("STRAPI_TOKEN", ""),
                timeout_seconds=_env_float("STRAPI_TIMEOUT", "30"),
            ),
            source=SourceConfig(
                excel_file=Path(os.getenv("EXCEL_FILE", "教育公益开放式数据库.xlsx")),
                sheet_name=os.getenv("SHEET_NAME") or None,
                max_rows=max(_env_int("MAX_ROWS", "0"), 0),
            ),
            importer=ImporterConfig(
                batch_size=batch_size,
                batch_delay_seconds=batch_delay,
                dry_run=_env_bool("DRY_RUN"),
                check_existing_in_dry_run=_env_bool("DRY_RUN_CHECK_EXISTING"),
                create_contact_users=_env_bool("CREATE_CONTACT_USERS", "true"),
                contact_user_role=_env_int("CONTACT_USER_ROLE", "1"),
            ),
            log_dir=Path(os.getenv("LOG_DIR", "logs")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            json_logs=_env_bool("JSON_LOGS"),
        )

    def validate(self) -> None:
        """Fail fast before any row is processed.

        Raises:
            ConfigError: Missing token outside dry-run, or missing input file
        """
        if not self.strapi.token and not self.importer.dry_run:
            raise ConfigError("STRAPI_TOKEN is required unless DRY_RUN=true")
        if not self.source.excel_file.exists():
            raise ConfigError(f"Excel file not found: {self.source.excel_file}")


# Singleton instance (lazy-loaded)
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Get the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def reset_config() -> None:
    """Drop the cached configuration (tests, CLI flag overrides)."""
    global _config
    _config = None
