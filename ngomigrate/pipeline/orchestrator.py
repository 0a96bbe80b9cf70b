"""End-to-end runs: spreadsheet -> transform -> import -> audit log.

Key features:
- Fail-fast configuration validation before any row is read
- Per-row transformation errors drop the row, never the run
- Audit logs are finalized exactly once, on completion or on a signal
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import httpx

from ngomigrate.config import AppConfig
from ngomigrate.core.audit_logger import ImportAuditLogger
from ngomigrate.core.shutdown import GracefulShutdown
from ngomigrate.ingestion.spreadsheet import read_rows
from ngomigrate.integration.strapi_client import StrapiAPIError, StrapiClient
from ngomigrate.pipeline.contacts import ContactUserResolver
from ngomigrate.pipeline.importer import OrganizationImporter, ResultCallback
from ngomigrate.pipeline.types import ImportStats, UserImportStats, UserStatus
from ngomigrate.transform.contact_user import derive_contact_user
from ngomigrate.transform.organization import source_name, transform_rows

logger = logging.getLogger(__name__)


@dataclass
class ImportRun:
    """Outcome of a full organization import."""

    stats: ImportStats
    log_files: list[Path] = field(default_factory=list)
    rows_read: int = 0
    organizations: int = 0
    preview: list[dict[str, Any]] = field(default_factory=list)
    audit_entries: dict[str, int] = field(default_factory=dict)

    @property
    def interrupted(self) -> bool:
        return self.stats.interrupted


async def run_import(
    config: AppConfig,
    on_result: Optional[ResultCallback] = None,
    on_ready: Optional[Callable[[ImportRun], None]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    preview_size: int = 3,
) -> ImportRun:
    """Run the organization import described by ``config``.

    Args:
        config: Validated application configuration
        on_result: Per-row progress callback
        on_ready: Called once transformation is done, before any remote call
        transport: Optional httpx transport (tests)
        preview_size: Number of transformed records to keep for dry-run preview

    Raises:
        ConfigError: Invalid configuration
        FileNotFoundError / SpreadsheetError: Unreadable input
    """
    config.validate()

    rows = read_rows(
        config.source.excel_file,
        sheet_name=config.source.sheet_name,
        max_rows=config.source.max_rows,
    )
    organizations = transform_rows(rows)

    run = ImportRun(
        stats=ImportStats(),
        rows_read=len(rows),
        organizations=len(organizations),
    )
    if config.importer.dry_run:
        run.preview = [org.to_payload() for org in organizations[:preview_size]]
    if on_ready is not None:
        on_ready(run)

    audit = ImportAuditLogger(config.log_dir)
    run.log_files = audit.paths

    async with StrapiClient(config.strapi, transport=transport) as client:
        importer = OrganizationImporter(client, audit, config.importer, on_result=on_result)
        run.stats = importer.stats

        async with GracefulShutdown() as shutdown:

            def _finalize() -> None:
                importer.stats.interrupted = shutdown.interrupted
                audit.finalize(importer.stats)

            shutdown.add_cleanup(_finalize)
            await importer.run(organizations)

    run.audit_entries = audit.get_summary()
    return run


async def import_contact_users(
    config: AppConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    on_progress: Optional[Callable[[str, str, UserStatus, str], None]] = None,
) -> UserImportStats:
    """Create contact users for every row, independent of organizations.

    Existing users (by email) are counted as skipped.
    """
    config.validate()
    rows = read_rows(
        config.source.excel_file,
        sheet_name=config.source.sheet_name,
        max_rows=config.source.max_rows,
    )

    drafts = []
    for row in rows:
        try:
            draft = derive_contact_user(row, role=config.importer.contact_user_role)
        except Exception as exc:
            logger.warning("Contact derivation failed for %s: %s", source_name(row) or "Unknown", exc)
            continue
        if draft is not None:
            drafts.append((source_name(row) or "Unknown", draft))
    logger.info("Derived %s contact users from %s rows", len(drafts), len(rows))

    stats = UserImportStats()
    async with StrapiClient(config.strapi, transport=transport) as client:
        resolver = ContactUserResolver(
            client, dry_run=config.importer.dry_run, role=config.importer.contact_user_role
        )
        for org_name, draft in drafts:
            stats.total += 1
            message = ""
            try:
                resolution = await resolver.resolve(draft)
                status, message = resolution.status, resolution.message
            except StrapiAPIError as exc:
                status, message = UserStatus.FAILED, str(exc)

            if status in (UserStatus.CREATED, UserStatus.DRY_RUN):
                stats.success += 1
            elif status in (UserStatus.REUSED, UserStatus.INVALID):
                stats.skipped += 1
            else:
                stats.failed += 1
                stats.failures.append(f"{org_name}: {draft.email} | {message}")

            if on_progress is not None:
                on_progress(org_name, draft.email, status, message)

    return stats
