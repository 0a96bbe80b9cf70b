"""Batch import of transformed organizations into the backend.

Each organization moves through:

    PENDING -> DEDUP_CHECK -> SKIPPED (no name / duplicate / exists)
                           -> USER_RESOLUTION -> UPSERT_ORG -> SUCCESS | FAILED

Batches run one after another with an optional delay between them. Rows
inside a batch run concurrently and settle independently: one row failing
never cancels its siblings. Nothing is retried within a run; the audit log
is the input for a manual re-run.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Optional

from ngomigrate.config import ImporterConfig
from ngomigrate.core.audit_logger import ImportAuditLogger
from ngomigrate.integration.strapi_client import StrapiAPIError, StrapiClient, extract_id
from ngomigrate.models import TargetOrganization
from ngomigrate.pipeline.contacts import ContactUserResolver
from ngomigrate.pipeline.types import (
    ImportStats,
    RowResult,
    RowStatus,
    SkipReason,
    UserStatus,
)

logger = logging.getLogger(__name__)

ResultCallback = Callable[[RowResult], None]


def chunked(items: Sequence[TargetOrganization], size: int) -> list[Sequence[TargetOrganization]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class OrganizationImporter:
    """Create-or-skip import driver.

    Args:
        client: Backend client; may be None for a dry run that does not
            check for existing records
        audit: Audit logger receiving every failure and skip
        config: Batch size, delay, dry-run and contact-user settings
        on_result: Called with each row's terminal result (progress output)
    """

    def __init__(
        self,
        client: Optional[StrapiClient],
        audit: ImportAuditLogger,
        config: ImporterConfig,
        on_result: Optional[ResultCallback] = None,
    ):
        self.client = client
        self.audit = audit
        self.config = config
        self.on_result = on_result
        self.stats = ImportStats()
        self.contacts = ContactUserResolver(
            client, dry_run=config.dry_run, role=config.contact_user_role
        )
        self._seen: set[str] = set()

    @property
    def checks_existing(self) -> bool:
        return not self.config.dry_run or self.config.check_existing_in_dry_run

    async def run(self, organizations: Sequence[TargetOrganization]) -> ImportStats:
        """Import all organizations batch by batch."""
        batches = chunked(organizations, self.config.batch_size)
        logger.info(
            "Importing %s organizations in %s batches (dry_run=%s)",
            len(organizations),
            len(batches),
            self.config.dry_run,
        )

        for number, batch in enumerate(batches, start=1):
            logger.info("Processing batch %s/%s", number, len(batches))
            await self.process_batch(batch)

            if number < len(batches) and self.config.batch_delay_seconds > 0:
                await asyncio.sleep(self.config.batch_delay_seconds)

        logger.info("Import finished: %s", self.stats.as_dict())
        return self.stats

    async def process_batch(self, batch: Sequence[TargetOrganization]) -> list[RowResult]:
        """Process one batch with all-settled semantics."""
        outcomes = await asyncio.gather(
            *(self.process_organization(org) for org in batch),
            return_exceptions=True,
        )

        results = []
        for organization, outcome in zip(batch, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.error(
                    "Unexpected error importing %s: %s",
                    organization.name,
                    outcome,
                    exc_info=outcome,
                )
                outcome = self._fail(organization, outcome)
            results.append(outcome)
        return results

    async def process_organization(self, organization: TargetOrganization) -> RowResult:
        name = organization.name.strip()
        if not name:
            return self._skip(organization, SkipReason.NO_NAME)

        # Check and claim the key with no await in between, so concurrent
        # rows of the same batch cannot both pass.
        key = organization.dedup_key
        if key in self._seen:
            return self._skip(organization, SkipReason.DUPLICATE_IN_RUN)
        self._seen.add(key)

        if self.checks_existing:
            try:
                existing = await self.client.find_organization_by_name(name)
            except StrapiAPIError as exc:
                # Existence unknown: never create.
                return self._fail(organization, exc)
            if existing:
                return self._skip(organization, SkipReason.ALREADY_EXISTS)

        if self.config.dry_run:
            logger.info("[DRY RUN] Would create organization: %s", name)
            user_status = UserStatus.DRY_RUN if organization.contact_draft else UserStatus.NONE
            return self._finish(
                RowResult(name=name, status=RowStatus.SUCCESS, user_status=user_status)
            )

        contact_user_id, user_status = await self._resolve_contact(organization)
        organization.contact_user = contact_user_id

        try:
            created = await self.client.create_organization(
                organization.to_payload(contact_user_id)
            )
        except StrapiAPIError as exc:
            return self._fail(
                organization, exc, contact_user_id=contact_user_id, user_status=user_status
            )

        logger.info("Created organization %s", name)
        return self._finish(
            RowResult(
                name=name,
                status=RowStatus.SUCCESS,
                organization_id=extract_id(created),
                contact_user_id=contact_user_id,
                user_status=user_status,
            )
        )

    async def _resolve_contact(
        self, organization: TargetOrganization
    ) -> tuple[Optional[int], UserStatus]:
        """Best-effort contact user; any problem downgrades to no contact."""
        draft = organization.contact_draft
        if draft is None or not self.config.create_contact_users:
            return None, UserStatus.NONE

        try:
            resolution = await self.contacts.resolve(draft)
        except Exception as exc:
            logger.warning("Contact user failed for %s: %s", organization.name, exc)
            self.audit.log_user_failed(organization, exc)
            return None, UserStatus.FAILED

        if resolution.status is UserStatus.INVALID:
            logger.warning(
                "Contact user rejected for %s: %s", organization.name, resolution.message
            )
            self.audit.log_skipped(organization, resolution.message)
            return None, UserStatus.INVALID

        return resolution.user_id, resolution.status

    def _skip(self, organization: TargetOrganization, reason: SkipReason) -> RowResult:
        logger.info("Skipping %s: %s", organization.name or "<unnamed>", reason.value)
        self.audit.log_skipped(organization, reason.value)
        return self._finish(
            RowResult(name=organization.name, status=RowStatus.SKIPPED, reason=reason.value)
        )

    def _fail(
        self,
        organization: TargetOrganization,
        error: BaseException,
        contact_user_id: Optional[int] = None,
        user_status: UserStatus = UserStatus.NONE,
    ) -> RowResult:
        logger.error("Failed to import %s: %s", organization.name, error)
        self.audit.log_failed(organization, error)
        details = error.details if isinstance(error, StrapiAPIError) else None
        return self._finish(
            RowResult(
                name=organization.name,
                status=RowStatus.FAILED,
                contact_user_id=contact_user_id,
                user_status=user_status,
                error=str(error),
                error_details=details,
            )
        )

    def _finish(self, result: RowResult) -> RowResult:
        self.stats.record(result)
        if self.on_result is not None:
            self.on_result(result)
        return result
