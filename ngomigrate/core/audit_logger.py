"""Append-only audit trail of failed and skipped organizations.

Each run writes three files under the log directory:

- ``import-failed-<ts>.log``       organization-level failures
- ``user-import-failed-<ts>.log``  contact-user failures
- ``import-skipped-<ts>.log``      skipped rows and rejected contact users

Files are created with a header when the logger is constructed, every entry
is flushed as soon as it is written, and ``finalize()`` appends the summary
footer exactly once.
"""

from __future__ import annotations

import json
import logging
import os
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any, Optional

from ngomigrate.constants import (
    FAILED_LOG_PREFIX,
    LOG_DIR,
    SKIPPED_LOG_PREFIX,
    USER_FAILED_LOG_PREFIX,
)
from ngomigrate.integration.strapi_client import StrapiAPIError
from ngomigrate.models import TargetOrganization
from ngomigrate.pipeline.types import ImportStats

logger = logging.getLogger(__name__)

HEADER_TEMPLATE = (
    "# {title}\n"
    "# Import Log - {timestamp}\n"
    "# Format: [timestamp] organization_name | error/reason\n\n"
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _indent_json(value: Any) -> str:
    text = json.dumps(value, ensure_ascii=False, indent=2, default=str)
    return text.replace("\n", "\n   ")


def error_details(error: BaseException) -> Any:
    """Diagnostic payload for an error: response body or traceback."""
    if isinstance(error, StrapiAPIError):
        return {"status": error.status_code, "body": error.details}
    return "".join(
        traceback.format_exception(type(error), error, error.__traceback__)
    ).strip()


class ImportAuditLogger:
    """Durable per-run log of failures and skips."""

    def __init__(self, log_dir: Path | str = LOG_DIR, run_timestamp: Optional[str] = None):
        self.run_timestamp = run_timestamp or (
            datetime.now(timezone.utc).isoformat().replace(":", "-").replace(".", "-")
        )
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.failed_file = self.log_dir / f"{FAILED_LOG_PREFIX}{self.run_timestamp}.log"
        self.user_failed_file = (
            self.log_dir / f"{USER_FAILED_LOG_PREFIX}{self.run_timestamp}.log"
        )
        self.skipped_file = self.log_dir / f"{SKIPPED_LOG_PREFIX}{self.run_timestamp}.log"

        self.org_failed_count = 0
        self.user_failed_count = 0
        self.skipped_count = 0
        self._finalized = False

        self._streams: dict[Path, IO[str]] = {}
        for path, title in (
            (self.failed_file, "组织失败记录"),
            (self.user_failed_file, "用户失败记录"),
            (self.skipped_file, "跳过记录"),
        ):
            stream = open(path, "a", encoding="utf-8")
            self._streams[path] = stream
            self._append(path, HEADER_TEMPLATE.format(title=title, timestamp=_now()))

        logger.info(
            "Audit logs initialized: failed=%s user_failed=%s skipped=%s",
            self.failed_file,
            self.user_failed_file,
            self.skipped_file,
        )

    @property
    def paths(self) -> list[Path]:
        return [self.failed_file, self.user_failed_file, self.skipped_file]

    def _append(self, path: Path, text: str) -> None:
        if self._finalized:
            logger.warning("Audit log already finalized, dropping entry for %s", path.name)
            return
        stream = self._streams[path]
        stream.write(text)
        stream.flush()

    def _entry(self, organization: TargetOrganization, headline: str, label: str, payload: Any) -> str:
        return (
            f"[{_now()}] {organization.name} | {headline}\n"
            f"   组织信息: {_indent_json(organization.identity())}\n"
            f"   {label}: {_indent_json(payload)}\n\n"
        )

    def log_failed(self, organization: TargetOrganization, error: BaseException) -> None:
        self.org_failed_count += 1
        self._append(
            self.failed_file,
            self._entry(organization, str(error), "详细错误", error_details(error)),
        )

    def log_user_failed(self, organization: TargetOrganization, error: BaseException) -> None:
        self.user_failed_count += 1
        draft = organization.contact_draft
        payload = {
            "user": {"username": draft.username, "email": draft.email} if draft else None,
            "error": error_details(error),
        }
        self._append(
            self.user_failed_file,
            self._entry(organization, str(error), "详细错误", payload),
        )

    def log_skipped(self, organization: TargetOrganization, reason: str) -> None:
        self.skipped_count += 1
        self._append(
            self.skipped_file,
            self._entry(organization, reason, "跳过原因", reason),
        )

    def flush(self) -> None:
        """Push everything written so far to durable storage."""
        for stream in self._streams.values():
            if stream.closed:
                continue
            stream.flush()
            os.fsync(stream.fileno())

    def finalize(self, stats: Optional[ImportStats] = None) -> None:
        """Append the summary footer to every file and close them.

        Safe to call more than once; only the first call writes.
        """
        if self._finalized:
            return

        footer = f"\n# 导入完成统计 - {_now()}\n"
        if stats is not None:
            if stats.interrupted:
                footer += "# 导入被中断\n"
            footer += (
                f"# 总计: {stats.total}\n"
                f"# 成功: {stats.success}\n"
                f"# 跳过: {stats.skipped}\n"
            )
        self._append(self.failed_file, f"{footer}# 组织失败数: {self.org_failed_count}\n")
        self._append(self.user_failed_file, f"{footer}# 用户失败数: {self.user_failed_count}\n")
        self._append(self.skipped_file, f"{footer}# 总跳过数: {self.skipped_count}\n")

        self.flush()
        self._finalized = True
        for stream in self._streams.values():
            stream.close()

        logger.info(
            "Audit logs finalized: org_failed=%s user_failed=%s skipped=%s",
            self.org_failed_count,
            self.user_failed_count,
            self.skipped_count,
        )

    def get_summary(self) -> dict[str, int]:
        """Entries written to each log during this run."""
        return {
            "org_failed": self.org_failed_count,
            "user_failed": self.user_failed_count,
            "skipped": self.skipped_count,
        }
