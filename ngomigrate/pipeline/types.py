"""Type definitions for import pipeline outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class RowStatus(str, Enum):
    """Terminal state of one organization row."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class SkipReason(str, Enum):
    NO_NAME = "无名称"
    DUPLICATE_IN_RUN = "批次内重复"
    ALREADY_EXISTS = "组织已存在"


class UserStatus(str, Enum):
    """Outcome of contact-user resolution for a row."""

    NONE = "NONE"  # row had no contact draft
    CREATED = "CREATED"
    REUSED = "REUSED"
    INVALID = "INVALID"
    FAILED = "FAILED"
    DRY_RUN = "DRY_RUN"


@dataclass
class UserResolution:
    status: UserStatus
    user_id: Optional[int] = None
    message: str = ""


@dataclass
class RowResult:
    """Result of processing one organization."""

    name: str
    status: RowStatus
    reason: Optional[str] = None
    organization_id: Optional[int] = None
    contact_user_id: Optional[int] = None
    user_status: UserStatus = UserStatus.NONE
    error: Optional[str] = None
    error_details: Any = None


@dataclass
class ImportStats:
    """Run counters. Mutated only by the import driver."""

    total: int = 0
    success: int = 0
    org_failed: int = 0
    user_failed: int = 0
    skipped: int = 0
    users_created: int = 0
    users_reused: int = 0
    users_skipped: int = 0
    interrupted: bool = False

    @property
    def failed(self) -> int:
        return self.org_failed

    @property
    def success_rate(self) -> float:
        """Percentage of processed rows that succeeded."""
        if not self.total:
            return 0.0
        return round(self.success / self.total * 100, 1)

    def record(self, result: RowResult) -> None:
        self.total += 1
        if result.status is RowStatus.SUCCESS:
            self.success += 1
        elif result.status is RowStatus.FAILED:
            self.org_failed += 1
        else:
            self.skipped += 1

        if result.user_status is UserStatus.CREATED:
            self.users_created += 1
        elif result.user_status is UserStatus.REUSED:
            self.users_reused += 1
        elif result.user_status is UserStatus.FAILED:
            self.user_failed += 1
        elif result.user_status is UserStatus.INVALID:
            self.users_skipped += 1

    def as_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "success": self.success,
            "org_failed": self.org_failed,
            "user_failed": self.user_failed,
            "skipped": self.skipped,
            "users_created": self.users_created,
            "users_reused": self.users_reused,
            "users_skipped": self.users_skipped,
            "success_rate": self.success_rate,
            "interrupted": self.interrupted,
        }


@dataclass
class UserImportStats:
    """Counters for the standalone contact-user import."""

    total: int = 0
    success: int = 0
    skipped: int = 0
    failed: int = 0
    failures: list[str] = field(default_factory=list)
