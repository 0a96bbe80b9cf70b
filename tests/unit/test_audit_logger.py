"""Tests for the import audit logger."""

from __future__ import annotations

import pytest

from ngomigrate.core.audit_logger import ImportAuditLogger, error_details
from ngomigrate.integration.strapi_client import StrapiAPIError
from ngomigrate.models import ContactUserDraft, TargetOrganization
from ngomigrate.pipeline.types import ImportStats


@pytest.fixture
def audit(tmp_path):
    logger = ImportAuditLogger(tmp_path / "logs", run_timestamp="2024-01-01T00-00-00")
    yield logger
    logger.finalize()


@pytest.fixture
def organization():
    return TargetOrganization(name="绿色环保协会", code="X123")


def test_files_created_with_headers(audit, tmp_path):
    logs = tmp_path / "logs"
    assert sorted(p.name for p in logs.iterdir()) == [
        "import-failed-2024-01-01T00-00-00.log",
        "import-skipped-2024-01-01T00-00-00.log",
        "user-import-failed-2024-01-01T00-00-00.log",
    ]
    assert "# 组织失败记录" in audit.failed_file.read_text(encoding="utf-8")
    assert "# 用户失败记录" in audit.user_failed_file.read_text(encoding="utf-8")
    assert "# 跳过记录" in audit.skipped_file.read_text(encoding="utf-8")


def test_failed_entry_is_flushed_immediately(audit, organization):
    error = StrapiAPIError(
        "Invalid organization data",
        status_code=400,
        body={"error": {"message": "Invalid organization data"}},
    )
    audit.log_failed(organization, error)

    content = audit.failed_file.read_text(encoding="utf-8")
    assert "绿色环保协会 | Invalid organization data (HTTP 400)" in content
    assert '"code": "X123"' in content
    assert '"status": 400' in content
    assert audit.org_failed_count == 1


def test_user_failure_includes_user(audit, organization):
    organization.contact_user = ContactUserDraft(
        username="李明", email="bad@", password="pw"
    )
    audit.log_user_failed(organization, StrapiAPIError("email must be a valid email", 400))

    content = audit.user_failed_file.read_text(encoding="utf-8")
    assert '"username": "李明"' in content
    assert '"email": "bad@"' in content
    assert "password" not in content


def test_skipped_entry(audit, organization):
    audit.log_skipped(organization, "组织已存在")

    content = audit.skipped_file.read_text(encoding="utf-8")
    assert "绿色环保协会 | 组织已存在" in content
    assert audit.get_summary() == {"org_failed": 0, "user_failed": 0, "skipped": 1}


def test_finalize_writes_footer_once(tmp_path, organization):
    audit = ImportAuditLogger(tmp_path, run_timestamp="run")
    audit.log_skipped(organization, "组织已存在")
    stats = ImportStats(total=3, success=2, skipped=1)

    audit.finalize(stats)
    audit.finalize(stats)

    content = audit.skipped_file.read_text(encoding="utf-8")
    assert content.count("# 导入完成统计") == 1
    assert "# 总计: 3" in content
    assert "# 总跳过数: 1" in content
    assert "# 组织失败数: 0" in audit.failed_file.read_text(encoding="utf-8")

    audit.log_skipped(organization, "重复")
    assert "重复" not in audit.skipped_file.read_text(encoding="utf-8")


def test_finalize_marks_interruption(tmp_path):
    audit = ImportAuditLogger(tmp_path, run_timestamp="run")
    audit.finalize(ImportStats(total=1, interrupted=True))

    for path in audit.paths:
        assert "# 导入被中断" in path.read_text(encoding="utf-8")


def test_entries_after_finalize_are_dropped(tmp_path, organization):
    audit = ImportAuditLogger(tmp_path, run_timestamp="run")
    audit.finalize()
    audit.log_skipped(organization, "组织已存在")

    assert "组织已存在" not in audit.skipped_file.read_text(encoding="utf-8")


def test_runs_append_to_existing_files(tmp_path, organization):
    first = ImportAuditLogger(tmp_path, run_timestamp="same")
    first.log_skipped(organization, "first")
    first.finalize()

    second = ImportAuditLogger(tmp_path, run_timestamp="same")
    second.log_skipped(organization, "second")
    second.finalize()

    content = second.skipped_file.read_text(encoding="utf-8")
    assert "first" in content and "second" in content


def test_error_details_for_unexpected_error():
    try:
        raise RuntimeError("kaboom")
    except RuntimeError as exc:
        details = error_details(exc)

    assert "Traceback" in details
    assert "RuntimeError: kaboom" in details


def test_error_details_for_transport_error():
    error = StrapiAPIError("connection refused", method="GET", url="/api/organizations")
    assert error_details(error) == {
        "status": None,
        "body": {"method": "GET", "url": "/api/organizations", "error": "connection refused"},
    }
