"""Pytest configuration and fixtures for ngomigrate tests.

Provides an in-memory Strapi backend (served through httpx.MockTransport),
sample source rows and workbook builders.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

import httpx
import pandas as pd
import pytest

from ngomigrate.config import AppConfig, ImporterConfig, SourceConfig, StrapiConfig

_VALID_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _error(status: int, message: str, name: str = "ValidationError") -> httpx.Response:
    return httpx.Response(
        status,
        json={"data": None, "error": {"status": status, "name": name, "message": message}},
    )


class FakeStrapi:
    """Minimal stand-in for the organization and user endpoints."""

    def __init__(self) -> None:
        self.organizations: list[dict[str, Any]] = []
        self.users: list[dict[str, Any]] = []
        self.requests: list[tuple[str, str]] = []
        self.fail_org_lookup: set[str] = set()
        self.fail_org_create: set[str] = set()
        self.fail_user_lookup = False
        self.fail_user_create = False

    def add_organization(self, name: str, **fields: Any) -> dict[str, Any]:
        record = {"id": len(self.organizations) + 1, "name": name, **fields}
        self.organizations.append(record)
        return record

    def add_user(self, username: str, email: str) -> dict[str, Any]:
        record = {"id": len(self.users) + 1, "username": username, "email": email}
        self.users.append(record)
        return record

    def calls(self, method: str, path: str) -> int:
        return sum(1 for call in self.requests if call == (method, path))

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append((request.method, path))

        if path == "/api/organizations" and request.method == "GET":
            name = request.url.params.get("filters[name][$eq]")
            if name in self.fail_org_lookup:
                return _error(500, "Internal Server Error", name="InternalServerError")
            matches = [org for org in self.organizations if org["name"] == name]
            return httpx.Response(200, json={"data": matches, "meta": {}})

        if path == "/api/organizations" and request.method == "POST":
            data = json.loads(request.content)["data"]
            if data["name"] in self.fail_org_create:
                return _error(400, "Invalid organization data")
            record = self.add_organization(**data)
            return httpx.Response(200, json={"data": record, "meta": {}})

        if path == "/api/users" and request.method == "GET":
            if self.fail_user_lookup:
                return _error(503, "Service Unavailable", name="ServiceUnavailableError")
            email = request.url.params.get("filters[email][$eq]")
            return httpx.Response(200, json=[u for u in self.users if u["email"] == email])

        if path == "/api/users" and request.method == "POST":
            payload = json.loads(request.content)
            if self.fail_user_create:
                return _error(500, "Internal Server Error", name="InternalServerError")
            if not _VALID_EMAIL.match(payload["email"]):
                return _error(400, "email must be a valid email")
            if any(u["email"] == payload["email"] for u in self.users):
                return _error(400, "Email already taken", name="ApplicationError")
            if any(u["username"] == payload["username"] for u in self.users):
                return _error(400, "Username already taken", name="ApplicationError")
            record = self.add_user(payload["username"], payload["email"])
            return httpx.Response(201, json=record)

        return httpx.Response(404, json={"error": {"status": 404, "message": "Not Found"}})


@pytest.fixture
def fake_strapi() -> FakeStrapi:
    return FakeStrapi()


@pytest.fixture
def transport(fake_strapi: FakeStrapi) -> httpx.MockTransport:
    return httpx.MockTransport(fake_strapi.handler)


@pytest.fixture
def strapi_config() -> StrapiConfig:
    return StrapiConfig(base_url="http://strapi.test", token="test-token")


@pytest.fixture
def sample_row() -> dict[str, Any]:
    """A fully populated source row."""
    return {
        "常用名称": "爱心教育基金会",
        "机构信用代码": "53100000500021234X",
        "实体类型": "基金会",
        "注册国籍": "中国",
        "成立时间": "2015年6月3日",
        "机构／项目简介": "致力于  甘肃\n农村教育",
        "机构／项目全职人数": "15-25",
        "注册地": "甘肃省-兰州市-城关区",
        "具体地址": "甘肃省兰州市城关区东岗西路1号",
        "机构官网": "https://aixin.example.org",
        "机构微信公众号": "aixin_edu",
        "关于人群类服务对象义务教育": "乡村小学",
        "关于人群类服务对象服务全部人群": "否",
        "公开募捐资格": "是",
        "负责人": "王芳",
        "机构联系人联系人姓名": "李明",
        "机构联系人联系人电话": "138-0000-1111",
        "机构联系人联系人邮箱": "liming@aixin.org",
    }


def make_row(name: str, **overrides: Any) -> dict[str, Any]:
    """Small row with a contact person keyed on the organization name."""
    row: dict[str, Any] = {
        "常用名称": name,
        "实体类型": "社会团体",
        "成立时间": "2018",
        "机构／项目全职人数": "5",
    }
    row.update(overrides)
    return row


def write_workbook(path: Path, rows: list[dict[str, Any]], sheet_name: str = "机构") -> Path:
    pd.DataFrame(rows).to_excel(path, sheet_name=sheet_name, index=False, engine="openpyxl")
    return path


@pytest.fixture
def workbook_factory(tmp_path: Path):
    def _build(rows: list[dict[str, Any]], name: str = "orgs.xlsx", sheet_name: str = "机构") -> Path:
        return write_workbook(tmp_path / name, rows, sheet_name=sheet_name)

    return _build


@pytest.fixture
def app_config_factory(tmp_path: Path, strapi_config: StrapiConfig):
    def _build(excel_file: Path, **importer: Any) -> AppConfig:
        importer.setdefault("batch_size", 2)
        return AppConfig(
            strapi=strapi_config,
            source=SourceConfig(excel_file=excel_file),
            importer=ImporterConfig(**importer),
            log_dir=tmp_path / "logs",
        )

    return _build


@pytest.fixture
def row_factory():
    return make_row
