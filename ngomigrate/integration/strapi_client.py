"""Async REST client for the Strapi content backend."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ngomigrate.config import StrapiConfig

logger = logging.getLogger(__name__)


class StrapiAPIError(Exception):
    """A failed call to the backend.

    ``status_code`` is None when the request never got a response
    (connection refused, timeout, ...).
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Any = None,
        method: str = "",
        url: str = "",
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body
        self.method = method
        self.url = url

    @property
    def details(self) -> Any:
        """Response body when there is one, else the transport error text."""
        if self.body is not None:
            return self.body
        return {"method": self.method, "url": self.url, "error": self.message}

    def mentions(self, needle: str) -> bool:
        """True when the error message or response body mentions ``needle``."""
        haystack = f"{self.message} {self.body!r}".lower()
        return needle.lower() in haystack

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.message} (HTTP {self.status_code})"


def _error_message(body: Any, fallback: str) -> str:
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
        if body.get("message"):
            return str(body["message"])
    return fallback


class StrapiClient:
    """Client for the organization and user endpoints.

    Usage:
        >>> async with StrapiClient(config.strapi) as client:
        ...     existing = await client.find_organization_by_name("绿色环保协会")
    """

    def __init__(
        self,
        config: StrapiConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if config.token:
            headers["Authorization"] = f"Bearer {config.token}"

        self.client = httpx.AsyncClient(
            base_url=config.base_url.rstrip("/"),
            timeout=config.timeout_seconds,
            headers=headers,
            transport=transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        try:
            response = await self.client.request(method, path, params=params, json=json)
        except httpx.RequestError as exc:
            raise StrapiAPIError(
                f"{method} {path} failed: {exc}", method=method, url=path
            ) from exc

        if response.is_error:
            try:
                body: Any = response.json()
            except ValueError:
                body = response.text
            message = _error_message(body, response.reason_phrase or "request failed")
            logger.debug("%s %s -> %s %s", method, path, response.status_code, body)
            raise StrapiAPIError(
                message,
                status_code=response.status_code,
                body=body,
                method=method,
                url=str(response.request.url),
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise StrapiAPIError(
                f"{method} {path} returned invalid JSON",
                status_code=response.status_code,
                body=response.text,
                method=method,
                url=path,
            ) from exc

    # Organizations

    async def find_organization_by_name(self, name: str) -> Optional[dict]:
        """Exact-name lookup; returns the first match or None."""
        data = await self._request(
            "GET",
            f"{self.config.api_prefix}/organizations",
            params={"filters[name][$eq]": name},
        )
        items = data.get("data", []) if isinstance(data, dict) else data
        return items[0] if items else None

    async def create_organization(self, payload: dict[str, Any]) -> dict:
        data = await self._request(
            "POST", f"{self.config.api_prefix}/organizations", json={"data": payload}
        )
        if isinstance(data, dict) and isinstance(data.get("data"), dict):
            return data["data"]
        return data or {}

    # Users

    async def find_user_by_email(self, email: str) -> Optional[dict]:
        data = await self._request(
            "GET",
            f"{self.config.api_prefix}/users",
            params={"filters[email][$eq]": email},
        )
        items = data.get("data", []) if isinstance(data, dict) else data
        return items[0] if items else None

    async def create_user(self, payload: dict[str, Any]) -> dict:
        data = await self._request("POST", f"{self.config.api_prefix}/users", json=payload)
        return data or {}

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> StrapiClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def extract_id(record: Optional[dict]) -> Optional[int]:
    """Numeric id of a created or fetched record, if it has one."""
    if not record:
        return None
    value = record.get("id")
    try:
        record_id = int(value)
    except (TypeError, ValueError):
        return None
    return record_id if record_id > 0 else None
