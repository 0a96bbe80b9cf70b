"""Derive a login-disabled contact user from an organization row."""

from __future__ import annotations

import re
import secrets
import time
from collections.abc import Mapping
from typing import Any, Optional

from ngomigrate.canonical.normalize import to_text
from ngomigrate.constants import (
    COL_CONTACT_EMAIL,
    COL_CONTACT_NAME,
    COL_CONTACT_PHONE,
    COL_NAME,
    COL_PRINCIPAL,
    COLUMN_ALIASES,
    PLACEHOLDER_EMAIL_DOMAIN,
    USERNAME_FORBIDDEN_CHARS,
    USERNAME_MAX_LENGTH,
)
from ngomigrate.models import ContactUserDraft

_FORBIDDEN_PATTERN = re.compile(
    "[" + re.escape(USERNAME_FORBIDDEN_CHARS) + r"\s]"
)
_NON_DIGIT_PATTERN = re.compile(r"\D")


def generate_password() -> str:
    return secrets.token_urlsafe(16)


def sanitize_username(candidate: str) -> str:
    """Strip forbidden characters and whitespace, cap at 50 characters."""
    return _FORBIDDEN_PATTERN.sub("", candidate)[:USERNAME_MAX_LENGTH]


def username_problem(username: str) -> Optional[str]:
    """Describe why a username is unacceptable, or None when it is fine."""
    if not username:
        return "用户名为空"
    if len(username) > USERNAME_MAX_LENGTH:
        return f"用户名超过{USERNAME_MAX_LENGTH}个字符"
    if _FORBIDDEN_PATTERN.search(username):
        return "用户名包含特殊字符"
    return None


def placeholder_email(phone: str) -> Optional[str]:
    digits = _NON_DIGIT_PATTERN.sub("", phone)
    if not digits:
        return None
    return f"{digits}@{PLACEHOLDER_EMAIL_DOMAIN}"


def derive_contact_user(
    row: Mapping[str, Any],
    password: Optional[str] = None,
    role: int = 1,
) -> Optional[ContactUserDraft]:
    """Build a contact-user draft, or None when the row has no way to reach anyone.

    A row needs either an email containing ``@`` or a phone number with at
    least one digit. Without a real email the phone digits are used to
    synthesize a placeholder ``<digits>@system.local`` address.
    """
    contact_name = to_text(row.get(COL_CONTACT_NAME))
    phone = to_text(row.get(COL_CONTACT_PHONE))
    email = to_text(row.get(COL_CONTACT_EMAIL))
    principal = to_text(row.get(COL_PRINCIPAL))
    org_name = to_text(row.get(COL_NAME)) or to_text(row.get(COLUMN_ALIASES[COL_NAME]))

    if "@" not in email:
        email = placeholder_email(phone)
        if email is None:
            return None

    candidate = contact_name or principal or org_name or f"user_{int(time.time() * 1000)}"
    username = sanitize_username(candidate)
    if not username:
        local_part = sanitize_username(email.split("@", 1)[0])
        username = local_part or f"user_{secrets.token_hex(4)}"

    return ContactUserDraft(
        username=username,
        email=email,
        password=password or generate_password(),
        confirmed=False,
        blocked=True,
        provider="local",
        phone=phone or None,
        role=role,
    )
