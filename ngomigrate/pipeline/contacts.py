"""Contact-user resolution against the backend user store."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Optional

from ngomigrate.constants import USERNAME_MAX_LENGTH, USERNAME_RETRY_ATTEMPTS
from ngomigrate.integration.strapi_client import StrapiAPIError, StrapiClient, extract_id
from ngomigrate.models import ContactUserDraft
from ngomigrate.pipeline.types import UserResolution, UserStatus
from ngomigrate.transform.contact_user import username_problem

logger = logging.getLogger(__name__)


def suffixed_username(base: str, attempt: int) -> str:
    """``base_<attempt>``, truncating ``base`` to stay within the length limit."""
    suffix = f"_{attempt}"
    return f"{base[: USERNAME_MAX_LENGTH - len(suffix)]}{suffix}"


def _is_taken(error: StrapiAPIError, field: str) -> bool:
    return error.status_code is not None and error.mentions(field) and error.mentions("taken")


class ContactUserResolver:
    """Find or create the user behind a contact-user draft.

    Resolved ids are cached for the run by normalized email only, so
    organizations sharing a contact email share one user. Contacts that merely
    share a name are distinct users. Resolution for a
    given email is serialized so concurrent rows never create it twice.
    """

    def __init__(
        self,
        client: Optional[StrapiClient],
        dry_run: bool = False,
        role: int = 1,
        max_attempts: int = USERNAME_RETRY_ATTEMPTS,
    ):
        self.client = client
        self.dry_run = dry_run
        self.role = role
        self.max_attempts = max_attempts
        self._cache: dict[str, int] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @staticmethod
    def _email_key(email: str) -> str:
        return f"email:{email.strip().casefold()}"

    def validate(self, draft: ContactUserDraft) -> Optional[str]:
        """Reason the draft cannot be submitted, or None."""
        if not draft.email or "@" not in draft.email:
            return "联系人邮箱缺失"
        problem = username_problem(draft.username)
        if problem:
            return f"联系人用户名无效: {problem}"
        return None

    def cached_id(self, draft: ContactUserDraft) -> Optional[int]:
        return self._cache.get(self._email_key(draft.email))

    def _remember(self, draft: ContactUserDraft, user_id: int) -> None:
        self._cache[self._email_key(draft.email)] = user_id

    async def resolve(self, draft: ContactUserDraft) -> UserResolution:
        """Return the user id for ``draft``.

        Raises:
            StrapiAPIError: When the user could neither be found nor created
        """
        problem = self.validate(draft)
        if problem:
            return UserResolution(status=UserStatus.INVALID, message=problem)

        if self.dry_run:
            return UserResolution(status=UserStatus.DRY_RUN)

        async with self._locks[self._email_key(draft.email)]:
            cached = self.cached_id(draft)
            if cached:
                return UserResolution(status=UserStatus.REUSED, user_id=cached)

            existing_id = await self._find_existing(draft.email)
            if existing_id:
                self._remember(draft, existing_id)
                return UserResolution(status=UserStatus.REUSED, user_id=existing_id)

            return await self._create(draft)

    async def _find_existing(self, email: str) -> Optional[int]:
        try:
            return extract_id(await self.client.find_user_by_email(email))
        except StrapiAPIError as exc:
            # Fall through to create; duplicate emails are rejected there.
            logger.debug("User lookup failed for %s: %s", email, exc)
            return None

    async def _create(self, draft: ContactUserDraft) -> UserResolution:
        username = draft.username
        for attempt in range(self.max_attempts):
            if attempt:
                username = suffixed_username(draft.username, attempt)
            payload = draft.model_copy(
                update={"username": username, "role": self.role}
            ).to_payload()

            try:
                created = await self.client.create_user(payload)
            except StrapiAPIError as exc:
                if _is_taken(exc, "email"):
                    existing_id = await self._find_existing(draft.email)
                    if existing_id:
                        self._remember(draft, existing_id)
                        return UserResolution(status=UserStatus.REUSED, user_id=existing_id)
                if exc.mentions("username") and attempt + 1 < self.max_attempts:
                    logger.info(
                        "Username %s taken, retrying as %s",
                        username,
                        suffixed_username(draft.username, attempt + 1),
                    )
                    continue
                raise

            user_id = extract_id(created)
            if user_id is None:
                raise StrapiAPIError("User create returned no id", body=created)
            self._remember(draft, user_id)
            message = f"username {username}" if attempt else ""
            return UserResolution(status=UserStatus.CREATED, user_id=user_id, message=message)

        raise StrapiAPIError(f"Username conflicts exhausted for {draft.username}")
