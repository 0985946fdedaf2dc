"""
PeakStreak Backend: Account & Credential Operations
====================================================

What:  Sign-up, login, user lookup/search, avatar replacement and account
       deletion.
Why:   Everything that touches credentials or the avatar blob lives here, so
       routes never see a password hash or a storage path.
How:   bcrypt via `PasswordHasher` (off the event loop), persistence via the
       gateway, avatar bytes via a `BlobStore`.

Duplicate detection:
    There is no "does this username exist?" pre-check. The INSERT is the
    check: the gateway reports which uniqueness constraint fired, so two
    concurrent sign-ups for the same name cannot both succeed.

Avatar upload pipeline (update_avatar):
    1. Size check (cheapest, rejects before touching anything)
    2. MIME check with python-magic on the bytes: PNG or JPEG only
    3. Save under a fresh `<uuid>.<ext>` key
    4. Point the user at the new locator
         └─ fails → delete the NEW blob, propagate
    5. Delete the OLD blob (failure logged, not raised: the user already
       points at the new one)
"""

import logging
import uuid
from typing import List, Optional

import magic

from peakstreak.domain import PublicUser, User
from peakstreak.exceptions import (
    ErrorKind,
    InvalidCredentialsError,
    PeakStreakError,
    ValidationError,
    translate_errors,
)
from peakstreak.gateway.base import PersistenceGateway
from peakstreak.security import PasswordHasher
from peakstreak.storage import BlobStore

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 40

# ── Accepted Avatar Formats ───────────────────────────────────────────────
# MIME type sniffed from the content → stored file extension
AVATAR_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
}


def detect_image_extension(content: bytes) -> Optional[str]:
    """
    Return the extension for PNG/JPEG content, None for anything else.

    The type comes from libmagic reading the bytes themselves; the client's
    filename and Content-Type header are never trusted.
    """
    mime_type = magic.from_buffer(content, mime=True)
    return AVATAR_EXTENSIONS.get(mime_type)


class AccountService:
    def __init__(
        self,
        gateway: PersistenceGateway,
        hasher: PasswordHasher,
        blob_store: BlobStore,
        max_avatar_size: int = 2_097_152,
    ):
        self._gateway = gateway
        self._hasher = hasher
        self._blobs = blob_store
        self.max_avatar_size = max_avatar_size

    # ── Credentials ───────────────────────────────────────────────────────

    async def create_user(self, username: str, email: str, password: str) -> User:
        hashed = await self._hasher.hash(password)
        user = User(id=uuid.uuid4(), username=username, email=email, hashed_password=hashed)
        with translate_errors("create user"):
            created = await self._gateway.create_user(user)
        logger.info("User %s signed up", created.id)
        return created.sanitized()

    async def login_user(self, identifier: str, password: str) -> User:
        """
        Authenticate by username OR email.

        Unknown identifier and wrong password raise the same
        InvalidCredentialsError, after the same amount of bcrypt work.
        """
        try:
            with translate_errors("login"):
                user = await self._gateway.get_user_by_identifier(identifier)
        except PeakStreakError as err:
            if err.kind is not ErrorKind.NOT_FOUND:
                raise
            await self._hasher.burn(password)
            raise InvalidCredentialsError() from None

        if not user.hashed_password or not await self._hasher.verify(password, user.hashed_password):
            raise InvalidCredentialsError()
        return user.sanitized()

    # ── Lookup ────────────────────────────────────────────────────────────

    async def get_user_by_username(self, username: str) -> User:
        with translate_errors("get user"):
            user = await self._gateway.get_user_by_username(username)
        return user.sanitized()

    async def get_user_by_id(self, user_id: uuid.UUID) -> User:
        with translate_errors("get user"):
            user = await self._gateway.get_user_by_id(user_id)
        return user.sanitized()

    async def search_users(self, query: str) -> List[PublicUser]:
        query = query.strip()
        if not query:
            return []
        with translate_errors("search users"):
            return await self._gateway.search_users_by_username(query, limit=SEARCH_LIMIT)

    # ── Avatar ────────────────────────────────────────────────────────────

    async def update_avatar(self, user_id: uuid.UUID, filename: str, content: bytes) -> str:
        if len(content) > self.max_avatar_size:
            max_mb = self.max_avatar_size / (1024 * 1024)
            raise ValidationError(
                message=f"File size exceeds maximum of {max_mb:.0f}MB.",
                field="avatar",
                context={"actual_size": len(content), "filename": filename},
            )

        extension = detect_image_extension(content)
        if extension is None:
            raise ValidationError(
                message="The file must be a PNG or JPEG image.",
                field="avatar",
                context={"filename": filename},
            )

        with translate_errors("update avatar"):
            old_locator = await self._gateway.get_user_avatar(user_id)
            new_locator = await self._blobs.save(content, f"{uuid.uuid4()}{extension}")

        try:
            with translate_errors("update avatar"):
                await self._gateway.update_user_avatar(user_id, new_locator)
        except PeakStreakError:
            await self._discard_blob(new_locator)
            raise

        if old_locator:
            await self._discard_blob(old_locator)
        logger.info("Avatar updated for user %s", user_id)
        return new_locator

    async def _discard_blob(self, locator: str) -> None:
        try:
            await self._blobs.delete(locator)
        except Exception as exc:
            logger.warning("Failed to delete avatar blob %s: %s", locator, exc)

    # ── Deletion ──────────────────────────────────────────────────────────

    async def delete_user(self, user_id: uuid.UUID) -> None:
        """Delete the account (habits, logs, follow edges cascade), then its avatar."""
        with translate_errors("delete user"):
            avatar = await self._gateway.get_user_avatar(user_id)
            await self._gateway.delete_user(user_id)
        if avatar:
            await self._discard_blob(avatar)
        logger.info("User %s deleted their account", user_id)
