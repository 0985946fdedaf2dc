"""
PeakStreak Backend: Password Hashing & Access Tokens
=====================================================

What:  bcrypt password hashing and PyJWT bearer tokens.
Why:   AccountService needs a slow salted hash; the HTTP layer needs a
       stateless way to carry the caller's user id between requests.
How:   bcrypt calls are CPU-bound (~250ms at 12 rounds), so they run in a
       worker thread via `asyncio.to_thread` and never block the event loop.

Logging policy:
    Passwords, hashes and tokens are never logged, not even at DEBUG.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt

from peakstreak.exceptions import UnauthenticatedError

logger = logging.getLogger(__name__)


class PasswordHasher:
    """
    bcrypt wrapper with a configurable work factor.

    `burn()` verifies against a throwaway hash of the same cost. Login calls
    it when the identifier is unknown, so "no such user" and "wrong password"
    take the same time.
    """

    def __init__(self, rounds: int = 12):
        self.rounds = rounds
        self._dummy_hash: Optional[bytes] = None

    def _hash_sync(self, password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    @staticmethod
    def _verify_sync(password: str, hashed: bytes) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed)
        except ValueError:
            # Malformed stored hash
            logger.warning("Stored password hash could not be parsed")
            return False

    async def hash(self, password: str) -> str:
        return await asyncio.to_thread(self._hash_sync, password)

    async def verify(self, password: str, hashed: str) -> bool:
        return await asyncio.to_thread(self._verify_sync, password, hashed.encode("utf-8"))

    async def burn(self, password: str) -> None:
        if self._dummy_hash is None:
            self._dummy_hash = (await self.hash(uuid.uuid4().hex)).encode("utf-8")
        await asyncio.to_thread(self._verify_sync, password, self._dummy_hash)


class TokenCodec:
    """Issues and checks HS256 (by default) JWTs whose `sub` is the user id."""

    def __init__(self, secret: str, algorithm: str = "HS256", expires_minutes: int = 1440):
        self.secret = secret
        self.algorithm = algorithm
        self.expires_minutes = expires_minutes

    def create_access_token(self, user_id: uuid.UUID) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "iat": now,
            "exp": now + timedelta(minutes=self.expires_minutes),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode_access_token(self, token: str) -> uuid.UUID:
        """
        Return the user id carried by `token`.

        Raises:
            UnauthenticatedError: expired, tampered, or missing a valid `sub`.
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise UnauthenticatedError(message="token has expired")
        except jwt.InvalidTokenError:
            raise UnauthenticatedError(message="invalid token")

        try:
            return uuid.UUID(payload["sub"])
        except (TypeError, ValueError):
            raise UnauthenticatedError(message="invalid token")
