"""
Storage of pending login attempts.

A record is written when the login starts and consumed exactly once when the
callback arrives. `consume` is an atomic get-and-delete: of two callbacks
racing on the same key, only one gets the record.
"""

import asyncio
import logging
import secrets
import time
from abc import ABC, abstractmethod

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from pseudoidc.oidc.errors import StoreUnavailableError
from pseudoidc.oidc.models import AuthorizationRequestState

logger = logging.getLogger(__name__)


def new_attempt_key() -> str:
    """Opaque key handed to the user agent to find its login attempt again."""
    return secrets.token_urlsafe(24)


class AuthorizationStateStore(ABC):
    @abstractmethod
    async def save(
        self, key: str, state: AuthorizationRequestState, ttl: int
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    async def consume(self, key: str) -> AuthorizationRequestState | None:
        """Return and remove the record, `None` if it is missing or expired."""
        raise NotImplementedError

    async def discard(self, key: str) -> None:
        await self.consume(key)


class RedisAuthorizationStateStore(AuthorizationStateStore):
    prefix = "pseudoidc:login_attempt:"

    def __init__(self, redis: Redis):
        self.redis = redis

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def save(self, key, state, ttl):
        try:
            await self.redis.set(self._key(key), state.model_dump_json(), ex=ttl)
        except RedisError as e:
            raise StoreUnavailableError(f"Failed to save login attempt: {e}") from e

    async def consume(self, key):
        # GETDEL is atomic on the server side
        try:
            raw = await self.redis.getdel(self._key(key))
        except RedisError as e:
            raise StoreUnavailableError(f"Failed to read login attempt: {e}") from e
        if raw is None:
            return None
        try:
            return AuthorizationRequestState.model_validate_json(raw)
        except ValidationError:
            logger.error("Discarding unreadable login attempt record")
            return None

    async def discard(self, key):
        try:
            await self.redis.delete(self._key(key))
        except RedisError as e:
            raise StoreUnavailableError(f"Failed to discard login attempt: {e}") from e


class MemoryAuthorizationStateStore(AuthorizationStateStore):
    """Single process store, for development and tests."""

    def __init__(self):
        self._records: dict[str, tuple[float, AuthorizationRequestState]] = {}
        self._lock = asyncio.Lock()

    async def save(self, key, state, ttl):
        async with self._lock:
            self._purge_expired()
            self._records[key] = (time.monotonic() + ttl, state)

    async def consume(self, key):
        async with self._lock:
            record = self._records.pop(key, None)
        if record is None:
            return None
        expires_at, state = record
        if expires_at <= time.monotonic():
            return None
        return state

    def _purge_expired(self) -> None:
        now = time.monotonic()
        for key in [k for k, (expires_at, _) in self._records.items() if expires_at <= now]:
            del self._records[key]

    def __len__(self) -> int:
        return len(self._records)
