"""
Token cache backends.

Every backend answers ``fetch`` with a token only while it is still valid;
expired entries are not evicted, they are simply reported as a miss.

Failure semantics per backend:

- ``NoTokenCache``: never fails.
- ``MemoryTokenCache``: never fails.
- ``KeyValueTokenCache``: store and fetch errors raise ``StoreTokenError`` /
  ``FetchTokenError``, which abort the manifest request.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Protocol

from pydantic import ValidationError

from docker_registry_client.exceptions import FetchTokenError, StoreTokenError
from docker_registry_client.logging_config import configure_module_logging
from docker_registry_client.registry.token import CacheKey, Token, utc_now

logger = configure_module_logging("registry.token_cache")

DEFAULT_KEY_PREFIX = "docker-registry-client:token"

Clock = Callable[[], datetime]


class TokenCache(ABC):
    """Keyed store of bearer tokens."""

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or utc_now

    def _valid(self, key: CacheKey, token: Optional[Token]) -> Optional[Token]:
        if token is None:
            return None
        if not token.is_valid(self._clock()):
            logger.debug(f"Cached token for {key} has expired")
            return None
        return token

    @abstractmethod
    async def fetch(self, key: CacheKey) -> Optional[Token]:
        """Return the cached token for ``key``, or None on a miss."""
        pass

    @abstractmethod
    async def store(self, key: CacheKey, token: Token) -> None:
        """Cache ``token`` under ``key``, replacing any previous entry."""
        pass


class NoTokenCache(TokenCache):
    """Token cache that caches nothing."""

    async def fetch(self, key: CacheKey) -> Optional[Token]:
        return None

    async def store(self, key: CacheKey, token: Token) -> None:
        return None


class MemoryTokenCache(TokenCache):
    """In-process token cache.

    A single lock guards the dict, so a fetch never observes a half-written
    entry. It is only held for the dict operation itself.
    """

    def __init__(self, clock: Optional[Clock] = None):
        super().__init__(clock)
        self._tokens: Dict[CacheKey, Token] = {}
        self._lock = threading.Lock()

    async def fetch(self, key: CacheKey) -> Optional[Token]:
        with self._lock:
            token = self._tokens.get(key)
        return self._valid(key, token)

    async def store(self, key: CacheKey, token: Token) -> None:
        with self._lock:
            self._tokens[key] = token

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)


class KeyValueStore(Protocol):
    """Async keyed store with optional TTL, e.g. ``redis.asyncio.Redis``."""

    async def get(self, name: str) -> Any: ...

    async def set(self, name: str, value: str, ex: Optional[int] = None) -> Any: ...


class KeyValueTokenCache(TokenCache):
    """Token cache backed by an external keyed store.

    Tokens are stored as JSON under ``{prefix}:{cache key}`` with the token's
    ``expires_in`` as TTL. The store's own expiry is not trusted; validity is
    checked again on every fetch.
    """

    def __init__(
        self,
        store: KeyValueStore,
        prefix: str = DEFAULT_KEY_PREFIX,
        clock: Optional[Clock] = None,
    ):
        super().__init__(clock)
        self.store_backend = store
        self.prefix = prefix

    def _key(self, key: CacheKey) -> str:
        return f"{self.prefix}:{key}"

    async def fetch(self, key: CacheKey) -> Optional[Token]:
        name = self._key(key)
        try:
            value = await self.store_backend.get(name)
        except Exception as e:
            logger.error(f"Failed to read token {name}: {e}")
            raise FetchTokenError(f"Failed to read token {name}: {e}") from e

        if value is None:
            return None

        try:
            token = Token.model_validate_json(value)
        except ValidationError as e:
            logger.error(f"Failed to deserialize cached token {name}: {e}")
            raise FetchTokenError(f"Failed to deserialize cached token {name}: {e}") from e

        return self._valid(key, token)

    async def store(self, key: CacheKey, token: Token) -> None:
        name = self._key(key)
        value = token.model_dump_json(by_alias=True)
        try:
            await self.store_backend.set(name, value, ex=token.expires_in or None)
        except Exception as e:
            logger.error(f"Failed to store token {name}: {e}")
            raise StoreTokenError(f"Failed to store token {name}: {e}") from e
