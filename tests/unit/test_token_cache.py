"""Tests for token cache backends."""

import json
from datetime import timedelta

import pytest

from docker_registry_client.exceptions import FetchTokenError, StoreTokenError
from docker_registry_client.image.registry import Registry
from docker_registry_client.registry.token import CacheKey, Token
from docker_registry_client.registry.token_cache import (
    DEFAULT_KEY_PREFIX,
    KeyValueTokenCache,
    MemoryTokenCache,
    NoTokenCache,
)

KEY = CacheKey(Registry.DOCKER_HUB, None, "library", "alpine")


class FakeStore:
    """Dict-backed stand-in for redis.asyncio.Redis."""

    def __init__(self, fail_get=False, fail_set=False):
        self.values = {}
        self.expiry = {}
        self.fail_get = fail_get
        self.fail_set = fail_set

    async def get(self, name):
        if self.fail_get:
            raise ConnectionError("store unavailable")
        return self.values.get(name)

    async def set(self, name, value, ex=None):
        if self.fail_set:
            raise ConnectionError("store unavailable")
        self.values[name] = value
        self.expiry[name] = ex
        return True


def expiring_token(clock, expires_in=300):
    return Token(value="abc", expires_in=expires_in, issued_at=clock())


class TestNoTokenCache:
    @pytest.mark.asyncio
    async def test_always_misses(self, clock):
        cache = NoTokenCache()
        await cache.store(KEY, expiring_token(clock))
        assert await cache.fetch(KEY) is None


class TestMemoryTokenCache:
    """Tests for MemoryTokenCache."""

    @pytest.mark.asyncio
    async def test_miss(self, clock):
        cache = MemoryTokenCache(clock=clock)
        assert await cache.fetch(KEY) is None

    @pytest.mark.asyncio
    async def test_hit_before_expiry(self, clock):
        cache = MemoryTokenCache(clock=clock)
        token = expiring_token(clock)
        await cache.store(KEY, token)

        clock.advance(299)
        assert await cache.fetch(KEY) == token

    @pytest.mark.asyncio
    async def test_miss_after_expiry(self, clock):
        cache = MemoryTokenCache(clock=clock)
        await cache.store(KEY, expiring_token(clock))

        clock.advance(301)
        assert await cache.fetch(KEY) is None

    @pytest.mark.asyncio
    async def test_miss_at_exact_expiry(self, clock):
        """Test now == issued_at + expires_in is already expired."""
        cache = MemoryTokenCache(clock=clock)
        await cache.store(KEY, expiring_token(clock))

        clock.advance(300)
        assert await cache.fetch(KEY) is None

    @pytest.mark.asyncio
    async def test_token_without_expiry(self, clock):
        cache = MemoryTokenCache(clock=clock)
        token = Token(value="forever")
        await cache.store(KEY, token)

        clock.advance(timedelta(days=30).total_seconds())
        assert await cache.fetch(KEY) == token

    @pytest.mark.asyncio
    async def test_store_overwrites(self, clock):
        cache = MemoryTokenCache(clock=clock)
        await cache.store(KEY, Token(value="old"))
        await cache.store(KEY, Token(value="new"))

        assert (await cache.fetch(KEY)).value == "new"
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, clock):
        cache = MemoryTokenCache(clock=clock)
        other = CacheKey(Registry.DOCKER_HUB, None, "library", "busybox")
        await cache.store(KEY, Token(value="alpine"))

        assert await cache.fetch(other) is None


class TestKeyValueTokenCache:
    """Tests for KeyValueTokenCache."""

    @pytest.mark.asyncio
    async def test_store_writes_json_with_ttl(self, clock):
        store = FakeStore()
        cache = KeyValueTokenCache(store, clock=clock)
        await cache.store(KEY, expiring_token(clock))

        name = f"{DEFAULT_KEY_PREFIX}:index.docker.io/-/library/alpine"
        assert store.expiry[name] == 300
        assert json.loads(store.values[name])["token"] == "abc"

    @pytest.mark.asyncio
    async def test_store_without_expiry_has_no_ttl(self, clock):
        store = FakeStore()
        cache = KeyValueTokenCache(store, clock=clock)
        await cache.store(KEY, Token(value="forever"))

        assert list(store.expiry.values()) == [None]

    @pytest.mark.asyncio
    async def test_fetch_round_trip(self, clock):
        cache = KeyValueTokenCache(FakeStore(), clock=clock)
        token = expiring_token(clock)
        await cache.store(KEY, token)

        assert await cache.fetch(KEY) == token

    @pytest.mark.asyncio
    async def test_custom_prefix(self, clock):
        store = FakeStore()
        cache = KeyValueTokenCache(store, prefix="tests", clock=clock)
        await cache.store(KEY, Token(value="abc"))

        assert list(store.values) == ["tests:index.docker.io/-/library/alpine"]

    @pytest.mark.asyncio
    async def test_expired_entry_is_a_miss(self, clock):
        """Test validity is checked even if the store has not evicted."""
        cache = KeyValueTokenCache(FakeStore(), clock=clock)
        await cache.store(KEY, expiring_token(clock))

        clock.advance(301)
        assert await cache.fetch(KEY) is None

    @pytest.mark.asyncio
    async def test_miss(self, clock):
        cache = KeyValueTokenCache(FakeStore(), clock=clock)
        assert await cache.fetch(KEY) is None

    @pytest.mark.asyncio
    async def test_get_failure(self, clock):
        cache = KeyValueTokenCache(FakeStore(fail_get=True), clock=clock)
        with pytest.raises(FetchTokenError):
            await cache.fetch(KEY)

    @pytest.mark.asyncio
    async def test_set_failure(self, clock):
        cache = KeyValueTokenCache(FakeStore(fail_set=True), clock=clock)
        with pytest.raises(StoreTokenError):
            await cache.store(KEY, expiring_token(clock))

    @pytest.mark.asyncio
    async def test_corrupt_entry(self, clock):
        store = FakeStore()
        cache = KeyValueTokenCache(store, clock=clock)
        store.values[f"{DEFAULT_KEY_PREFIX}:{KEY}"] = "not json"

        with pytest.raises(FetchTokenError):
            await cache.fetch(KEY)
