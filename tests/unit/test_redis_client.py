"""
Unit tests for Redis client wrapper.

Tests Redis operations using fakeredis for isolated testing.
"""

import pytest
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import fakeredis
from redis.exceptions import ConnectionError

from verifier.services.redis_client import RedisClient, RedisConnectionError


@pytest.fixture
async def redis_client() -> AsyncGenerator[RedisClient, None]:
    """Create Redis client with fakeredis for testing."""
    client = RedisClient(redis_url="redis://localhost:6379/0", retry_delay=0)

    # Replace the real Redis client with fakeredis
    fake_redis = fakeredis.FakeAsyncRedis(decode_responses=True)
    client._client = fake_redis

    yield client

    # Cleanup
    await fake_redis.flushdb()
    await fake_redis.aclose()


class TestVerificationLocks:
    """Test per-issue verification locks."""

    @pytest.mark.asyncio
    async def test_acquire_lock(self, redis_client):
        token = await redis_client.acquire_verification_lock("consilio", 42, ttl_seconds=900)

        assert token is not None
        stored = await redis_client._client.get("verification_lock:consilio:42")
        assert stored == token

    @pytest.mark.asyncio
    async def test_lock_has_ttl(self, redis_client):
        await redis_client.acquire_verification_lock("consilio", 42, ttl_seconds=900)

        ttl = await redis_client._client.ttl("verification_lock:consilio:42")
        assert 0 < ttl <= 900

    @pytest.mark.asyncio
    async def test_second_acquire_fails(self, redis_client):
        first = await redis_client.acquire_verification_lock("consilio", 42, ttl_seconds=900)
        second = await redis_client.acquire_verification_lock("consilio", 42, ttl_seconds=900)

        assert first is not None
        assert second is None

    @pytest.mark.asyncio
    async def test_locks_are_per_issue(self, redis_client):
        assert await redis_client.acquire_verification_lock("consilio", 1, ttl_seconds=60)
        assert await redis_client.acquire_verification_lock("consilio", 2, ttl_seconds=60)
        assert await redis_client.acquire_verification_lock("odin", 1, ttl_seconds=60)

    @pytest.mark.asyncio
    async def test_release_lock(self, redis_client):
        token = await redis_client.acquire_verification_lock("consilio", 42, ttl_seconds=900)

        assert await redis_client.release_verification_lock("consilio", 42, token) is True
        assert await redis_client.acquire_verification_lock("consilio", 42, ttl_seconds=900) is not None

    @pytest.mark.asyncio
    async def test_release_with_wrong_token_keeps_lock(self, redis_client):
        token = await redis_client.acquire_verification_lock("consilio", 42, ttl_seconds=900)

        assert await redis_client.release_verification_lock("consilio", 42, "stale-token") is False
        assert await redis_client._client.get("verification_lock:consilio:42") == token

    @pytest.mark.asyncio
    async def test_release_after_expiry_keeps_other_process_lock(self):
        """A lock that expired and was re-taken by another worker is not deleted."""
        server = fakeredis.FakeServer()
        worker = RedisClient(redis_url="redis://localhost:6379/0", retry_delay=0)
        worker._client = fakeredis.FakeAsyncRedis(server=server, decode_responses=True)
        other = RedisClient(redis_url="redis://localhost:6379/0", retry_delay=0)
        other._client = fakeredis.FakeAsyncRedis(server=server, decode_responses=True)

        stale_token = await worker.acquire_verification_lock("odin", 7, ttl_seconds=900)
        # TTL runs out mid-verification and the other worker takes the key
        await worker._client.delete("verification_lock:odin:7")
        other_token = await other.acquire_verification_lock("odin", 7, ttl_seconds=900)
        worker._client.delete = AsyncMock()

        assert await worker.release_verification_lock("odin", 7, stale_token) is False

        worker._client.delete.assert_not_awaited()
        assert await other.list_verification_locks() == [("odin", 7)]
        assert await other._client.get("verification_lock:odin:7") == other_token

        await worker._client.aclose()
        await other._client.aclose()

    @pytest.mark.asyncio
    async def test_list_locks(self, redis_client):
        await redis_client.acquire_verification_lock("consilio", 42, ttl_seconds=60)
        await redis_client.acquire_verification_lock("health-agent", 7, ttl_seconds=60)
        await redis_client._client.set("verification_lock:odin:not-a-number", "x")

        locks = await redis_client.list_verification_locks()

        assert sorted(locks) == [("consilio", 42), ("health-agent", 7)]


class TestConnectionHandling:
    """Test initialization and retry behavior."""

    @pytest.mark.asyncio
    async def test_uninitialized_client_raises(self):
        client = RedisClient(redis_url="redis://localhost:6379/0")

        with pytest.raises(RuntimeError):
            await client.list_verification_locks()

    @pytest.mark.asyncio
    async def test_connection_errors_retried_then_raised(self, redis_client):
        redis_client._client.set = AsyncMock(side_effect=ConnectionError("connection reset"))

        with pytest.raises(RedisConnectionError):
            await redis_client.acquire_verification_lock("consilio", 42, ttl_seconds=60)

        assert redis_client._client.set.await_count == 3

    @pytest.mark.asyncio
    async def test_transient_error_recovers(self, redis_client):
        real_set = redis_client._client.set
        redis_client._client.set = AsyncMock(side_effect=[ConnectionError("reset"), True])

        token = await redis_client.acquire_verification_lock("consilio", 42, ttl_seconds=60)

        assert token is not None
        redis_client._client.set = real_set
