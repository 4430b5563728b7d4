"""
Redis client wrapper for per-issue verification locks.

Two verifications of the same (project, issue) must never run at the same
time, whether they come from the background processor or a manual trigger
in another process. Each run holds a ``verification_lock:{project}:{issue}``
key created with SET NX EX; the TTL frees the key if a process dies while
holding it.

Includes connection pooling and retry logic for resilience.
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import List, Optional, Tuple

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import ConnectionError, RedisError, TimeoutError

logger = logging.getLogger(__name__)


class RedisConnectionError(Exception):
    """Raised when Redis connection fails after retries."""
    pass


class RedisClient:
    """
    Redis client wrapper with connection pooling and retry logic.

    Provides methods for:
    - Acquiring and releasing per-issue verification locks
    - Listing locks currently held
    """

    LOCK_KEY = "verification_lock:{project_name}:{issue_number}"
    LOCK_PATTERN = "verification_lock:*"

    # Compare-and-delete in one step so an expired lock taken over by another run survives
    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    def __init__(
        self,
        redis_url: str,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        connection_timeout: int = 5,
    ):
        """
        Initialize Redis client.

        Args:
            redis_url: Redis connection URL
            max_retries: Maximum number of retry attempts for transient errors
            retry_delay: Base delay between retries (exponential backoff)
            connection_timeout: Connection timeout in seconds
        """
        self._redis_url = redis_url
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[redis.Redis] = None
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._connection_timeout = connection_timeout

    async def initialize(self) -> None:
        """
        Initialize Redis connection pool.

        Raises:
            RedisConnectionError: If connection fails
        """
        try:
            self._pool = ConnectionPool.from_url(
                self._redis_url,
                max_connections=10,
                decode_responses=True,
                socket_timeout=self._connection_timeout,
                socket_connect_timeout=self._connection_timeout,
            )
            self._client = redis.Redis(connection_pool=self._pool)
            await self._client.ping()

            logger.info("Redis connection pool initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize Redis connection pool: {e}")
            raise RedisConnectionError(f"Failed to connect to Redis: {e}") from e

    async def close(self) -> None:
        """Close Redis connection pool."""
        if self._client:
            await self._client.aclose()
            self._client = None

        if self._pool:
            await self._pool.disconnect()
            self._pool = None

        logger.info("Redis connection pool closed")

    @asynccontextmanager
    async def _get_client(self):
        """
        Get Redis client with connection check.

        Raises:
            RuntimeError: If client not initialized
        """
        if not self._client:
            raise RuntimeError("Redis client not initialized. Call initialize() first.")

        yield self._client

    async def _retry_operation(self, operation, *args, **kwargs):
        """
        Execute Redis operation with retry logic.

        Raises:
            RedisConnectionError: If operation fails after all retries
        """
        last_error = None

        for attempt in range(self._max_retries):
            try:
                return await operation(*args, **kwargs)

            except (ConnectionError, TimeoutError) as e:
                last_error = e
                if attempt < self._max_retries - 1:
                    delay = self._retry_delay * (2 ** attempt)
                    logger.warning(
                        f"Redis operation failed (attempt {attempt + 1}/{self._max_retries}), "
                        f"retrying in {delay}s: {e}"
                    )
                    await asyncio.sleep(delay)
                else:
                    logger.error(f"Redis operation failed after {self._max_retries} attempts: {e}")

            except RedisError as e:
                # Non-transient errors, don't retry
                logger.error(f"Redis operation failed with non-transient error: {e}")
                raise

        raise RedisConnectionError(
            f"Redis operation failed after {self._max_retries} retries: {last_error}"
        )

    # ========== Verification Locks ==========

    def _lock_key(self, project_name: str, issue_number: int) -> str:
        return self.LOCK_KEY.format(project_name=project_name, issue_number=issue_number)

    async def acquire_verification_lock(
        self,
        project_name: str,
        issue_number: int,
        ttl_seconds: int,
    ) -> Optional[str]:
        """
        Try to take the lock for a work item.

        Args:
            project_name: Project name
            issue_number: Issue number
            ttl_seconds: Lock expiry

        Returns:
            Lock token if acquired, None if another run holds it
        """
        token = uuid.uuid4().hex

        async def _acquire():
            async with self._get_client() as client:
                key = self._lock_key(project_name, issue_number)
                acquired = await client.set(key, token, nx=True, ex=ttl_seconds)
                return bool(acquired)

        if await self._retry_operation(_acquire):
            logger.debug(f"Acquired verification lock for {project_name} #{issue_number}")
            return token

        logger.info(f"Verification lock for {project_name} #{issue_number} is held elsewhere")
        return None

    async def release_verification_lock(self, project_name: str, issue_number: int, token: str) -> bool:
        """
        Release a lock previously acquired with ``token``.

        A lock that expired and was taken by another run is left alone.

        Returns:
            True if the lock was released
        """
        async def _release():
            async with self._get_client() as client:
                key = self._lock_key(project_name, issue_number)
                deleted = await client.eval(self.RELEASE_SCRIPT, 1, key, token)
                return bool(deleted)

        released = await self._retry_operation(_release)
        if not released:
            logger.warning(f"Verification lock for {project_name} #{issue_number} was no longer ours")
        return released

    async def list_verification_locks(self) -> List[Tuple[str, int]]:
        """(project_name, issue_number) pairs with a lock currently held."""
        async def _list():
            async with self._get_client() as client:
                keys = []
                async for key in client.scan_iter(match=self.LOCK_PATTERN):
                    keys.append(key)
                return keys

        locks = []
        for key in await self._retry_operation(_list):
            _, project_name, issue = key.rsplit(":", 2)
            try:
                locks.append((project_name, int(issue)))
            except ValueError:
                logger.warning(f"Ignoring malformed lock key {key}")
        return locks
