"""
Resilience utilities for outbound calls.

Provides the retry_with_backoff decorator used around GitHub API calls.
"""

import asyncio
import logging
from functools import wraps
from typing import Awaitable, Callable, Optional, ParamSpec, TypeVar

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


class TransientError(Exception):
    """Base class for transient errors that should be retried."""
    pass


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: tuple = (TransientError,),
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
):
    """
    Decorator for retrying coroutines with exponential backoff.

    Only exceptions listed in ``exceptions`` are retried; anything else
    propagates immediately. After ``max_retries`` attempts the last error
    is re-raised.

    Args:
        max_retries: Maximum number of attempts (default: 3)
        base_delay: Initial delay in seconds between attempts (default: 1.0)
        max_delay: Maximum delay in seconds between attempts (default: 60.0)
        exponential_base: Base for exponential backoff calculation (default: 2.0)
        exceptions: Exception types that trigger a retry
        sleep: Awaitable sleep used between attempts (default: asyncio.sleep)

    Example:
        @retry_with_backoff(max_retries=3, base_delay=1.0)
        async def post_comment():
            return await client.post(...)
    """
    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            do_sleep = sleep or asyncio.sleep

            for attempt in range(max_retries):
                try:
                    result = await func(*args, **kwargs)

                    if attempt > 0:
                        logger.info(
                            f"{func.__name__} succeeded on attempt {attempt + 1}/{max_retries}"
                        )

                    return result

                except exceptions as e:
                    if attempt == max_retries - 1:
                        logger.error(f"{func.__name__} failed after {max_retries} attempts: {e}")
                        raise

                    delay = min(base_delay * (exponential_base ** attempt), max_delay)
                    retry_after = getattr(e, "retry_after", None)
                    if retry_after:
                        delay = min(max(delay, float(retry_after)), max_delay)

                    logger.warning(
                        f"{func.__name__} failed on attempt {attempt + 1}/{max_retries}: {e}. "
                        f"Retrying in {delay:.1f}s..."
                    )

                    await do_sleep(delay)

            raise RuntimeError("unreachable")  # pragma: no cover

        return wrapper

    return decorator
