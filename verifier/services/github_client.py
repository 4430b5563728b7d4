"""
GitHub API client for issue thread interactions.

Async wrapper around the GitHub REST API for:
- Creating comments on issues
- Adding labels to issues

Transient failures (408/429/5xx, rate limiting, transport errors) are retried
with exponential backoff.
"""

import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from verifier.utils.logging import get_logger, log_api_call
from verifier.utils.resilience import TransientError, retry_with_backoff

logger = get_logger(__name__)


class GitHubAPIError(Exception):
    """
    Raised when a GitHub API request fails.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code from the response.
        response_body: Response body from GitHub API.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)


class RetryableGitHubError(GitHubAPIError, TransientError):
    """GitHub failure worth retrying."""
    pass


class RateLimitError(RetryableGitHubError):
    """
    Raised when GitHub API rate limit is exceeded.

    Attributes:
        retry_after: Seconds to wait before retrying.
    """

    def __init__(self, message: str, retry_after: Optional[float] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class GitHubClient:
    """
    Async GitHub API client with retry logic.

    Example:
        >>> client = GitHubClient(token="ghp_xxx")
        >>> async with client:
        ...     await client.create_comment("owner", "repo", 123, "Hello!")
    """

    RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize the GitHub client.

        Args:
            token: GitHub API token for authentication.
            base_url: Base URL for GitHub API (GitHub Enterprise Server supported).
            max_retries: Maximum number of attempts per request.
            base_delay: Base delay in seconds for exponential backoff.
            max_delay: Maximum delay in seconds between retries.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used by tests).
            sleep: Optional awaitable sleep used between retries.
        """
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._request_with_retry = retry_with_backoff(
            max_retries=max_retries,
            base_delay=base_delay,
            max_delay=max_delay,
            exceptions=(TransientError,),
            sleep=sleep,
        )(self._request_once)

    @property
    def client(self) -> httpx.AsyncClient:
        """HTTP client, created on first use."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._default_headers(),
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "completion-verifier/0.1",
        }

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    @staticmethod
    def _rate_limit_wait(response: httpx.Response) -> Optional[float]:
        retry_after = response.headers.get("Retry-After")
        if retry_after:
            try:
                return float(retry_after)
            except ValueError:
                return None

        reset = response.headers.get("X-RateLimit-Reset")
        if reset:
            try:
                return max(0.0, float(reset) - time.time())
            except ValueError:
                return None
        return None

    async def _request_once(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        started = time.monotonic()
        try:
            response = await self.client.request(method, path, json=json)
        except httpx.TransportError as e:
            log_api_call(logger, "github", path, method, error=str(e))
            raise RetryableGitHubError(f"GitHub request failed: {e}") from e

        duration_ms = (time.monotonic() - started) * 1000
        status = response.status_code

        if status < 400:
            log_api_call(logger, "github", path, method, status_code=status, duration_ms=duration_ms)
            return response.json() if response.content else None

        body = response.text
        log_api_call(
            logger, "github", path, method, status_code=status, duration_ms=duration_ms, error=body[:200]
        )

        rate_limited = status == 429 or (
            status == 403 and response.headers.get("X-RateLimit-Remaining") == "0"
        )
        if rate_limited:
            raise RateLimitError(
                f"GitHub rate limit exceeded for {method} {path}",
                retry_after=self._rate_limit_wait(response),
                status_code=status,
                response_body=body,
            )
        if status in self.RETRYABLE_STATUS_CODES:
            raise RetryableGitHubError(
                f"GitHub returned {status} for {method} {path}",
                status_code=status,
                response_body=body,
            )
        raise GitHubAPIError(
            f"GitHub returned {status} for {method} {path}",
            status_code=status,
            response_body=body,
        )

    async def create_comment(self, owner: str, repo: str, issue_number: int, body: str) -> Dict[str, Any]:
        """
        Post a comment on an issue.

        Raises:
            GitHubAPIError: If the request ultimately fails
        """
        return await self._request_with_retry(
            "POST",
            f"/repos/{owner}/{repo}/issues/{issue_number}/comments",
            json={"body": body},
        )

    async def add_labels(self, owner: str, repo: str, issue_number: int, labels: List[str]) -> List[Dict[str, Any]]:
        """
        Add labels to an issue.

        Raises:
            GitHubAPIError: If the request ultimately fails
        """
        return await self._request_with_retry(
            "POST",
            f"/repos/{owner}/{repo}/issues/{issue_number}/labels",
            json={"labels": labels},
        )
