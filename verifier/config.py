"""
Application configuration management.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str
    auto_create_schema: bool = True

    # Redis
    redis_url: str

    # GitHub
    github_token: str
    github_api_url: str = "https://api.github.com"

    # Webhook
    webhook_secret: str

    # Admin API
    admin_api_key: Optional[str] = None  # Falls back to webhook_secret if not set

    # Event classification
    project_map_path: Optional[str] = None
    automation_logins: List[str] = ["github-actions[bot]", "scar-bot"]
    completion_keywords: List[str] = [
        "implementation complete",
        "pr created",
        "pull request created",
        "work completed",
    ]

    # Verification
    workspaces_root: str = "/var/lib/verifier/workspaces"
    build_command: str = "npm run build"
    test_command: str = "npm test"
    build_timeout_seconds: float = 120.0
    test_timeout_seconds: float = 300.0
    scan_root: str = "src"
    comment_excerpt_chars: int = 500

    # Background processing
    poll_interval_seconds: float = 30.0
    batch_size: int = 10
    max_concurrent_verifications: int = 3
    lock_ttl_seconds: int = 900
    embedded_processor: bool = False

    # Application
    log_level: str = "INFO"

    @model_validator(mode="after")
    def check_lock_outlives_run(self) -> "Settings":
        """A verification lock must not expire while build and tests can still be running."""
        max_run_seconds = self.build_timeout_seconds + self.test_timeout_seconds
        if self.lock_ttl_seconds <= max_run_seconds:
            raise ValueError(
                f"lock_ttl_seconds ({self.lock_ttl_seconds}) must exceed "
                f"build_timeout_seconds + test_timeout_seconds ({max_run_seconds:g})"
            )
        return self

    @property
    def effective_admin_api_key(self) -> str:
        """Key expected in the X-API-Key header of admin endpoints."""
        return self.admin_api_key or self.webhook_secret


@lru_cache
def get_settings() -> Settings:
    """Load settings once per process."""
    return Settings()
