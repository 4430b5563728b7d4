"""
Service container.

Every component is constructed once per process from Settings and wired
through constructors. The API process keeps the container on
``app.state.services``; the worker process holds it directly.
"""

from dataclasses import dataclass
from typing import Optional

from verifier.config import Settings
from verifier.services.database import Database
from verifier.services.event_store import EventStore
from verifier.services.executor import SubprocessExecutor
from verifier.services.github_client import GitHubClient
from verifier.services.ingestor import EventIngestor
from verifier.services.processor import BackgroundProcessor
from verifier.services.project_mapping import ProjectMapping
from verifier.services.redis_client import RedisClient
from verifier.services.result_publisher import ResultPublisher
from verifier.services.result_store import VerificationResultStore
from verifier.services.scanner import InProcessScanner
from verifier.services.signature import SignatureValidator
from verifier.services.verification_runner import VerificationRunner
from verifier.services.workspace import WorkspaceResolver
from verifier.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Services:
    """All long-lived components of one process."""

    settings: Settings
    signature_validator: SignatureValidator
    ingestor: EventIngestor
    event_store: EventStore
    result_store: VerificationResultStore
    processor: BackgroundProcessor
    database: Optional[Database] = None
    redis_client: Optional[RedisClient] = None
    github_client: Optional[GitHubClient] = None

    @classmethod
    def build(cls, settings: Settings) -> "Services":
        """
        Construct the full component graph from settings.

        No connections are opened here; call start() for that.
        """
        project_mapping = ProjectMapping.from_settings(settings.project_map_path)

        database = Database(settings.database_url)
        event_store = EventStore(database)
        result_store = VerificationResultStore(database)
        redis_client = RedisClient(settings.redis_url)
        github_client = GitHubClient(token=settings.github_token, base_url=settings.github_api_url)

        runner = VerificationRunner(
            result_store=result_store,
            executor=SubprocessExecutor(),
            scanner=InProcessScanner(),
            project_mapping=project_mapping,
            build_command=settings.build_command,
            test_command=settings.test_command,
            build_timeout=settings.build_timeout_seconds,
            test_timeout=settings.test_timeout_seconds,
            scan_root=settings.scan_root,
            excerpt_chars=settings.comment_excerpt_chars,
        )

        processor = BackgroundProcessor(
            event_store=event_store,
            runner=runner,
            publisher=ResultPublisher(github_client),
            workspaces=WorkspaceResolver(settings.workspaces_root),
            locks=redis_client,
            batch_size=settings.batch_size,
            max_concurrent=settings.max_concurrent_verifications,
            lock_ttl_seconds=settings.lock_ttl_seconds,
        )

        return cls(
            settings=settings,
            signature_validator=SignatureValidator(settings.webhook_secret),
            ingestor=EventIngestor(
                event_store=event_store,
                project_mapping=project_mapping,
                automation_logins=settings.automation_logins,
                completion_keywords=settings.completion_keywords,
            ),
            event_store=event_store,
            result_store=result_store,
            processor=processor,
            database=database,
            redis_client=redis_client,
            github_client=github_client,
        )

    async def start(self) -> None:
        """Open the database pool (creating tables if enabled) and the Redis pool."""
        if self.database:
            await self.database.initialize()
            logger.info("MySQL connection pool initialized")
            if self.settings.auto_create_schema:
                await self.database.ensure_schema()

        if self.redis_client:
            await self.redis_client.initialize()
            logger.info("Redis client initialized")

    async def close(self) -> None:
        """Release every connection, continuing past individual failures."""
        for name, resource in (
            ("GitHub client", self.github_client),
            ("Redis client", self.redis_client),
            ("MySQL pool", self.database),
        ):
            if resource is None:
                continue
            try:
                await resource.close()
                logger.info(f"{name} closed")
            except Exception as e:
                logger.error(f"Failed to close {name}: {e}", exc_info=True)
