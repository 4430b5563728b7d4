"""
Background Processor component.

On every tick, selects unprocessed completion events from the event store
and verifies each affected work item with bounded concurrency:

- events are grouped by (project_name, issue_number); one verification runs
  per key and every event of the group is finalized with its outcome
- keys already in flight in this process are excluded from selection, and a
  Redis lock keeps other processes off the same key
- events are marked processed only after verification concludes, so a crash
  mid-run leaves them to be picked up again after restart
- an exception from one key never aborts the batch or the scheduler loop
"""

import asyncio
from collections import OrderedDict
from typing import Dict, List, Optional, Set, Tuple

from verifier.models.verification import VerificationResult
from verifier.models.webhook_event import WebhookEvent
from verifier.services.event_store import EventStore
from verifier.services.redis_client import RedisClient
from verifier.services.result_publisher import ResultPublisher
from verifier.services.scheduler import PeriodicScheduler
from verifier.services.verification_runner import VerificationRunner
from verifier.services.workspace import WorkspaceResolver
from verifier.utils.logging import get_logger

logger = get_logger(__name__)

IssueKey = Tuple[str, int]


class VerificationInProgressError(Exception):
    """Raised when a work item is already being verified."""
    pass


class BackgroundProcessor:
    """Polls the event store and dispatches verifications."""

    def __init__(
        self,
        event_store: EventStore,
        runner: VerificationRunner,
        publisher: ResultPublisher,
        workspaces: WorkspaceResolver,
        locks: RedisClient,
        batch_size: int = 10,
        max_concurrent: int = 3,
        lock_ttl_seconds: int = 900,
    ):
        self.event_store = event_store
        self.runner = runner
        self.publisher = publisher
        self.workspaces = workspaces
        self.locks = locks
        self.batch_size = batch_size
        self.lock_ttl_seconds = lock_ttl_seconds
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._in_flight: Set[IssueKey] = set()
        self._scheduler: Optional[PeriodicScheduler] = None

    @property
    def in_flight(self) -> Set[IssueKey]:
        return set(self._in_flight)

    # ========== Scheduling ==========

    def start(self, scheduler: PeriodicScheduler, interval: float) -> None:
        """Run tick() on ``scheduler`` every ``interval`` seconds."""
        self._scheduler = scheduler
        scheduler.start(interval, self.tick)
        logger.info(f"Starting webhook event processor (checking every {interval:g}s)")

    async def stop(self) -> None:
        if self._scheduler:
            logger.info("Stopping webhook event processor")
            await self._scheduler.stop()
            self._scheduler = None

    # ========== Batch processing ==========

    async def tick(self) -> int:
        """
        Process one batch of pending completion events.

        Returns:
            Number of work items dispatched
        """
        try:
            events = await self.event_store.fetch_pending_completions(
                limit=self.batch_size, exclude_keys=self.in_flight
            )
        except Exception as e:
            logger.error(f"Error fetching pending webhook events: {e}", exc_info=True)
            return 0

        if not events:
            return 0

        groups: Dict[IssueKey, List[WebhookEvent]] = OrderedDict()
        for event in events:
            key = event.issue_key
            if key is None or key in self._in_flight:
                continue
            groups.setdefault(key, []).append(event)

        logger.info(f"Processing {len(events)} webhook events for {len(groups)} work items")

        await asyncio.gather(
            *(self._process_group(key, group) for key, group in groups.items())
        )
        return len(groups)

    async def _process_group(self, key: IssueKey, events: List[WebhookEvent]) -> None:
        project_name, issue_number = key
        group_logger = logger.with_context(project_name=project_name, issue_number=issue_number)

        async with self._semaphore:
            try:
                outcome = await self._verify_locked(
                    project_name, issue_number, repository=self._repository_for(events)
                )
            except VerificationInProgressError:
                group_logger.info(
                    f"Skipping {project_name} #{issue_number}: verification already in progress"
                )
                return
            except Exception as e:
                group_logger.error(
                    f"Error processing webhook events for {project_name} #{issue_number}: {e}",
                    exc_info=True,
                )
                await self._finalize(events, error_message=str(e) or type(e).__name__)
                return

            await self._finalize(events, error_message=None)
            group_logger.info(
                f"Processed {len(events)} webhook event(s) for {project_name} #{issue_number}: "
                f"{outcome.status.value}"
            )

    @staticmethod
    def _repository_for(events: List[WebhookEvent]) -> Optional[str]:
        for event in reversed(events):
            if event.repository_full_name:
                return event.repository_full_name
        return None

    async def _finalize(self, events: List[WebhookEvent], error_message: Optional[str]) -> None:
        for event in events:
            try:
                await self.event_store.mark_processed(event.id, error_message)
            except Exception as e:
                logger.error(
                    f"Failed to mark webhook event {event.id} processed: {e}",
                    extra={"event_id": event.id},
                    exc_info=True,
                )

    # ========== Verification ==========

    async def verify_issue(
        self,
        project_name: str,
        issue_number: int,
        repository: Optional[str] = None,
    ) -> VerificationResult:
        """
        Verify a work item outside the polling loop (manual trigger).

        The repository defaults to the one recorded on the latest stored
        event for the issue.

        Raises:
            VerificationInProgressError: If the work item is already being verified
        """
        if repository is None:
            latest = await self.event_store.latest_for_issue(project_name, issue_number)
            repository = latest.repository_full_name if latest else None

        async with self._semaphore:
            return await self._verify_locked(project_name, issue_number, repository)

    async def _verify_locked(
        self,
        project_name: str,
        issue_number: int,
        repository: Optional[str],
    ) -> VerificationResult:
        key = (project_name, issue_number)
        if key in self._in_flight:
            raise VerificationInProgressError(f"{project_name} #{issue_number} is already being verified")

        self._in_flight.add(key)
        token: Optional[str] = None
        try:
            token = await self.locks.acquire_verification_lock(
                project_name, issue_number, self.lock_ttl_seconds
            )
            if token is None:
                raise VerificationInProgressError(
                    f"{project_name} #{issue_number} is locked by another process"
                )

            workspace = self.workspaces.resolve(project_name, issue_number)
            result = await self.runner.run(project_name, issue_number, workspace)
            logger.info(f"Verification completed with status: {result.status.value}")

            await self.publisher.publish(result, repository)
            return result

        finally:
            self._in_flight.discard(key)
            if token is not None:
                try:
                    await self.locks.release_verification_lock(project_name, issue_number, token)
                except Exception as e:
                    logger.error(f"Failed to release verification lock: {e}", exc_info=True)
