"""
Webhook event store.

Append-only record of received webhook events and their processing state.
The ``processed`` flag moves from false to true exactly once; the UPDATE is
guarded on ``processed = FALSE`` so a second finalization is a no-op.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

import aiomysql

from verifier.models.webhook_event import WebhookEvent
from verifier.services.database import Database

logger = logging.getLogger(__name__)


EVENT_COLUMNS = (
    "id, delivery_id, event_type, project_name, issue_number, completion_signal, "
    "payload, processed, processed_at, created_at, error_message"
)


class EventStore:
    """Persistence for WebhookEvent rows in the webhook_events table."""

    def __init__(self, database: Database):
        self._db = database

    @staticmethod
    def _row_to_event(row: Dict[str, Any]) -> WebhookEvent:
        payload = row.get("payload")
        if isinstance(payload, (str, bytes)):
            payload = json.loads(payload)

        return WebhookEvent(
            id=row["id"],
            delivery_id=row.get("delivery_id"),
            event_type=row["event_type"],
            project_name=row.get("project_name"),
            issue_number=row.get("issue_number"),
            completion_signal=bool(row.get("completion_signal")),
            payload=payload or {},
            processed=bool(row.get("processed")),
            processed_at=row.get("processed_at"),
            created_at=row["created_at"],
            error_message=row.get("error_message"),
        )

    async def insert(self, event: WebhookEvent) -> str:
        """
        Persist a newly received event.

        Args:
            event: Event to store (processed is always written as false)

        Returns:
            The event id
        """
        async with self._db.connection() as conn:
            async with conn.cursor() as cursor:
                await cursor.execute(
                    """
                    INSERT INTO webhook_events
                    (id, delivery_id, event_type, project_name, issue_number,
                     completion_signal, payload, processed, created_at)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, FALSE, %s)
                    """,
                    (
                        event.id,
                        event.delivery_id,
                        event.event_type,
                        event.project_name,
                        event.issue_number,
                        event.completion_signal,
                        json.dumps(event.payload),
                        event.created_at,
                    ),
                )
            await conn.commit()

        logger.debug(f"Stored webhook event {event.id}")
        return event.id

    async def fetch_pending_completions(
        self,
        limit: int = 10,
        exclude_keys: Iterable[Tuple[str, int]] = (),
    ) -> List[WebhookEvent]:
        """
        Select unprocessed completion events that can be dispatched.

        Events without a resolved project or issue number never qualify.

        Args:
            limit: Maximum number of events to return
            exclude_keys: (project_name, issue_number) pairs already in flight

        Returns:
            Events ordered oldest first
        """
        query = (
            f"SELECT {EVENT_COLUMNS} FROM webhook_events "
            "WHERE processed = FALSE AND completion_signal = TRUE "
            "AND project_name IS NOT NULL AND issue_number IS NOT NULL"
        )
        params: List[Any] = []

        for project_name, issue_number in exclude_keys:
            query += " AND NOT (project_name = %s AND issue_number = %s)"
            params.extend([project_name, issue_number])

        query += " ORDER BY created_at ASC LIMIT %s"
        params.append(limit)

        async with self._db.connection() as conn:
            async with conn.cursor(aiomysql.DictCursor) as cursor:
                await cursor.execute(query, tuple(params))
                rows = await cursor.fetchall()

        return [self._row_to_event(row) for row in rows]

    async def mark_processed(self, event_id: str, error_message: Optional[str] = None) -> bool:
        """
        Mark event as processed.

        Args:
            event_id: Event to finalize
            error_message: Processing error, if any

        Returns:
            True if this call performed the transition, False if the event
            was already processed (or does not exist)
        """
        async with self._db.connection() as conn:
            async with conn.cursor() as cursor:
                await cursor.execute(
                    """
                    UPDATE webhook_events
                    SET processed = TRUE,
                        processed_at = UTC_TIMESTAMP(6),
                        error_message = %s
                    WHERE id = %s AND processed = FALSE
                    """,
                    (error_message, event_id),
                )
                updated = cursor.rowcount
            await conn.commit()

        if not updated:
            logger.warning(f"Webhook event {event_id} was already processed")
        return bool(updated)

    async def get(self, event_id: str) -> Optional[WebhookEvent]:
        """Get a single event by id."""
        async with self._db.connection() as conn:
            async with conn.cursor(aiomysql.DictCursor) as cursor:
                await cursor.execute(
                    f"SELECT {EVENT_COLUMNS} FROM webhook_events WHERE id = %s",
                    (event_id,),
                )
                row = await cursor.fetchone()

        return self._row_to_event(row) if row else None

    async def list_events(
        self,
        project_name: Optional[str] = None,
        issue_number: Optional[int] = None,
        unresolved: bool = False,
        limit: int = 50,
    ) -> List[WebhookEvent]:
        """
        Audit query over stored events, newest first.

        Args:
            project_name: Filter by project
            issue_number: Filter by issue number
            unresolved: Only events whose repository had no project mapping
            limit: Maximum number of events to return
        """
        conditions: List[str] = []
        params: List[Any] = []

        if unresolved:
            conditions.append("project_name IS NULL")
        elif project_name is not None:
            conditions.append("project_name = %s")
            params.append(project_name)

        if issue_number is not None:
            conditions.append("issue_number = %s")
            params.append(issue_number)

        query = f"SELECT {EVENT_COLUMNS} FROM webhook_events"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY created_at DESC LIMIT %s"
        params.append(limit)

        async with self._db.connection() as conn:
            async with conn.cursor(aiomysql.DictCursor) as cursor:
                await cursor.execute(query, tuple(params))
                rows = await cursor.fetchall()

        return [self._row_to_event(row) for row in rows]

    async def latest_for_issue(self, project_name: str, issue_number: int) -> Optional[WebhookEvent]:
        """Most recent event stored for a work item."""
        events = await self.list_events(project_name=project_name, issue_number=issue_number, limit=1)
        return events[0] if events else None
