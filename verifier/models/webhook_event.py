"""Webhook event data models."""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class WebhookEvent(BaseModel):
    """Inbound webhook notification as persisted in the event store."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    delivery_id: Optional[str] = None
    event_type: str  # 'issue_comment', 'issues', 'pull_request', ...
    project_name: Optional[str] = None
    issue_number: Optional[int] = None
    completion_signal: bool = False
    payload: Dict[str, Any]
    processed: bool = False
    processed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)
    error_message: Optional[str] = None

    @property
    def issue_key(self) -> Optional[Tuple[str, int]]:
        """(project_name, issue_number) when both are known."""
        if self.project_name is None or self.issue_number is None:
            return None
        return (self.project_name, self.issue_number)

    @property
    def repository_full_name(self) -> Optional[str]:
        """'owner/repo' of the originating repository, if present."""
        repository = self.payload.get("repository") or {}
        full_name = repository.get("full_name") if isinstance(repository, dict) else None
        return full_name or None


class IngestResult(BaseModel):
    """Routing decision returned by the ingestor for a stored event."""

    event_id: str
    event_type: str
    delivery_id: Optional[str] = None
    project_name: Optional[str] = None
    issue_number: Optional[int] = None
    completion_signal: bool = False

    @property
    def should_verify(self) -> bool:
        return (
            self.completion_signal
            and self.project_name is not None
            and self.issue_number is not None
        )
