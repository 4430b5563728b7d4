"""
Event Ingestor component.

Turns a validated webhook payload into a stored WebhookEvent plus a routing
decision. Work here is limited to in-memory parsing and a single insert so
the webhook endpoint can answer immediately.

GitHub payload fields read (issue_comment event):
{
  "comment": {"body": "...", "user": {"login": "github-actions[bot]"}},
  "issue": {"number": 42},
  "repository": {"name": "odin", "full_name": "acme/odin"}
}
"""

from typing import Any, Dict, Iterable, Optional

from verifier.models.webhook_event import IngestResult, WebhookEvent
from verifier.services.event_store import EventStore
from verifier.services.project_mapping import ProjectMapping
from verifier.utils.logging import get_logger, log_webhook_event

logger = get_logger(__name__)


COMPLETION_EVENT_TYPE = "issue_comment"


def extract_repository_name(payload: Dict[str, Any]) -> Optional[str]:
    repository = payload.get("repository")
    if not isinstance(repository, dict):
        return None
    name = repository.get("name")
    return name if isinstance(name, str) and name else None


def extract_issue_number(payload: Dict[str, Any]) -> Optional[int]:
    """Issue (or pull request) number, or None when absent or not a positive integer."""
    for key in ("issue", "pull_request"):
        section = payload.get(key)
        if not isinstance(section, dict):
            continue
        number = section.get("number")
        if isinstance(number, bool) or (isinstance(number, float) and not number.is_integer()):
            continue
        try:
            value = int(number)
        except (TypeError, ValueError):
            continue
        if value > 0:
            return value
    return None


def is_completion_signal(
    event_type: str,
    payload: Dict[str, Any],
    automation_logins: Iterable[str],
    completion_keywords: Iterable[str],
) -> bool:
    """
    Decide whether an event announces finished work.

    True only for a comment authored by one of the automation identities
    whose body contains one of the completion phrases (case-insensitive).
    """
    if event_type != COMPLETION_EVENT_TYPE:
        return False

    comment = payload.get("comment")
    if not isinstance(comment, dict):
        return False

    user = comment.get("user") or {}
    login = user.get("login") if isinstance(user, dict) else None
    if login not in set(automation_logins):
        return False

    body = comment.get("body") or ""
    if not isinstance(body, str):
        return False

    lower_body = body.lower()
    return any(keyword.lower() in lower_body for keyword in completion_keywords)


class EventIngestor:
    """Resolves, classifies, and records inbound webhook events."""

    def __init__(
        self,
        event_store: EventStore,
        project_mapping: ProjectMapping,
        automation_logins: Iterable[str],
        completion_keywords: Iterable[str],
    ):
        self.event_store = event_store
        self.project_mapping = project_mapping
        self.automation_logins = list(automation_logins)
        self.completion_keywords = list(completion_keywords)

    async def ingest(
        self,
        event_type: str,
        payload: Dict[str, Any],
        delivery_id: Optional[str] = None,
    ) -> IngestResult:
        """
        Store an event and return its routing decision.

        Unmapped repositories are stored with project_name = None and are
        never dispatched to verification.

        Args:
            event_type: Value of the X-GitHub-Event header
            payload: Parsed request body
            delivery_id: Value of the X-GitHub-Delivery header

        Returns:
            IngestResult describing the stored event
        """
        repository_name = extract_repository_name(payload)
        project_name = self.project_mapping.resolve(repository_name)
        issue_number = extract_issue_number(payload)
        completion = is_completion_signal(
            event_type, payload, self.automation_logins, self.completion_keywords
        )

        if repository_name and project_name is None:
            logger.info(f"Repository {repository_name} has no project mapping; storing for audit only")

        event = WebhookEvent(
            delivery_id=delivery_id,
            event_type=event_type,
            project_name=project_name,
            issue_number=issue_number,
            completion_signal=completion,
            payload=payload,
        )
        await self.event_store.insert(event)

        log_webhook_event(
            logger,
            event_id=event.id,
            event_type=event_type,
            delivery_id=delivery_id,
            project_name=project_name,
            issue_number=issue_number,
            completion_signal=completion,
        )

        result = IngestResult(
            event_id=event.id,
            event_type=event_type,
            delivery_id=delivery_id,
            project_name=project_name,
            issue_number=issue_number,
            completion_signal=completion,
        )
        if result.should_verify:
            logger.info(
                f"Event {event.id} queued for verification of {project_name} #{issue_number}",
                extra={"event_id": event.id, "project_name": project_name, "issue_number": issue_number},
            )
        else:
            logger.debug(f"Event {event.id} stored for audit only", extra={"event_id": event.id})
        return result
