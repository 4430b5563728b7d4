"""API response data models."""

from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class WebhookAccepted(BaseModel):
    """Response from the webhook handler on acceptance into the queue."""

    model_config = ConfigDict(populate_by_name=True)

    delivery_id: Optional[str] = Field(default=None, alias="deliveryId")
    event_type: str = Field(alias="eventType")


class VerificationScheduled(BaseModel):
    """Response for a manually triggered verification."""

    status: str
    project_name: str
    issue_number: int


class PublishResult(BaseModel):
    """Result of posting a verdict to the issue thread."""

    success: bool
    comment_posted: bool = False
    label: Optional[str] = None
    errors: List[str] = []


class LockStatus(BaseModel):
    """Per-issue verification locks currently held."""

    held: List[Tuple[str, int]] = []
    in_flight: List[Tuple[str, int]] = []
