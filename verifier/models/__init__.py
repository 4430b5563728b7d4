"""Data models for the completion verifier."""

from .api_response import LockStatus, PublishResult, VerificationScheduled, WebhookAccepted
from .verification import (
    CommandResult,
    ScanResult,
    VerificationDetails,
    VerificationResult,
    VerificationStatus,
)
from .webhook_event import IngestResult, WebhookEvent

__all__ = [
    # Webhook event models
    "WebhookEvent",
    "IngestResult",
    # Verification models
    "VerificationStatus",
    "CommandResult",
    "ScanResult",
    "VerificationDetails",
    "VerificationResult",
    # API response models
    "WebhookAccepted",
    "VerificationScheduled",
    "PublishResult",
    "LockStatus",
]
