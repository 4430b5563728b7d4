"""
Utility modules for the completion verifier.
"""

from verifier.utils.logging import (
    get_logger,
    setup_logging,
    log_webhook_event,
    log_stage_transition,
    log_api_call,
)
from verifier.utils.metrics import VerificationMetrics, emit_metric
from verifier.utils.resilience import TransientError, retry_with_backoff

__all__ = [
    "get_logger",
    "setup_logging",
    "log_webhook_event",
    "log_stage_transition",
    "log_api_call",
    "VerificationMetrics",
    "emit_metric",
    "TransientError",
    "retry_with_backoff",
]
