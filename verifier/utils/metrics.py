"""
Metrics collection and emission for observability.

This module tracks, per verification run:
- Overall execution time
- Duration of each stage (build, test, scan)
- Final verdict

Metrics are emitted through the structured log stream.
"""

import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

from verifier.utils.logging import get_logger

logger = get_logger(__name__)


class VerificationMetrics:
    """
    Collects metrics during a single verification run.

    Tracks:
    - Execution start/end time
    - Stage durations in milliseconds
    - Final status and error message
    """

    def __init__(self, project_name: str, issue_number: int):
        self.project_name = project_name
        self.issue_number = issue_number

        self.start_time: Optional[datetime] = None
        self.end_time: Optional[datetime] = None
        self.duration_ms: Optional[int] = None

        self.stage_durations_ms: Dict[str, float] = {}

        self.status: str = "running"
        self.error_message: Optional[str] = None

    def start(self) -> None:
        """Mark verification start."""
        self.start_time = datetime.now(timezone.utc)
        self.status = "running"

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        """
        Time a stage.

        Usage:
            with metrics.stage("build"):
                await run_build()
        """
        started = time.monotonic()
        try:
            yield
        finally:
            self.stage_durations_ms[name] = round((time.monotonic() - started) * 1000, 2)

    def complete(self, status: str, error_message: Optional[str] = None) -> None:
        """
        Mark verification completion and emit the summary.

        Args:
            status: Final verdict ('passed', 'failed', 'partial', 'error')
            error_message: Error message if the run raised
        """
        self.end_time = datetime.now(timezone.utc)
        self.status = status
        self.error_message = error_message

        if self.start_time:
            duration = (self.end_time - self.start_time).total_seconds()
            self.duration_ms = int(duration * 1000)

        logger.info(
            f"Verification metrics for {self.project_name} #{self.issue_number}",
            extra=self.get_metrics_summary(),
        )
        if self.duration_ms is not None:
            emit_metric(
                "verification.duration_ms",
                self.duration_ms,
                project_name=self.project_name,
                status=status,
            )

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Get summary of collected metrics."""
        summary: Dict[str, Any] = {
            "project_name": self.project_name,
            "issue_number": self.issue_number,
            "status": self.status,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_ms": self.duration_ms,
            "stage_durations_ms": dict(self.stage_durations_ms),
        }

        if self.error_message:
            summary["error_message"] = self.error_message

        return summary


def emit_metric(metric_name: str, value: float, **tags: Any) -> None:
    """
    Emit a metric.

    Metrics are written to the log stream; a log shipper forwards them to
    whatever monitoring backend the deployment uses.

    Args:
        metric_name: Metric name
        value: Metric value
        **tags: Metric tags/labels
    """
    logger.info(
        f"Metric: {metric_name}",
        extra={
            "metric_name": metric_name,
            "metric_value": value,
            "metric_tags": tags,
        },
    )
