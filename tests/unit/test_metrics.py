"""
Unit tests for metrics collection utilities.
"""

import pytest
from datetime import datetime
from unittest.mock import patch

from verifier.utils.metrics import VerificationMetrics, emit_metric


def test_metrics_initialization():
    """Test metrics initialization."""
    metrics = VerificationMetrics(project_name="odin", issue_number=7)

    assert metrics.project_name == "odin"
    assert metrics.issue_number == 7
    assert metrics.status == "running"
    assert metrics.stage_durations_ms == {}


def test_metrics_start():
    """Test starting metrics collection."""
    metrics = VerificationMetrics("odin", 7)

    metrics.start()

    assert isinstance(metrics.start_time, datetime)
    assert metrics.status == "running"


def test_stage_timing():
    metrics = VerificationMetrics("odin", 7)

    with metrics.stage("build"):
        pass

    assert "build" in metrics.stage_durations_ms
    assert metrics.stage_durations_ms["build"] >= 0


def test_stage_timing_recorded_on_error():
    metrics = VerificationMetrics("odin", 7)

    with pytest.raises(RuntimeError):
        with metrics.stage("test"):
            raise RuntimeError("boom")

    assert "test" in metrics.stage_durations_ms


def test_metrics_complete():
    """Test completing metrics collection."""
    metrics = VerificationMetrics("odin", 7)

    metrics.start()
    with patch("verifier.utils.metrics.emit_metric") as emit:
        metrics.complete(status="passed")

    assert metrics.end_time is not None
    assert metrics.status == "passed"
    assert metrics.duration_ms >= 0
    emit.assert_called_once_with(
        "verification.duration_ms", metrics.duration_ms, project_name="odin", status="passed"
    )


def test_metrics_complete_with_error():
    """Test completing metrics collection with error."""
    metrics = VerificationMetrics("odin", 7)

    metrics.start()
    metrics.complete(status="error", error_message="Workspace missing")

    summary = metrics.get_metrics_summary()
    assert summary["status"] == "error"
    assert summary["error_message"] == "Workspace missing"


def test_complete_without_start_skips_duration():
    metrics = VerificationMetrics("odin", 7)

    with patch("verifier.utils.metrics.emit_metric") as emit:
        metrics.complete(status="failed")

    assert metrics.duration_ms is None
    emit.assert_not_called()


def test_emit_metric():
    """Test metric emission goes to the log stream."""
    with patch("verifier.utils.metrics.logger") as logger:
        emit_metric("verification.duration_ms", 1234, project_name="odin")

    _, kwargs = logger.info.call_args
    assert kwargs["extra"]["metric_name"] == "verification.duration_ms"
    assert kwargs["extra"]["metric_value"] == 1234
    assert kwargs["extra"]["metric_tags"] == {"project_name": "odin"}
