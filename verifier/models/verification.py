"""Verification data models."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class VerificationStatus(str, Enum):
    """Verdict of a verification run."""

    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"
    ERROR = "error"


class CommandResult(BaseModel):
    """Outcome of a single command execution."""

    stdout: str = ""
    stderr: str = ""
    exit_code: Optional[int] = None
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return not self.timed_out and self.exit_code == 0


class ScanResult(BaseModel):
    """Placeholder markers found in a source tree."""

    files: List[str] = []
    count: int = 0

    @property
    def found(self) -> bool:
        return self.count > 0


class VerificationDetails(BaseModel):
    """Captured stage output and the rendered summary."""

    model_config = ConfigDict(frozen=True)

    build_output: Optional[str] = None
    build_error: Optional[str] = None
    test_output: Optional[str] = None
    test_error: Optional[str] = None
    mock_files: List[str] = []
    mock_count: int = 0
    summary: Optional[str] = None


class VerificationResult(BaseModel):
    """Verdict for one work item. Rows are insert-only."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    project_name: str
    issue_number: int
    status: VerificationStatus
    build_success: bool = False
    tests_passed: bool = False
    mocks_detected: bool = False
    details: VerificationDetails = VerificationDetails()
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc).replace(tzinfo=None)
    )
