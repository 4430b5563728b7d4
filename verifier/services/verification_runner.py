"""
Verification Runner component.

Runs the three verification stages against a workspace and stores exactly
one VerificationResult per invocation:

1. build  - project build command, hard timeout
2. test   - only when the build succeeded, hard timeout
3. scan   - placeholder markers in the source tree, always runs

Any unexpected exception is captured into the result as status=error rather
than raised; only a failure to store the result propagates.
"""

import shlex
from pathlib import Path
from typing import Optional, Sequence, Tuple

from verifier.models.verification import (
    CommandResult,
    ScanResult,
    VerificationDetails,
    VerificationResult,
    VerificationStatus,
)
from verifier.services.executor import CommandExecutor
from verifier.services.project_mapping import (
    ProjectMapping,
    validate_issue_number,
    validate_project_name,
)
from verifier.services.report import (
    DEFAULT_EXCERPT_CHARS,
    SKIPPED_TEST_MESSAGE,
    render_summary,
)
from verifier.services.result_store import VerificationResultStore
from verifier.services.scanner import DEFAULT_EXCLUDE_GLOBS, DEFAULT_MARKERS, SourceScanner
from verifier.utils.logging import get_logger, log_stage_transition
from verifier.utils.metrics import VerificationMetrics

logger = get_logger(__name__)


def derive_status(build_success: bool, tests_passed: bool, mocks_detected: bool) -> VerificationStatus:
    """
    Verdict table for a run that completed without an internal error.

    | build | tests | mocks | status  |
    |-------|-------|-------|---------|
    | True  | True  | False | passed  |
    | True  | True  | True  | partial |
    | any other combination | failed  |
    """
    if build_success and tests_passed:
        return VerificationStatus.PARTIAL if mocks_detected else VerificationStatus.PASSED
    return VerificationStatus.FAILED


def split_command(command: str) -> Tuple[str, list]:
    """Split a configured command line into executable and argument list."""
    parts = shlex.split(command)
    if not parts:
        raise ValueError("Empty command")
    return parts[0], parts[1:]


def _stage_output(result: CommandResult) -> Tuple[str, Optional[str]]:
    """(output, error) captured for a stage."""
    if result.success:
        output = result.stdout
        if result.stderr:
            output += "\nStderr:\n" + result.stderr
        return output, None

    if result.timed_out:
        return result.stdout, result.stderr or "Command timed out"

    error = result.stderr.strip() or f"Command exited with code {result.exit_code}"
    return result.stdout, error


class VerificationRunner:
    """Runs build, test and placeholder checks and records the verdict."""

    def __init__(
        self,
        result_store: VerificationResultStore,
        executor: CommandExecutor,
        scanner: SourceScanner,
        project_mapping: Optional[ProjectMapping] = None,
        build_command: str = "npm run build",
        test_command: str = "npm test",
        build_timeout: float = 120.0,
        test_timeout: float = 300.0,
        scan_root: str = "src",
        markers: Sequence[str] = DEFAULT_MARKERS,
        exclude_globs: Sequence[str] = DEFAULT_EXCLUDE_GLOBS,
        excerpt_chars: int = DEFAULT_EXCERPT_CHARS,
    ):
        self.result_store = result_store
        self.executor = executor
        self.scanner = scanner
        self.project_mapping = project_mapping
        self.build_command = build_command
        self.test_command = test_command
        self.build_timeout = build_timeout
        self.test_timeout = test_timeout
        self.scan_root = scan_root
        self.markers = list(markers)
        self.exclude_globs = list(exclude_globs)
        self.excerpt_chars = excerpt_chars

    def _commands_for(self, project_name: str) -> Tuple[str, str]:
        build_command, test_command = self.build_command, self.test_command
        project = self.project_mapping.get(project_name) if self.project_mapping else None
        if project:
            build_command = project.build_command or build_command
            test_command = project.test_command or test_command
        return build_command, test_command

    async def _run_command(self, command_line: str, workspace: str, timeout: float) -> CommandResult:
        command, args = split_command(command_line)
        return await self.executor.run(command, args, workspace, timeout)

    async def run(self, project_name: str, issue_number: int, workspace: str) -> VerificationResult:
        """
        Verify a work item.

        Args:
            project_name: Internal project name
            issue_number: Issue the work was done for
            workspace: Path to the checked-out workspace

        Returns:
            The stored VerificationResult
        """
        validate_project_name(project_name)
        validate_issue_number(issue_number)

        run_logger = logger.with_context(project_name=project_name, issue_number=issue_number)
        run_logger.info(f"Starting verification for {project_name} #{issue_number} in {workspace}")

        metrics = VerificationMetrics(project_name, issue_number)
        metrics.start()

        build_success = False
        tests_passed = False
        scan = ScanResult()
        details = {}
        error_message: Optional[str] = None

        try:
            if not Path(workspace).is_dir():
                raise FileNotFoundError(f"Workspace {workspace} does not exist")

            build_command, test_command = self._commands_for(project_name)

            # 1. Build
            log_stage_transition(run_logger, project_name, issue_number, "build", "started")
            with metrics.stage("build"):
                build = await self._run_command(build_command, workspace, self.build_timeout)
            build_success = build.success
            details["build_output"], details["build_error"] = _stage_output(build)
            log_stage_transition(
                run_logger, project_name, issue_number, "build", "passed" if build_success else "failed"
            )

            # 2. Tests, gated on the build
            if build_success:
                log_stage_transition(run_logger, project_name, issue_number, "test", "started")
                with metrics.stage("test"):
                    tests = await self._run_command(test_command, workspace, self.test_timeout)
                tests_passed = tests.success
                details["test_output"], details["test_error"] = _stage_output(tests)
                log_stage_transition(
                    run_logger, project_name, issue_number, "test", "passed" if tests_passed else "failed"
                )
            else:
                details["test_output"] = ""
                details["test_error"] = SKIPPED_TEST_MESSAGE
                log_stage_transition(run_logger, project_name, issue_number, "test", "skipped")

            # 3. Placeholder scan, independent of build/test outcome
            log_stage_transition(run_logger, project_name, issue_number, "scan", "started")
            with metrics.stage("scan"):
                scan = await self.scanner.scan(
                    str(Path(workspace) / self.scan_root),
                    self.markers,
                    self.exclude_globs,
                    base_path=workspace,
                )
            log_stage_transition(
                run_logger, project_name, issue_number, "scan", "failed" if scan.found else "passed"
            )

            status = derive_status(build_success, tests_passed, scan.found)

        except Exception as e:
            run_logger.error(f"Verification error for {project_name} #{issue_number}: {e}", exc_info=True)
            status = VerificationStatus.ERROR
            error_message = str(e) or type(e).__name__

        result = VerificationResult(
            project_name=project_name,
            issue_number=issue_number,
            status=status,
            build_success=build_success,
            tests_passed=tests_passed,
            mocks_detected=scan.found,
            details=VerificationDetails(
                **details,
                mock_files=scan.files,
                mock_count=scan.count,
            ),
        )
        summary = render_summary(result, self.excerpt_chars, error_message=error_message)
        result = result.model_copy(
            update={"details": result.details.model_copy(update={"summary": summary})}
        )

        metrics.complete(status.value, error_message=error_message)

        await self.result_store.insert(result)
        run_logger.info(f"Verification complete for {project_name} #{issue_number}: {status.value}")
        return result
