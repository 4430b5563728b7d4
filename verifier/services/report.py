"""
Markdown rendering of verification verdicts.

The summary is derived only from the result's status, boolean fields and
captured details, so the text posted to the issue always agrees with the
stored fields.
"""

from typing import List, Optional

from verifier.models.verification import VerificationResult, VerificationStatus

DEFAULT_EXCERPT_CHARS = 500
MAX_LISTED_FILES = 10

COMMENT_HEADER = "## 🤖 Automated Verification Results"
COMMENT_FOOTER = "*Verification triggered by completion-verifier*"

STATUS_LINES = {
    VerificationStatus.PASSED: "✅ All checks passed!",
    VerificationStatus.PARTIAL: "⚠️ Partial success - mocks/placeholders detected",
    VerificationStatus.FAILED: "❌ Verification failed",
    VerificationStatus.ERROR: "⚠️ Verification error",
}

BUILD_PASSED = "✅ Build successful"
BUILD_FAILED = "❌ Build failed"
TESTS_PASSED = "✅ Tests passed"
TESTS_FAILED = "❌ Tests failed"
TESTS_SKIPPED = "⏭️ Tests skipped due to build failure"
MOCKS_NONE = "✅ No mocks or placeholders detected"
MOCKS_FOUND = "⚠️ Found {count} potential mocks/placeholders"

SKIPPED_TEST_MESSAGE = "Skipped due to build failure"


def truncate(text: str, limit: int = DEFAULT_EXCERPT_CHARS) -> str:
    """Cap an excerpt at ``limit`` characters, marking the cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + "\n... (truncated)"


def _code_block(text: Optional[str], limit: int) -> List[str]:
    if not text:
        return []
    return ["```", truncate(text.strip(), limit), "```"]


def render_summary(
    result: VerificationResult,
    excerpt_chars: int = DEFAULT_EXCERPT_CHARS,
    error_message: Optional[str] = None,
) -> str:
    """
    Render the human-readable summary for a result.

    Args:
        result: Result whose fields drive every line of the summary
        excerpt_chars: Character limit for each error excerpt
        error_message: Pipeline error to include for status=error

    Returns:
        Markdown summary
    """
    details = result.details
    lines: List[str] = ["# Verification Summary", "", STATUS_LINES[result.status]]

    if result.status == VerificationStatus.ERROR and error_message:
        lines.extend(["", truncate(error_message, excerpt_chars)])

    lines.extend(["", "## Build", BUILD_PASSED if result.build_success else BUILD_FAILED])
    if not result.build_success:
        lines.extend(_code_block(details.build_error, excerpt_chars))

    lines.extend(["", "## Tests"])
    if result.tests_passed:
        lines.append(TESTS_PASSED)
    elif not result.build_success:
        lines.append(TESTS_SKIPPED)
    else:
        lines.append(TESTS_FAILED)
        lines.extend(_code_block(details.test_error or details.test_output, excerpt_chars))

    lines.extend(["", "## Mock Detection"])
    if result.mocks_detected:
        lines.append(MOCKS_FOUND.format(count=details.mock_count))
        if details.mock_files:
            lines.extend(["", "Files with placeholders:"])
            lines.extend(f"- {path}" for path in details.mock_files[:MAX_LISTED_FILES])
            remaining = len(details.mock_files) - MAX_LISTED_FILES
            if remaining > 0:
                lines.append(f"... and {remaining} more")
    else:
        lines.append(MOCKS_NONE)

    return "\n".join(lines)


def render_comment(result: VerificationResult) -> str:
    """Issue comment body for a stored result."""
    summary = result.details.summary or "Verification completed"
    return f"{COMMENT_HEADER}\n\n{summary}\n\n---\n{COMMENT_FOOTER}"
