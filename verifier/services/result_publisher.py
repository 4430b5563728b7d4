"""
Result Publisher component.

Posts a verification verdict to the originating GitHub issue: one comment
with the rendered summary, then one status label. Results with status=error
get the comment only.

Delivery failures are logged and reported in the returned PublishResult;
they never raise, and never touch the stored event or result.
"""

from typing import Dict, Optional, Tuple

from verifier.models.api_response import PublishResult
from verifier.models.verification import VerificationResult, VerificationStatus
from verifier.services.github_client import GitHubClient
from verifier.services.report import render_comment
from verifier.utils.logging import get_logger

logger = get_logger(__name__)


STATUS_LABELS: Dict[VerificationStatus, str] = {
    VerificationStatus.PASSED: "verification-passed",
    VerificationStatus.PARTIAL: "verification-partial",
    VerificationStatus.FAILED: "verification-failed",
}


def label_for(status: VerificationStatus) -> Optional[str]:
    """Status label for a verdict; None for error."""
    return STATUS_LABELS.get(status)


def parse_repository(full_name: Optional[str]) -> Optional[Tuple[str, str]]:
    """Split 'owner/repo' into its parts, or None if malformed."""
    if not full_name:
        return None
    owner, sep, repo = full_name.partition("/")
    if not sep or not owner or not repo or "/" in repo:
        return None
    return owner, repo


class ResultPublisher:
    """Publishes verdicts to GitHub issue threads."""

    def __init__(self, github_client: GitHubClient):
        self.github = github_client

    async def publish(self, result: VerificationResult, repository: Optional[str]) -> PublishResult:
        """
        Post the verdict comment and status label.

        Args:
            result: Stored verification result
            repository: 'owner/repo' of the originating repository

        Returns:
            PublishResult describing what was delivered
        """
        publish_logger = logger.with_context(
            project_name=result.project_name, issue_number=result.issue_number
        )

        repo_info = parse_repository(repository)
        if not repo_info:
            publish_logger.warning(
                f"Cannot publish result {result.id}: unknown repository {repository!r}"
            )
            return PublishResult(success=False, errors=[f"Unknown repository: {repository!r}"])

        owner, repo = repo_info

        try:
            await self.github.create_comment(owner, repo, result.issue_number, render_comment(result))
        except Exception as e:
            publish_logger.error(
                f"Failed to post verification comment to {owner}/{repo}#{result.issue_number}: {e}",
                exc_info=True,
            )
            return PublishResult(success=False, errors=[f"comment: {e}"])

        publish_logger.info(f"Posted verification results to {owner}/{repo}#{result.issue_number}")

        label = label_for(result.status)
        if label is None:
            return PublishResult(success=True, comment_posted=True)

        try:
            await self.github.add_labels(owner, repo, result.issue_number, [label])
        except Exception as e:
            publish_logger.error(
                f"Failed to add label {label} to {owner}/{repo}#{result.issue_number}: {e}",
                exc_info=True,
            )
            return PublishResult(success=False, comment_posted=True, errors=[f"label: {e}"])

        return PublishResult(success=True, comment_posted=True, label=label)
