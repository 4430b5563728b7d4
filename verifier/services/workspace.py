"""Workspace path resolution for verification runs."""

from pathlib import Path

from verifier.services.project_mapping import (
    UnsafeIdentifierError,
    validate_issue_number,
    validate_project_name,
)


class WorkspaceResolver:
    """
    Maps a work item to the directory its build runs in.

    Prefers a per-issue worktree at ``<root>/<project>/issue-<n>`` and falls
    back to the project checkout at ``<root>/<project>``.
    """

    def __init__(self, workspaces_root: str):
        self.root = Path(workspaces_root).resolve()

    def resolve(self, project_name: str, issue_number: int) -> str:
        """
        Resolve the workspace path.

        Raises:
            UnsafeIdentifierError: If either component is unsafe or the
                resulting path would leave the workspaces root
        """
        validate_project_name(project_name)
        validate_issue_number(issue_number)

        project_dir = (self.root / project_name).resolve()
        if not project_dir.is_relative_to(self.root):
            raise UnsafeIdentifierError(f"Workspace for {project_name!r} escapes {self.root}")

        worktree = project_dir / f"issue-{issue_number}"
        if worktree.is_dir():
            return str(worktree)
        return str(project_dir)
