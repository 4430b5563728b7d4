"""
Repository to project mapping.

Resolves the repository name carried by a webhook payload to the internal
project it belongs to, and carries optional per-project build/test command
overrides. The table is either the built-in default or loaded from a YAML
file:

    projects:
      consilio:
        repositories: [consilio, consilio-planning]
        build_command: npm run build
        test_command: npm test
"""

import logging
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import yaml
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)


SAFE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

DEFAULT_PROJECT_REPOSITORIES: Dict[str, List[str]] = {
    "consilio": ["consilio", "consilio-planning"],
    "openhorizon": ["openhorizon.cc", "openhorizon-planning"],
    "health-agent": ["health-agent", "health-agent-planning"],
    "odin": ["odin", "odin-planning"],
    "quiculum-monitor": ["quiculum-monitor", "quiculum-monitor-planning"],
    "supervisor-service": ["supervisor-service", "supervisor-service-planning"],
}


class ProjectMappingError(Exception):
    """Raised when the project mapping table is invalid."""
    pass


class UnsafeIdentifierError(ValueError):
    """Raised when a project name or issue number cannot be used in a path or argument."""
    pass


def validate_project_name(name: str) -> str:
    """
    Validate a project name for use as a path component.

    Raises:
        UnsafeIdentifierError: If the name contains separators, starts with a
            dot or dash, or is otherwise unsafe
    """
    if not isinstance(name, str) or ".." in name or not SAFE_NAME_PATTERN.match(name):
        raise UnsafeIdentifierError(f"Unsafe project name: {name!r}")
    return name


def validate_issue_number(issue_number: int) -> int:
    """
    Validate an issue number for use as a path component.

    Raises:
        UnsafeIdentifierError: If the value is not a positive integer
    """
    if isinstance(issue_number, bool) or not isinstance(issue_number, int) or issue_number <= 0:
        raise UnsafeIdentifierError(f"Unsafe issue number: {issue_number!r}")
    return issue_number


class ProjectConfig(BaseModel):
    """Per-project settings from the mapping table."""

    name: str
    repositories: List[str] = []
    build_command: Optional[str] = None
    test_command: Optional[str] = None


class ProjectMapping:
    """Static, configurable repository→project lookup table."""

    def __init__(self, projects: Iterable[ProjectConfig]):
        self._projects: Dict[str, ProjectConfig] = {}
        self._repo_to_project: Dict[str, str] = {}

        for project in projects:
            try:
                validate_project_name(project.name)
            except UnsafeIdentifierError as e:
                raise ProjectMappingError(str(e)) from e

            self._projects[project.name] = project
            for repo in project.repositories:
                existing = self._repo_to_project.get(repo)
                if existing and existing != project.name:
                    raise ProjectMappingError(
                        f"Repository {repo!r} mapped to both {existing!r} and {project.name!r}"
                    )
                self._repo_to_project[repo] = project.name

    @classmethod
    def default(cls) -> "ProjectMapping":
        """Built-in mapping table."""
        return cls(
            ProjectConfig(name=name, repositories=repos)
            for name, repos in DEFAULT_PROJECT_REPOSITORIES.items()
        )

    @classmethod
    def from_yaml(cls, path: str) -> "ProjectMapping":
        """
        Load the mapping table from a YAML file.

        Args:
            path: Path to the YAML file

        Returns:
            ProjectMapping instance

        Raises:
            ProjectMappingError: If the file is missing or malformed
        """
        try:
            with open(Path(path), "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ProjectMappingError(f"Failed to load project map {path}: {e}") from e

        projects = data.get("projects") if isinstance(data, dict) else None
        if not isinstance(projects, dict):
            raise ProjectMappingError(f"Project map {path} must contain a 'projects' mapping")

        configs = []
        for name, entry in projects.items():
            entry = entry or {}
            if not isinstance(entry, dict):
                raise ProjectMappingError(f"Project {name!r} entry must be a mapping")
            try:
                configs.append(ProjectConfig(**{**entry, "name": str(name)}))
            except ValidationError as e:
                raise ProjectMappingError(f"Invalid entry for project {name!r}: {e}") from e

        logger.info(f"Loaded {len(configs)} projects from {path}")
        return cls(configs)

    @classmethod
    def from_settings(cls, project_map_path: Optional[str]) -> "ProjectMapping":
        if project_map_path:
            return cls.from_yaml(project_map_path)
        return cls.default()

    def resolve(self, repository_name: Optional[str]) -> Optional[str]:
        """Project name for a repository, or None when unmapped."""
        if not repository_name:
            return None
        return self._repo_to_project.get(repository_name)

    def get(self, project_name: str) -> Optional[ProjectConfig]:
        return self._projects.get(project_name)

    @property
    def project_names(self) -> List[str]:
        return sorted(self._projects)
