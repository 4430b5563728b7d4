"""
Unit tests for repository to project mapping and identifier validation.
"""

import pytest

from verifier.services.project_mapping import (
    ProjectConfig,
    ProjectMapping,
    ProjectMappingError,
    UnsafeIdentifierError,
    validate_issue_number,
    validate_project_name,
)
from verifier.services.workspace import WorkspaceResolver


class TestDefaultMapping:

    @pytest.mark.parametrize("repository,project", [
        ("consilio", "consilio"),
        ("consilio-planning", "consilio"),
        ("openhorizon.cc", "openhorizon"),
        ("openhorizon-planning", "openhorizon"),
        ("health-agent", "health-agent"),
        ("odin-planning", "odin"),
        ("quiculum-monitor", "quiculum-monitor"),
        ("supervisor-service-planning", "supervisor-service"),
    ])
    def test_resolve(self, repository, project):
        assert ProjectMapping.default().resolve(repository) == project

    @pytest.mark.parametrize("repository", ["unknown", "", None, "Consilio"])
    def test_unmapped(self, repository):
        assert ProjectMapping.default().resolve(repository) is None

    def test_project_names(self):
        assert "odin" in ProjectMapping.default().project_names


class TestYamlMapping:

    def test_load(self, tmp_path):
        path = tmp_path / "projects.yaml"
        path.write_text(
            "projects:\n"
            "  odin:\n"
            "    repositories: [odin, odin-web]\n"
            "    build_command: make build\n"
            "  health-agent:\n"
            "    repositories: [health-agent]\n"
        )

        mapping = ProjectMapping.from_yaml(str(path))

        assert mapping.resolve("odin-web") == "odin"
        assert mapping.get("odin").build_command == "make build"
        assert mapping.get("health-agent").test_command is None

    def test_from_settings_without_path_uses_default(self):
        assert ProjectMapping.from_settings(None).resolve("consilio") == "consilio"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ProjectMappingError):
            ProjectMapping.from_yaml(str(tmp_path / "missing.yaml"))

    def test_missing_projects_key(self, tmp_path):
        path = tmp_path / "projects.yaml"
        path.write_text("repos: []\n")

        with pytest.raises(ProjectMappingError):
            ProjectMapping.from_yaml(str(path))

    def test_unsafe_project_name(self, tmp_path):
        path = tmp_path / "projects.yaml"
        path.write_text("projects:\n  ../etc:\n    repositories: [x]\n")

        with pytest.raises(ProjectMappingError):
            ProjectMapping.from_yaml(str(path))

    def test_invalid_entry_type(self, tmp_path):
        path = tmp_path / "projects.yaml"
        path.write_text("projects:\n  odin:\n    repositories: 12\n")

        with pytest.raises(ProjectMappingError):
            ProjectMapping.from_yaml(str(path))

    def test_repository_mapped_twice(self):
        with pytest.raises(ProjectMappingError):
            ProjectMapping([
                ProjectConfig(name="a", repositories=["shared"]),
                ProjectConfig(name="b", repositories=["shared"]),
            ])


class TestIdentifierValidation:

    @pytest.mark.parametrize("name", ["consilio", "health-agent", "openhorizon.cc", "A1_b"])
    def test_safe_project_names(self, name):
        assert validate_project_name(name) == name

    @pytest.mark.parametrize("name", ["", "..", "../etc", "a/b", "-rf", ".hidden", "a b", "a;b", "a..b"])
    def test_unsafe_project_names(self, name):
        with pytest.raises(UnsafeIdentifierError):
            validate_project_name(name)

    @pytest.mark.parametrize("number", [0, -1, True, "5", 2.0, None])
    def test_unsafe_issue_numbers(self, number):
        with pytest.raises(UnsafeIdentifierError):
            validate_issue_number(number)


class TestWorkspaceResolver:

    def test_project_checkout(self, tmp_path):
        (tmp_path / "odin").mkdir()

        assert WorkspaceResolver(str(tmp_path)).resolve("odin", 4) == str(tmp_path.resolve() / "odin")

    def test_issue_worktree_preferred(self, tmp_path):
        (tmp_path / "odin" / "issue-4").mkdir(parents=True)

        assert WorkspaceResolver(str(tmp_path)).resolve("odin", 4) == str(tmp_path.resolve() / "odin" / "issue-4")

    def test_unsafe_components_rejected(self, tmp_path):
        resolver = WorkspaceResolver(str(tmp_path))

        with pytest.raises(UnsafeIdentifierError):
            resolver.resolve("../outside", 1)
        with pytest.raises(UnsafeIdentifierError):
            resolver.resolve("odin", -1)

    def test_symlink_escape_rejected(self, tmp_path):
        root = tmp_path / "workspaces"
        root.mkdir()
        outside = tmp_path / "outside"
        outside.mkdir()
        (root / "odin").symlink_to(outside)

        with pytest.raises(UnsafeIdentifierError):
            WorkspaceResolver(str(root)).resolve("odin", 1)
