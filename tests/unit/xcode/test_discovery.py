"""Unit tests for workspace and project discovery."""

from pathlib import Path

from fake_xcode import make_project, write_file

from xcfbuild.xcode.discovery import (
    PROJECT_TYPE_IDENTIFIER,
    WORKSPACE_TYPE_IDENTIFIER,
    locate_projects_in_directory,
    match_entry,
    type_identifier,
)
from xcfbuild.xcode.models import ProjectLocator


class TestTypeIdentifier:
    """Tests for document type detection."""

    def test_workspace(self, tmp_path: Path) -> None:
        assert type_identifier(make_project(tmp_path, workspace=True)) == WORKSPACE_TYPE_IDENTIFIER

    def test_project(self, tmp_path: Path) -> None:
        assert type_identifier(make_project(tmp_path)) == PROJECT_TYPE_IDENTIFIER

    def test_plain_file_with_project_extension(self, tmp_path: Path) -> None:
        """Xcode documents are bundles; a regular file is not one."""
        assert type_identifier(write_file(tmp_path / "Fake.xcodeproj")) is None

    def test_other_directory(self, tmp_path: Path) -> None:
        directory = tmp_path / "Sources"
        directory.mkdir()
        assert type_identifier(directory) is None

    def test_match_entry_records_level(self, tmp_path: Path) -> None:
        match = match_entry(make_project(tmp_path), 3)
        assert match is not None
        assert match.level == 3
        assert match.locator == ProjectLocator.project_file(tmp_path / "App.xcodeproj")


class TestLocateProjects:
    """Tests for the ranked directory walk."""

    def test_empty_directory(self, tmp_path: Path) -> None:
        assert list(locate_projects_in_directory(tmp_path)) == []

    def test_ranking_by_depth_kind_and_path(self, tmp_path: Path) -> None:
        """Shallower first, then workspaces before projects, then by path."""
        make_project(tmp_path / "nested" / "deeper", "Deep", workspace=True)
        make_project(tmp_path / "nested", "Nested")
        make_project(tmp_path, "Zeta")
        make_project(tmp_path, "Alpha")
        make_project(tmp_path, "Work", workspace=True)

        found = list(locate_projects_in_directory(tmp_path))

        assert found == [
            ProjectLocator.workspace(tmp_path / "Work.xcworkspace"),
            ProjectLocator.project_file(tmp_path / "Alpha.xcodeproj"),
            ProjectLocator.project_file(tmp_path / "Zeta.xcodeproj"),
            ProjectLocator.project_file(tmp_path / "nested" / "Nested.xcodeproj"),
            ProjectLocator.workspace(tmp_path / "nested" / "deeper" / "Deep.xcworkspace"),
        ]

    def test_no_duplicates(self, tmp_path: Path) -> None:
        make_project(tmp_path, "App")
        make_project(tmp_path / "sub", "Other")
        found = list(locate_projects_in_directory(tmp_path))
        assert len(found) == len(set(found)) == 2

    def test_package_contents_are_not_walked(self, tmp_path: Path) -> None:
        """The implicit workspace inside every project is never reported."""
        project = make_project(tmp_path, "App")
        make_project(project, "project", workspace=True)
        make_project(tmp_path / "Vendor.framework", "Inner")

        assert list(locate_projects_in_directory(tmp_path)) == [ProjectLocator.project_file(project)]

    def test_hidden_entries_are_skipped(self, tmp_path: Path) -> None:
        make_project(tmp_path / ".git", "Hidden")
        make_project(tmp_path, ".Secret")
        make_project(tmp_path, "Visible")

        assert list(locate_projects_in_directory(tmp_path)) == [ProjectLocator.project_file(tmp_path / "Visible.xcodeproj")]

    def test_locators_are_absolute(self, tmp_path: Path, monkeypatch) -> None:
        make_project(tmp_path, "App")
        monkeypatch.chdir(tmp_path)

        found = list(locate_projects_in_directory(Path(".")))

        assert len(found) == 1
        assert found[0].path.is_absolute()

    def test_repeated_walks_are_identical(self, tmp_path: Path) -> None:
        for name in ("B", "A", "C"):
            make_project(tmp_path / name.lower(), name)
        make_project(tmp_path, "Root", workspace=True)

        assert list(locate_projects_in_directory(tmp_path)) == list(locate_projects_in_directory(tmp_path))

    def test_abandoned_walk_can_be_closed(self, tmp_path: Path) -> None:
        make_project(tmp_path, "A")
        make_project(tmp_path, "B")

        walk = locate_projects_in_directory(tmp_path)
        first = next(walk)
        walk.close()

        assert first == ProjectLocator.project_file(tmp_path / "A.xcodeproj")
