"""Unit tests for the error hierarchy."""

from pathlib import Path

import pytest

from xcfbuild.errors import (
    BuildInvariantError,
    InvalidArchitecturesError,
    MissingBuildSettingError,
    NoSharedSchemesError,
    ParseError,
    ReadFailedError,
    TaskError,
    WriteFailedError,
    XcfbuildError,
    XcodebuildListTimeoutError,
)
from xcfbuild.xcode.models import ProjectLocator
from xcfbuild.xcode.tasks import TaskDescription

PROJECT = ProjectLocator.workspace(Path("/src/App.xcworkspace"))


class TestMessages:
    """Tests for error descriptions."""

    @pytest.mark.parametrize(
        "error,message",
        [
            (ReadFailedError(Path("/a")), "Failed to read file or folder at /a"),
            (ReadFailedError(Path("/a"), "Permission denied"), "Failed to read file or folder at /a: Permission denied"),
            (WriteFailedError(Path("/b")), "Failed to write to /b"),
            (ParseError("bad line"), "Parse error: bad line"),
            (MissingBuildSettingError("WRAPPER_NAME"), "xcodebuild did not return a value for build setting WRAPPER_NAME"),
            (NoSharedSchemesError(PROJECT), "Project App.xcworkspace has no shared schemes"),
            (XcodebuildListTimeoutError(PROJECT, 8.0), "Failed to discover shared schemes in project App.xcworkspace within 8s"),
            (InvalidArchitecturesError("x"), "Invalid architecture: x"),
        ],
    )
    def test_message(self, error: XcfbuildError, message: str) -> None:
        assert str(error) == message
        assert isinstance(error, XcfbuildError)

    def test_task_error_includes_stderr(self) -> None:
        error = TaskError(TaskDescription("/usr/bin/xcrun", ("xcodebuild", "build")), 65, "** BUILD FAILED **\n")
        assert str(error) == "Task failed with exit code 65: /usr/bin/xcrun xcodebuild build\n** BUILD FAILED **"

    def test_task_error_without_stderr(self) -> None:
        error = TaskError(TaskDescription("/usr/bin/xcrun", ("lipo",)), 1, "  \n")
        assert str(error) == "Task failed with exit code 1: /usr/bin/xcrun lipo"


class TestSuggestions:
    """Tests for appending advice to an error."""

    def test_suggestions_follow_blank_line(self) -> None:
        error = NoSharedSchemesError(PROJECT)
        error.add_suggestion("Share a scheme in Xcode.")
        error.add_suggestion("Or file an issue.")
        assert str(error) == "Project App.xcworkspace has no shared schemes\n\nShare a scheme in Xcode.\n\nOr file an issue."
        assert error.message == "Project App.xcworkspace has no shared schemes"

    def test_suggestion_keeps_error_kind(self) -> None:
        error = XcodebuildListTimeoutError(PROJECT, 8.0)
        error.add_suggestion("advice")
        with pytest.raises(XcodebuildListTimeoutError):
            raise error


def test_invariant_error_is_not_recoverable():
    """Broken invariants are not part of the recoverable hierarchy."""
    assert not issubclass(BuildInvariantError, XcfbuildError)
    assert issubclass(BuildInvariantError, RuntimeError)
