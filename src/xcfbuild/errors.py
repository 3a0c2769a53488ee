"""Exception hierarchy for xcfbuild.

Every recoverable failure raised by the build engine derives from
XcfbuildError. Filesystem failures wrap the underlying OSError (available as
``__cause__``), and text-parsing failures describe what was expected.

BuildInvariantError sits outside the hierarchy: it signals that an external
tool or the data model broke an assumption the pipeline cannot recover from.
"""

from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .xcode.models import ProjectLocator
    from .xcode.tasks import TaskDescription


class XcfbuildError(Exception):
    """Base class for all recoverable xcfbuild failures.

    Attributes:
        message: Human-readable description of the failure
        suggestions: Extra advice appended to the message
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.suggestions: list[str] = []

    def add_suggestion(self, suggestion: str) -> None:
        """Append advice to the error message without changing the error kind."""
        self.suggestions.append(suggestion)

    def __str__(self) -> str:
        if not self.suggestions:
            return self.message
        return "\n\n".join([self.message, *self.suggestions])


class ReadFailedError(XcfbuildError):
    """Raised when a file or directory could not be read."""

    def __init__(self, path: Path, reason: Optional[str] = None):
        message = f"Failed to read file or folder at {path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.path = path


class WriteFailedError(XcfbuildError):
    """Raised when a file or directory could not be written."""

    def __init__(self, path: Path, reason: Optional[str] = None):
        message = f"Failed to write to {path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.path = path


class ParseError(XcfbuildError):
    """Raised when tool output does not match the expected grammar."""

    def __init__(self, description: str):
        super().__init__(f"Parse error: {description}")
        self.description = description


class MissingBuildSettingError(XcfbuildError):
    """Raised when a required build setting is absent from a settings block."""

    def __init__(self, key: str):
        super().__init__(f"xcodebuild did not return a value for build setting {key}")
        self.key = key


class NoSharedSchemesError(XcfbuildError):
    """Raised when xcodebuild reports that a project has no shared schemes."""

    def __init__(self, project: "ProjectLocator"):
        super().__init__(f"Project {project} has no shared schemes")
        self.project = project


class XcodebuildListTimeoutError(XcfbuildError):
    """Raised when `xcodebuild -list` does not finish before its deadline."""

    def __init__(self, project: "ProjectLocator", timeout: float):
        super().__init__(f"Failed to discover shared schemes in project {project} within {timeout:g}s")
        self.project = project
        self.timeout = timeout


class InvalidArchitecturesError(XcfbuildError):
    """Raised when the architectures of a binary could not be determined."""

    def __init__(self, description: str):
        super().__init__(f"Invalid architecture: {description}")
        self.description = description


class TaskError(XcfbuildError):
    """Raised when an external tool exits with a non-zero status.

    Attributes:
        task: The invocation that failed
        exit_code: Process exit status
        stderr: Decoded standard error output
    """

    def __init__(self, task: "TaskDescription", exit_code: int, stderr: str = ""):
        message = f"Task failed with exit code {exit_code}: {task}"
        if stderr.strip():
            message += f"\n{stderr.strip()}"
        super().__init__(message)
        self.task = task
        self.exit_code = exit_code
        self.stderr = stderr


class BuildInvariantError(RuntimeError):
    """Raised when the pipeline detects a broken invariant and must stop.

    Examples are two SDK builds of one scheme producing different target sets,
    or a platform declaring an SDK count the merge step does not support.
    """

    pass
