"""Discovery of Xcode workspaces and projects within a directory tree.

The walk skips hidden entries and never descends into package bundles, so a
project nested inside another bundle (for example the implicit
``project.xcworkspace`` inside every ``.xcodeproj``) is never reported.
Candidates are ranked by nesting depth first, then workspaces before
projects, then path.
"""

import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .models import ProjectLocator

logger = logging.getLogger(__name__)

WORKSPACE_TYPE_IDENTIFIER = "com.apple.dt.document.workspace"
PROJECT_TYPE_IDENTIFIER = "com.apple.xcode.project"

_TYPE_IDENTIFIERS_BY_EXTENSION = {
    ".xcworkspace": WORKSPACE_TYPE_IDENTIFIER,
    ".xcodeproj": PROJECT_TYPE_IDENTIFIER,
}

# Directory extensions Finder treats as opaque packages
PACKAGE_EXTENSIONS = frozenset(
    {
        ".xcworkspace",
        ".xcodeproj",
        ".framework",
        ".app",
        ".appex",
        ".bundle",
        ".xctest",
        ".playground",
        ".xcassets",
        ".xcdatamodeld",
        ".docc",
        ".kext",
        ".plugin",
        ".dSYM",
    }
)


@dataclass(frozen=True)
class ProjectEnumerationMatch:
    """A candidate locator together with the depth it was found at."""

    locator: ProjectLocator
    level: int

    def sort_key(self) -> tuple[int, ProjectLocator]:
        return (self.level, self.locator)


def type_identifier(path: Path) -> Optional[str]:
    """Return the document type identifier for an entry, if it is an Xcode document.

    Raises:
        OSError: If the entry cannot be inspected
    """
    identifier = _TYPE_IDENTIFIERS_BY_EXTENSION.get(path.suffix)
    if identifier is None:
        return None
    # Xcode documents are always directory bundles
    if not path.is_dir():
        return None
    return identifier


def is_package(entry: os.DirEntry) -> bool:
    """Whether a directory entry is a package bundle whose contents must not be walked."""
    return os.path.splitext(entry.name)[1] in PACKAGE_EXTENSIONS


def match_entry(path: Path, level: int) -> Optional[ProjectEnumerationMatch]:
    """Check whether a workspace or project exists at the given path.

    Args:
        path: Entry to inspect
        level: Directory nesting depth of the entry (1 = direct child of the root)

    Returns:
        A match, or None if the entry is not an Xcode document

    Raises:
        OSError: If the entry cannot be inspected
    """
    identifier = type_identifier(path)
    if identifier == WORKSPACE_TYPE_IDENTIFIER:
        return ProjectEnumerationMatch(ProjectLocator.workspace(path), level)
    if identifier == PROJECT_TYPE_IDENTIFIER:
        return ProjectEnumerationMatch(ProjectLocator.project_file(path), level)
    return None


def _walk(directory: Path, level: int) -> Iterator[tuple[Path, int]]:
    """Yield (path, level) for every non-hidden entry, not entering packages."""
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        logger.debug(f"Skipping unreadable directory {directory}: {e}")
        return

    for entry in entries:
        if entry.name.startswith("."):
            continue

        yield Path(entry.path), level

        try:
            descend = entry.is_dir(follow_symlinks=False) and not is_package(entry)
        except OSError as e:
            logger.debug(f"Skipping entry {entry.path}: {e}")
            continue

        if descend:
            yield from _walk(Path(entry.path), level + 1)


def locate_projects_in_directory(directory: Path) -> Iterator[ProjectLocator]:
    """Locate projects and workspaces within the given directory.

    The whole tree is walked on the first request, then locators are yielded
    in preferential order. Entries that cannot be inspected are skipped.

    Args:
        directory: Root directory to search

    Yields:
        ProjectLocator values, best candidate first
    """
    root = Path(directory).absolute()
    matches: list[ProjectEnumerationMatch] = []

    for path, level in _walk(root, 1):
        try:
            match = match_entry(path, level)
        except OSError as e:
            logger.debug(f"Could not inspect {path}: {e}")
            continue

        if match is not None:
            matches.append(match)

    matches.sort(key=ProjectEnumerationMatch.sort_key)
    logger.debug(f"Found {len(matches)} project(s) in {root}")

    for match in matches:
        yield match.locator
