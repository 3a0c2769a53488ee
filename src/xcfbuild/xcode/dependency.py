"""Identifiers for dependency checkouts and the shared build folder link.

Every dependency is checked out under ``Carthage/Checkouts/<name>`` of the
root project. Before a dependency is built, its own ``Carthage/Build`` folder
is replaced by a relative symlink to the root project's ``Carthage/Build``,
so nested builds see the products built so far and drop theirs alongside.
"""

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Union
from urllib.parse import urlparse

from ..config import CARTHAGE_BINARIES_FOLDER_PATH, CARTHAGE_CHECKOUTS_FOLDER_PATH
from ..errors import ParseError, WriteFailedError
from ..output import log_warning

logger = logging.getLogger(__name__)


def _strip_git_suffix(name: str) -> str:
    name = name.rstrip("/")
    if name.endswith(".git"):
        name = name[:-4]
    return name


@dataclass(frozen=True)
class GitHubRepository:
    """A dependency hosted on GitHub.

    Attributes:
        owner: User or organization owning the repository
        name: Repository name
    """

    owner: str
    name: str

    @classmethod
    def from_url(cls, url: str) -> "GitHubRepository":
        """Parse a repository from a GitHub URL such as https://github.com/owner/repo.git.

        Raises:
            ParseError: If the URL does not name a GitHub repository
        """
        parsed = urlparse(_strip_git_suffix(url))
        if parsed.netloc != "github.com":
            raise ParseError(f"not a GitHub URL: {url}")

        path_parts = [p for p in parsed.path.split("/") if p]
        if len(path_parts) < 2:
            raise ParseError(f"invalid GitHub repository URL: {url}")
        return cls(path_parts[0], path_parts[1])

    @property
    def url(self) -> str:
        return f"https://github.com/{self.owner}/{self.name}"

    @property
    def new_issue_url(self) -> str:
        """Where users can file an issue with the repository's maintainers."""
        return f"{self.url}/issues/new"

    @property
    def relative_path(self) -> str:
        """Checkout location relative to the root project."""
        return str(PurePosixPath(CARTHAGE_CHECKOUTS_FOLDER_PATH) / self.name)

    def __str__(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True)
class GitRepository:
    """A dependency cloned from an arbitrary Git URL."""

    url: str

    @property
    def name(self) -> str:
        """Repository name: the last path component of the URL, without ``.git``."""
        stripped = _strip_git_suffix(self.url)
        path = urlparse(stripped).path or stripped
        # scp-like URLs (git@host:owner/repo) have no parseable path
        return path.replace(":", "/").rstrip("/").rsplit("/", 1)[-1]

    @property
    def relative_path(self) -> str:
        """Checkout location relative to the root project."""
        return str(PurePosixPath(CARTHAGE_CHECKOUTS_FOLDER_PATH) / self.name)

    def __str__(self) -> str:
        return self.url


ProjectIdentifier = Union[GitHubRepository, GitRepository]


def build_folder_link_target(dependency: ProjectIdentifier) -> str:
    """Relative path from a dependency's ``Carthage`` folder to the root ``Carthage/Build``.

    For ``Carthage/Checkouts/ReactiveCocoa`` this is ``../../../../Carthage/Build``.
    """
    dependency_binaries = PurePosixPath(dependency.relative_path) / CARTHAGE_BINARIES_FOLDER_PATH
    ups = [".."] * (len(dependency_binaries.parts) - 1)
    return str(PurePosixPath(*ups, CARTHAGE_BINARIES_FOLDER_PATH))


def symlink_build_folder(dependency: ProjectIdentifier, root_directory: Path) -> Path:
    """Link a dependency's ``Carthage/Build`` folder to the root project's.

    Creates the root ``Carthage/Build`` if needed and replaces whatever the
    dependency has at its own ``Carthage/Build`` with a relative symlink.

    Returns:
        Path of the created symlink

    Raises:
        WriteFailedError: If a folder or the symlink cannot be created
    """
    root_binaries = root_directory / CARTHAGE_BINARIES_FOLDER_PATH
    try:
        root_binaries.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise WriteFailedError(root_binaries, e.strerror) from e

    dependency_binaries = root_directory / dependency.relative_path / CARTHAGE_BINARIES_FOLDER_PATH
    try:
        if dependency_binaries.is_symlink() or dependency_binaries.is_file():
            dependency_binaries.unlink()
        elif dependency_binaries.is_dir():
            shutil.rmtree(dependency_binaries)
    except OSError as e:
        log_warning(f"Could not remove {dependency_binaries}: {e}")

    parent = dependency_binaries.parent
    try:
        parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise WriteFailedError(parent, e.strerror) from e

    link_target = build_folder_link_target(dependency)
    try:
        os.symlink(link_target, dependency_binaries, target_is_directory=True)
    except OSError as e:
        raise WriteFailedError(dependency_binaries, e.strerror) from e

    logger.debug(f"Linked {dependency_binaries} -> {link_target}")
    return dependency_binaries
