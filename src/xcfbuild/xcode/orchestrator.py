"""Building every eligible scheme of the project found in a directory.

A directory build:
1. Locates the best-ranked workspace or project in the directory
2. Lists its shared schemes (under the listing deadline)
3. Skips schemes that build no framework for the requested platform
4. Builds the rest, one after another, into Carthage/Build/<platform>

Progress is reported as a sequence of BuildEvents, pulled from
DirectoryBuild.events() and mirrored to an optional ProgressCallback. Raw
xcodebuild output of every scheme is forwarded to DirectoryBuild.output.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from ..errors import NoSharedSchemesError, XcodebuildListTimeoutError
from ..output import log, log_detail, log_product
from .build import build_scheme, should_build_scheme
from .dependency import GitHubRepository, ProjectIdentifier, symlink_build_folder
from .discovery import locate_projects_in_directory
from .models import BuildArguments, Platform, ProjectLocator
from .schemes import schemes_in_project
from .tasks import OutputStream

logger = logging.getLogger(__name__)


class BuildEventKind(Enum):
    """What happened to a scheme during a directory build."""

    SCHEME_SKIPPED = "skipped"
    SCHEME_STARTED = "started"
    PRODUCT_BUILT = "product"
    SCHEME_FINISHED = "finished"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class BuildEvent:
    """A progress event for one scheme.

    Attributes:
        kind: What happened
        project: Project or workspace containing the scheme
        scheme: Scheme name
        product: Finished product bundle, for PRODUCT_BUILT events only
    """

    kind: BuildEventKind
    project: ProjectLocator
    scheme: str
    product: Optional[Path] = None

    def __str__(self) -> str:
        if self.product is not None:
            return f"{self.kind} {self.project}:{self.scheme} {self.product.name}"
        return f"{self.kind} {self.project}:{self.scheme}"


@runtime_checkable
class ProgressCallback(Protocol):
    """Protocol for receiving build events as a directory build progresses.

    The live progress display implements this protocol to render a table of
    schemes and their states.
    """

    def on_event(self, event: BuildEvent) -> None:
        """Called for every event, in the order events occur.

        Args:
            event: The event that just happened.
        """
        ...


class NullCallback:
    """No-op callback for non-interactive use and tests."""

    def on_event(self, event: BuildEvent) -> None:
        """Discard the event."""
        pass


class DirectoryBuild:
    """The build of the first project found in a directory.

    Nothing runs until ``events()`` is iterated; every iteration runs
    discovery, scheme listing and settings loading from scratch. ``output``
    closes once the build finishes or fails.
    """

    def __init__(
        self,
        directory: Path,
        configuration: str,
        platform: Optional[Platform] = None,
        parallel_sdk_builds: bool = False,
        callback: Optional[ProgressCallback] = None,
    ) -> None:
        self.directory = Path(directory).absolute()
        self.configuration = configuration
        self.platform = platform
        self.parallel_sdk_builds = parallel_sdk_builds
        self.callback: ProgressCallback = callback if callback is not None else NullCallback()
        self.output = OutputStream()
        self.current_scheme: Optional[str] = None

    async def events(self) -> AsyncIterator[BuildEvent]:
        """Run the build, yielding an event as each scheme progresses.

        Raises:
            XcfbuildError: The first failure of listing, settings loading or building
            BuildInvariantError: If a scheme's SDK builds disagree
        """
        try:
            async with aclosing(self._run()) as events:
                async for event in events:
                    self.callback.on_event(event)
                    yield event
        finally:
            self.output.close()

    async def _run(self) -> AsyncIterator[BuildEvent]:
        project = next(locate_projects_in_directory(self.directory), None)
        if project is None:
            logger.info(f"No Xcode project or workspace found in {self.directory}")
            return

        log(f"Building {project} in {self.directory}")
        async with aclosing(schemes_in_project(project)) as schemes:
            async for scheme in schemes:
                async with aclosing(self._run_scheme(project, scheme)) as events:
                    async for event in events:
                        yield event

    async def _run_scheme(self, project: ProjectLocator, scheme: str) -> AsyncIterator[BuildEvent]:
        self.current_scheme = scheme
        arguments = BuildArguments(project, scheme=scheme, configuration=self.configuration)
        if not await should_build_scheme(arguments, self.platform):
            log_detail(f'Skipping scheme "{scheme}": no framework targets', verbose_only=True)
            yield BuildEvent(BuildEventKind.SCHEME_SKIPPED, project, scheme)
            self.current_scheme = None
            return

        log(f'Building scheme "{scheme}" in {project}')
        yield BuildEvent(BuildEventKind.SCHEME_STARTED, project, scheme)

        scheme_build = build_scheme(scheme, self.configuration, project, self.directory, self.parallel_sdk_builds)
        detach = scheme_build.output.observe(self.output.publish)
        try:
            async with aclosing(scheme_build.products()) as products:
                async for product in products:
                    log_product(product, self.directory, verbose_only=True)
                    yield BuildEvent(BuildEventKind.PRODUCT_BUILT, project, scheme, product)
        finally:
            detach()

        yield BuildEvent(BuildEventKind.SCHEME_FINISHED, project, scheme)
        self.current_scheme = None


class DependencyBuild(DirectoryBuild):
    """The build of a dependency checkout, writing into the root project's build folder."""

    def __init__(
        self,
        dependency: ProjectIdentifier,
        root_directory: Path,
        configuration: str,
        platform: Optional[Platform] = None,
        parallel_sdk_builds: bool = False,
        callback: Optional[ProgressCallback] = None,
    ) -> None:
        self.dependency = dependency
        self.root_directory = Path(root_directory).absolute()
        super().__init__(
            self.root_directory / dependency.relative_path,
            configuration,
            platform=platform,
            parallel_sdk_builds=parallel_sdk_builds,
            callback=callback,
        )

    async def _run(self) -> AsyncIterator[BuildEvent]:
        symlink_build_folder(self.dependency, self.root_directory)
        try:
            async with aclosing(super()._run()) as events:
                async for event in events:
                    yield event
        except (NoSharedSchemesError, XcodebuildListTimeoutError) as e:
            if isinstance(self.dependency, GitHubRepository):
                e.add_suggestion(
                    "If you believe this to be a project configuration error, please file an issue "
                    f"with the maintainers at {self.dependency.new_issue_url}"
                )
            raise


def build_in_directory(
    directory: Path,
    configuration: str,
    platform: Optional[Platform] = None,
    parallel_sdk_builds: bool = False,
    callback: Optional[ProgressCallback] = None,
) -> DirectoryBuild:
    """Build the first project or workspace found within the given directory.

    Args:
        directory: Directory to search and build in
        configuration: Build configuration name, e.g. "Release"
        platform: Only build schemes with frameworks for this platform (None for any)
        parallel_sdk_builds: Run the two SDK builds of a scheme concurrently
        callback: Receives every BuildEvent as it happens

    Returns:
        A DirectoryBuild exposing the output stream and the events iterator
    """
    return DirectoryBuild(directory, configuration, platform, parallel_sdk_builds, callback)


def build_dependency_project(
    dependency: ProjectIdentifier,
    root_directory: Path,
    configuration: str,
    platform: Optional[Platform] = None,
    parallel_sdk_builds: bool = False,
    callback: Optional[ProgressCallback] = None,
) -> DependencyBuild:
    """Build a dependency checkout, placing its products into the root project's build folder.

    When the build starts, the dependency's ``Carthage/Build`` folder is
    replaced by a link to the root's, then the checkout is built like any
    other directory. For GitHub dependencies, a missing-schemes or listing
    timeout failure suggests filing an issue upstream.

    Returns:
        A DependencyBuild exposing the output stream and the events iterator
    """
    return DependencyBuild(dependency, root_directory, configuration, platform, parallel_sdk_builds, callback)
