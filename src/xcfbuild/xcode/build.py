"""Building schemes and assembling their products.

A scheme is built once per SDK of its default platform:

    Mac:  macosx                      -> copy each framework into Carthage/Build/Mac
    iOS:  iphoneos + iphonesimulator  -> copy the iphoneos framework into
                                         Carthage/Build/iOS, replace its binary
                                         with a fat binary of both builds and
                                         merge the simulator's Swift module files

Only framework targets are copied. The two SDK builds of one scheme are
independent invocations; the merge step waits for both.
"""

import asyncio
import logging
import os
import shutil
from collections.abc import AsyncIterator, Iterable
from contextlib import aclosing
from pathlib import Path
from typing import Optional

from ..errors import BuildInvariantError, ReadFailedError, WriteFailedError, XcfbuildError
from ..output import TimedLogger, log_phase
from .models import SDK, BuildArguments, Platform, ProjectLocator
from .settings import BuildSettings, load_build_settings, sdk_for_scheme
from .tasks import OutputStream, launch_task, xcodebuild_task, xcrun_task

logger = logging.getLogger(__name__)


def _remove_path(path: Path) -> None:
    """Remove a file, symlink or directory tree. Missing paths are ignored."""
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)


def copy_framework(source: Path, destination: Path) -> Path:
    """Copy a framework bundle to ``destination``, replacing whatever is there.

    The destination's parent folder is created if it does not already exist.
    Symlinks inside the bundle are copied as symlinks.

    Args:
        source: Bundle to copy
        destination: Full path of the copy

    Returns:
        The destination path

    Raises:
        WriteFailedError: If any filesystem step fails
    """
    parent = destination.parent
    try:
        parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise WriteFailedError(parent, e.strerror) from e

    try:
        _remove_path(destination)
    except FileNotFoundError:
        pass
    except OSError as e:
        raise WriteFailedError(destination, e.strerror) from e

    try:
        if source.is_dir():
            shutil.copytree(source, destination, symlinks=True)
        else:
            shutil.copy2(source, destination, follow_symlinks=False)
    except OSError as e:
        raise WriteFailedError(destination, str(e)) from e

    logger.debug(f"Copied {source} to {destination}")
    return destination


def copy_build_product_into_directory(directory: Path, settings: BuildSettings) -> Path:
    """Copy the built product described by ``settings`` into ``directory``, keeping its name.

    Returns:
        Path of the copied bundle

    Raises:
        MissingBuildSettingError: If the product location cannot be determined
        WriteFailedError: If copying fails
    """
    destination = directory / settings.wrapper_name
    return copy_framework(settings.wrapper_url, destination)


async def merge_executables(
    executable_paths: Iterable[Path],
    output_path: Path,
    standard_output: Optional[OutputStream] = None,
) -> None:
    """Merge the given executables into one fat binary written to ``output_path``.

    Raises:
        TaskError: If lipo fails
    """
    paths = [str(path) for path in executable_paths]
    task = xcrun_task("lipo", "-create", *paths, "-output", str(output_path))
    await launch_task(task, standard_output)
    logger.debug(f"Created fat binary {output_path} from {len(paths)} executables")


def merge_module_into_module(source_directory: Path, destination_directory: Path) -> list[Path]:
    """Copy the contents of one Swift module directory into another.

    Only the top level of ``source_directory`` is copied and hidden entries are
    skipped. A missing source directory means the product has no module for
    that SDK, and nothing is copied.

    Returns:
        Paths of the copied entries, in name order

    Raises:
        ReadFailedError: If the source directory cannot be listed
        WriteFailedError: If an entry cannot be copied
    """
    if not source_directory.is_dir():
        logger.debug(f"No module to merge at {source_directory}")
        return []

    try:
        with os.scandir(source_directory) as it:
            entries = sorted((e for e in it if not e.name.startswith(".")), key=lambda e: e.name)
    except OSError as e:
        raise ReadFailedError(source_directory, e.strerror) from e

    try:
        destination_directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise WriteFailedError(destination_directory, e.strerror) from e

    copied = []
    for entry in entries:
        destination = destination_directory / entry.name
        try:
            if entry.is_dir(follow_symlinks=False):
                shutil.copytree(entry.path, destination, symlinks=True, dirs_exist_ok=True)
            else:
                shutil.copy2(entry.path, destination, follow_symlinks=False)
        except OSError as e:
            raise WriteFailedError(destination, str(e)) from e
        copied.append(destination)

    return copied


async def should_build_scheme(arguments: BuildArguments, platform: Optional[Platform] = None) -> bool:
    """Determine whether the scheme in ``arguments`` should be built automatically.

    A scheme is built when at least one of its targets produces a framework for
    ``platform`` (or for any platform, if None). Targets whose SDK or product
    type cannot be determined are ignored.

    Raises:
        ValueError: If ``arguments`` names no scheme
        TaskError: If xcodebuild fails
    """
    if arguments.scheme is None:
        raise ValueError("should_build_scheme requires a scheme")

    async with aclosing(load_build_settings(arguments)) as all_settings:
        async for settings in all_settings:
            try:
                if platform is not None and settings.build_sdk.platform is not platform:
                    continue
                product_type = settings.product_type
            except XcfbuildError as e:
                logger.debug(f"Ignoring target {settings.target!r} of scheme {arguments.scheme!r}: {e}")
                continue

            if product_type.should_build:
                return True

    return False


def settings_by_target(all_settings: Iterable[BuildSettings]) -> dict[str, BuildSettings]:
    """Associate each settings record with the name of its target.

    Later records for the same target replace earlier ones.
    """
    return {settings.target: settings for settings in all_settings}


def match_targets(
    first: dict[str, BuildSettings],
    second: dict[str, BuildSettings],
    first_sdk: SDK,
    second_sdk: SDK,
) -> list[tuple[BuildSettings, BuildSettings]]:
    """Pair up the settings of the same targets built for two SDKs.

    Returns:
        (first, second) pairs in the order of ``first``

    Raises:
        BuildInvariantError: If the two builds did not produce the same targets
    """
    if first.keys() != second.keys():
        missing = sorted(first.keys() - second.keys())
        extra = sorted(second.keys() - first.keys())
        raise BuildInvariantError(
            f"Targets built for {first_sdk} ({len(first)}) do not match targets built for "
            f"{second_sdk} ({len(second)}): missing {missing}, unexpected {extra}"
        )
    return [(settings, second[target]) for target, settings in first.items()]


async def merge_build_products_into_directory(
    first_settings: BuildSettings,
    second_settings: BuildSettings,
    destination_directory: Path,
    standard_output: Optional[OutputStream] = None,
) -> Path:
    """Combine two builds of the same target into one product in ``destination_directory``.

    The first product's bundle is copied as the base. Its executable is then
    replaced by a fat binary of both executables, and if both products build a
    Swift module, the second module's files are copied into the base module.

    Returns:
        Path of the merged bundle

    Raises:
        MissingBuildSettingError: If a required setting is absent
        WriteFailedError: If copying fails
        TaskError: If lipo fails
    """
    product_path = await asyncio.to_thread(copy_build_product_into_directory, destination_directory, first_settings)

    executables = [first_settings.executable_url, second_settings.executable_url]
    output_path = destination_directory / first_settings.executable_path
    with TimedLogger(f"Merging {product_path.name}", verbose_only=True) as timed:
        timed.detail(f"lipo -create {len(executables)} binaries -> {first_settings.executable_path}")
        await merge_executables(executables, output_path, standard_output)

    source_modules_path = second_settings.relative_modules_path
    destination_modules_path = first_settings.relative_modules_path
    if source_modules_path is not None and destination_modules_path is not None:
        await asyncio.to_thread(
            merge_module_into_module,
            second_settings.built_products_dir / source_modules_path,
            destination_directory / destination_modules_path,
        )

    return product_path


class SchemeBuild:
    """One scheme being built for every SDK of its platform.

    Nothing runs until ``products()`` is iterated. All xcodebuild and lipo
    standard output is published on ``output``, which closes once the build
    finishes or fails.

    Attributes:
        scheme: Scheme being built
        configuration: Build configuration name
        project: Project or workspace containing the scheme
        working_directory: Directory receiving Carthage/Build/<platform>
        parallel_sdk_builds: Whether the two SDK builds run concurrently
        output: Broadcast stream of raw tool output
    """

    def __init__(
        self,
        scheme: str,
        configuration: str,
        project: ProjectLocator,
        working_directory: Path,
        parallel_sdk_builds: bool = False,
    ) -> None:
        self.scheme = scheme
        self.configuration = configuration
        self.project = project
        self.working_directory = Path(working_directory)
        self.parallel_sdk_builds = parallel_sdk_builds
        self.output = OutputStream()
        self._arguments = BuildArguments(project, scheme=scheme, configuration=configuration)

    async def products(self) -> AsyncIterator[Path]:
        """Build the scheme and yield the path of each finished product bundle.

        Raises:
            XcfbuildError: If any step of the build fails
            BuildInvariantError: If the SDK builds disagree or the platform is unsupported
        """
        try:
            async with aclosing(self._build()) as products:
                async for product in products:
                    yield product
        finally:
            self.output.close()

    async def _build_sdk(self, sdk: SDK, phase: tuple[int, int] = (1, 1)) -> list[BuildSettings]:
        """Build for one SDK and return the settings of its framework targets."""
        arguments = self._arguments.with_sdk(sdk)
        task = xcodebuild_task("build", arguments, working_directory=self.working_directory)
        log_phase(phase[0], phase[1], f'Building scheme "{self.scheme}" for {sdk}...', verbose_only=True)
        logger.debug(f"Running {task}")
        await launch_task(task, self.output)

        eligible = []
        async for settings in load_build_settings(arguments):
            try:
                product_type = settings.product_type
            except XcfbuildError:
                continue
            if product_type.should_build:
                eligible.append(settings)
        return eligible

    async def _build_sdk_pair(self, first_sdk: SDK, second_sdk: SDK) -> tuple[list[BuildSettings], list[BuildSettings]]:
        if self.parallel_sdk_builds:
            return await self._build_sdks_concurrently(first_sdk, second_sdk)
        first = await self._build_sdk(first_sdk, (1, 2))
        second = await self._build_sdk(second_sdk, (2, 2))
        return first, second

    async def _build_sdks_concurrently(self, first_sdk: SDK, second_sdk: SDK) -> tuple[list[BuildSettings], list[BuildSettings]]:
        """Run both SDK builds at once.

        The first failure cancels the other build, and its process tree is
        gone before the failure propagates.
        """
        tasks = [
            asyncio.ensure_future(self._build_sdk(first_sdk, (1, 2))),
            asyncio.ensure_future(self._build_sdk(second_sdk, (2, 2))),
        ]
        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        for task in tasks:
            if not task.cancelled() and task.exception() is not None:
                logger.debug(f'SDK build of scheme "{self.scheme}" failed, sibling build cancelled')
                raise task.exception()  # type: ignore[misc]
        return tasks[0].result(), tasks[1].result()

    async def _build(self) -> AsyncIterator[Path]:
        sdk = await sdk_for_scheme(self.scheme, self.project)
        platform = sdk.platform
        folder = self.working_directory / platform.relative_path
        sdks = platform.sdks

        if len(sdks) == 1:
            for settings in await self._build_sdk(sdks[0]):
                yield await asyncio.to_thread(copy_build_product_into_directory, folder, settings)

        elif len(sdks) == 2:
            first_sdk, second_sdk = sdks
            first, second = await self._build_sdk_pair(first_sdk, second_sdk)
            pairs = match_targets(settings_by_target(first), settings_by_target(second), first_sdk, second_sdk)
            for first_settings, second_settings in pairs:
                yield await merge_build_products_into_directory(first_settings, second_settings, folder, self.output)

        else:
            raise BuildInvariantError(f"SDK count {len(sdks)} for platform {platform} is not supported")


def build_scheme(
    scheme: str,
    configuration: str,
    project: ProjectLocator,
    working_directory: Path,
    parallel_sdk_builds: bool = False,
) -> SchemeBuild:
    """Build one scheme of the given project for all SDKs of its platform.

    Args:
        scheme: Scheme to build
        configuration: Build configuration name, e.g. "Release"
        project: Project or workspace containing the scheme
        working_directory: Directory the build runs in and writes products under
        parallel_sdk_builds: Run the two builds of a two-SDK platform concurrently

    Returns:
        A SchemeBuild exposing the output stream and the products iterator
    """
    return SchemeBuild(scheme, configuration, project, working_directory, parallel_sdk_builds)
