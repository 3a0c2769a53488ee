"""xcfbuild - builds framework binaries for Xcode projects and their dependencies.

Public API:
    build_directory: Synchronously build a directory, with optional live progress table.
    xcfbuild.xcode: The async build engine (discovery, schemes, settings, builds).
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

from .config import is_verbose
from .errors import BuildInvariantError, XcfbuildError
from .output import log_detail, log_error, set_verbose
from .progress_display import BuildProgressDisplay
from .xcode.models import Platform
from .xcode.orchestrator import BuildEvent, BuildEventKind, DirectoryBuild, NullCallback, ProgressCallback, build_in_directory

__version__ = "0.1.0"


class _VerboseCallback:
    """Simple text-based callback for non-TUI verbose mode."""

    def on_event(self, event: BuildEvent) -> None:
        """Print one line per event."""
        if event.kind is BuildEventKind.SCHEME_SKIPPED:
            log_detail(f'Skipped scheme "{event.scheme}"')
        elif event.kind is BuildEventKind.SCHEME_FINISHED:
            log_detail(f'Finished scheme "{event.scheme}"')


async def _collect_products(build: DirectoryBuild, display: Optional[BuildProgressDisplay]) -> list[Path]:
    products: list[Path] = []
    try:
        async for event in build.events():
            if event.kind is BuildEventKind.PRODUCT_BUILT and event.product is not None:
                products.append(event.product)
    except (XcfbuildError, BuildInvariantError) as e:
        if display is not None and build.current_scheme is not None:
            display.mark_failed(build.current_scheme, str(e))
        raise
    return products


def build_directory(
    directory: Path,
    configuration: str = "Release",
    platform: Optional[Platform] = None,
    verbose: bool = False,
    use_tui: Optional[bool] = None,
    parallel_sdk_builds: bool = False,
) -> list[Path]:
    """Build the project found in ``directory`` and wait for it to finish.

    Args:
        directory: Directory containing the project or workspace
        configuration: Build configuration name
        platform: Only build schemes with frameworks for this platform (None for any)
        verbose: Print per-scheme lines and product paths (also enabled by XCFBUILD_VERBOSE=1)
        use_tui: Override the live display. None = auto-detect (TTY check).
        parallel_sdk_builds: Run the two SDK builds of a scheme concurrently

    Returns:
        Paths of all built products, in build order

    Raises:
        XcfbuildError: If any part of the build fails
    """
    verbose = verbose or is_verbose()
    set_verbose(verbose)
    if use_tui is None:
        use_tui = _is_tty()

    display: Optional[BuildProgressDisplay] = None
    callback: ProgressCallback
    if use_tui:
        display = BuildProgressDisplay(console=None, title=f"Building {directory}", refresh_per_second=10)
        callback = display
    else:
        callback = _VerboseCallback() if verbose else NullCallback()

    build = build_in_directory(directory, configuration, platform, parallel_sdk_builds, callback)
    try:
        if display is not None:
            with display:
                return asyncio.run(_collect_products(build, display))
        return asyncio.run(_collect_products(build, None))
    except XcfbuildError as e:
        log_error(str(e))
        raise


def _is_tty() -> bool:
    """Check if stdout is a terminal (TTY).

    Returns:
        True if stdout is connected to a terminal.
    """
    try:
        return sys.stdout.isatty()
    except (AttributeError, ValueError):
        return False


__all__ = [
    "XcfbuildError",
    "__version__",
    "build_directory",
]
