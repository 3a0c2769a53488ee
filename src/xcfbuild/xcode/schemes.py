"""Enumeration of the shared schemes in a project or workspace.

`xcodebuild -list` prints something like:

    Information about project "ReactiveCocoa":
        Targets:
            ReactiveCocoa-iOS
            ReactiveCocoa-Mac

        Schemes:
            ReactiveCocoa-iOS
            ReactiveCocoa-Mac

Only the indented block after the "Schemes:" line is of interest. xcodebuild
can hang forever on projects that share no schemes, so listing runs under a
hard deadline.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable, Iterator
from typing import Optional

from ..config import get_scheme_list_timeout
from ..errors import NoSharedSchemesError, XcodebuildListTimeoutError
from .models import BuildArguments, ProjectLocator
from .tasks import launch_task_text, xcodebuild_task

logger = logging.getLogger(__name__)


def _is_no_schemes_sentinel(line: str) -> bool:
    # Matches one of these two possible messages:
    #   '    This project contains no schemes.'
    #   'There are no schemes in workspace "Carthage".'
    return line.endswith("contains no schemes.") or line.startswith("There are no schemes")


def parse_scheme_list(lines: "str | Iterable[str]", project: ProjectLocator) -> Iterator[str]:
    """Extract scheme names from `xcodebuild -list` output.

    Args:
        lines: The full listing text, or an iterable of its lines
        project: Project the listing belongs to, used for error reporting

    Yields:
        Trimmed scheme names, in listing order

    Raises:
        NoSharedSchemesError: If xcodebuild reports that there are no schemes
    """
    if isinstance(lines, str):
        lines = lines.splitlines()

    in_schemes = False
    for line in lines:
        if _is_no_schemes_sentinel(line):
            raise NoSharedSchemesError(project)

        if not in_schemes:
            in_schemes = line.endswith("Schemes:")
            continue

        scheme = line.strip()
        if not scheme:
            return
        yield scheme


async def schemes_in_project(project: ProjectLocator, timeout: Optional[float] = None) -> AsyncIterator[str]:
    """List each shared scheme found in the given project.

    Args:
        project: Project or workspace to inspect
        timeout: Seconds before listing is abandoned (default: get_scheme_list_timeout())

    Yields:
        Scheme names, in listing order

    Raises:
        NoSharedSchemesError: If the project shares no schemes
        XcodebuildListTimeoutError: If xcodebuild did not finish in time
        TaskError: If xcodebuild fails
    """
    if timeout is None:
        timeout = get_scheme_list_timeout()

    task = xcodebuild_task("-list", BuildArguments(project))
    try:
        output = await asyncio.wait_for(launch_task_text(task), timeout)
    except asyncio.TimeoutError:
        logger.warning(f"xcodebuild -list for {project} did not finish within {timeout:g}s")
        raise XcodebuildListTimeoutError(project, timeout) from None

    for scheme in parse_scheme_list(output, project):
        logger.debug(f"Found scheme {scheme!r} in {project}")
        yield scheme
