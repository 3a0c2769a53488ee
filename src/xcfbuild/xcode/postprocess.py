"""Post-processing of built frameworks: architecture stripping and code signing.

Architectures are read from `lipo -info`, which prints one of:

    Architectures in the fat file: /path/to/Binary are: armv7 arm64
    Non-fat file: /path/to/Binary is architecture: x86_64

Stripping removes one architecture at a time in place, and signing (when an
identity is given) runs once all removals are done.
"""

import logging
import plistlib
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Optional

from ..errors import InvalidArchitecturesError, ReadFailedError
from .tasks import launch_task, launch_task_text, xcrun_task

logger = logging.getLogger(__name__)

# Where a bundle keeps its Info.plist: flat (iOS) or versioned (Mac) layout
_INFO_PLIST_LOCATIONS = (
    "Info.plist",
    "Resources/Info.plist",
    "Versions/Current/Resources/Info.plist",
)

_FAT_FILE_REGEX = re.compile(r"^Architectures in the fat file: (.+) are: ([A-Za-z0-9 _\-]+)$")
_NON_FAT_FILE_REGEX = re.compile(r"^Non-fat file: (.+) is architecture: ([A-Za-z0-9_\-]+)$")


def _read_info_plist(framework: Path) -> dict:
    for location in _INFO_PLIST_LOCATIONS:
        plist_path = framework / location
        if not plist_path.is_file():
            continue
        try:
            with plist_path.open("rb") as f:
                return plistlib.load(f)
        except (OSError, plistlib.InvalidFileException, ValueError) as e:
            raise ReadFailedError(framework, f"unreadable {location}: {e}") from e
    raise ReadFailedError(framework, "no Info.plist found")


def binary_path(framework: Path) -> Path:
    """Return the path of the executable inside a framework bundle.

    The executable's name is the bundle's CFBundleExecutable.

    Raises:
        ReadFailedError: If the bundle's Info.plist is missing, unreadable or has no executable
    """
    info = _read_info_plist(framework)
    binary_name = info.get("CFBundleExecutable")
    if not isinstance(binary_name, str) or not binary_name:
        raise ReadFailedError(framework, "Info.plist has no CFBundleExecutable")
    return framework / binary_name


def parse_architectures(output: str, binary: Optional[Path] = None) -> list[str]:
    """Parse the architectures listed in `lipo -info` output.

    Args:
        output: Text printed by lipo
        binary: Binary the output describes, used for error reporting

    Returns:
        Architecture names, in the order lipo printed them

    Raises:
        InvalidArchitecturesError: If the output has neither known shape
    """
    text = output.strip()

    fat = _FAT_FILE_REGEX.match(text)
    if fat:
        architectures = fat.group(2).split()
        if architectures:
            return architectures

    non_fat = _NON_FAT_FILE_REGEX.match(text)
    if non_fat:
        return [non_fat.group(2)]

    source = binary if binary is not None else repr(text)
    raise InvalidArchitecturesError(f"Could not read architectures from {source}")


async def architectures_in_framework(framework: Path) -> list[str]:
    """Return all architectures present in a framework's binary.

    Raises:
        ReadFailedError: If the binary cannot be located
        InvalidArchitecturesError: If lipo's output cannot be parsed
        TaskError: If lipo fails
    """
    binary = binary_path(framework)
    output = await launch_task_text(xcrun_task("lipo", "-info", str(binary)))
    try:
        return parse_architectures(output, binary)
    except InvalidArchitecturesError:
        raise InvalidArchitecturesError(f"Could not read architectures from {framework}") from None


async def strip_architecture(framework: Path, architecture: str) -> None:
    """Remove one architecture from a framework's binary, in place."""
    binary = str(binary_path(framework))
    await launch_task(xcrun_task("lipo", "-remove", architecture, "-output", binary, binary))
    logger.debug(f"Stripped {architecture} from {framework.name}")


async def codesign(framework: Path, identity: str) -> None:
    """Sign a framework, keeping its identifier and entitlements."""
    await launch_task(
        xcrun_task(
            "codesign",
            "--force",
            "--sign",
            identity,
            "--preserve-metadata=identifier,entitlements",
            str(framework),
        )
    )
    logger.debug(f"Signed {framework.name} with {identity}")


async def strip_framework(
    framework: Path,
    keeping_architectures: Iterable[str],
    codesigning_identity: Optional[str] = None,
) -> list[str]:
    """Strip a framework of unexpected architectures, optionally signing the result.

    Args:
        framework: Framework bundle to modify in place
        keeping_architectures: Architectures that must remain in the binary
        codesigning_identity: Identity to sign with, or None to skip signing

    Returns:
        The architectures that were removed

    Raises:
        XcfbuildError: If reading, stripping or signing fails
    """
    keep = set(keeping_architectures)
    removed = []
    for architecture in await architectures_in_framework(framework):
        if architecture in keep:
            continue
        await strip_architecture(framework, architecture)
        removed.append(architecture)

    if codesigning_identity is not None:
        await codesign(framework, codesigning_identity)

    if removed:
        logger.info(f"Removed {', '.join(removed)} from {framework.name}")
    return removed
