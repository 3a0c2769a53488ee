"""
Build configuration and environment overrides.

Centralized definitions for the on-disk layout xcfbuild writes to and the
external tools it drives. Values that can be overridden through the
environment are read at call time, so tests and callers can change them
without reloading the module.

Environment variables:
- XCFBUILD_XCRUN: Path to the xcrun launcher (default: /usr/bin/xcrun)
- XCFBUILD_LIST_TIMEOUT: Seconds before `xcodebuild -list` is abandoned (default: 8)
- XCFBUILD_VERBOSE=1: Enable verbose console output
"""

import logging
import os

logger = logging.getLogger(__name__)

# Folder into which built binaries are placed, relative to the working directory
CARTHAGE_BINARIES_FOLDER_PATH = "Carthage/Build"

# Folder holding dependency checkouts, relative to the root project
CARTHAGE_CHECKOUTS_FOLDER_PATH = "Carthage/Checkouts"

DEFAULT_XCRUN_PATH = "/usr/bin/xcrun"

# xcodebuild -list can hang forever on projects without shared schemes
DEFAULT_SCHEME_LIST_TIMEOUT = 8.0


def get_xcrun_path() -> str:
    """Return the launcher used for every Xcode tool invocation."""
    return os.environ.get("XCFBUILD_XCRUN") or DEFAULT_XCRUN_PATH


def get_scheme_list_timeout() -> float:
    """Return the hard deadline, in seconds, for listing schemes.

    Falls back to DEFAULT_SCHEME_LIST_TIMEOUT when the override is missing
    or is not a positive number.
    """
    raw = os.environ.get("XCFBUILD_LIST_TIMEOUT")
    if not raw:
        return DEFAULT_SCHEME_LIST_TIMEOUT

    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid XCFBUILD_LIST_TIMEOUT={raw!r}")
        return DEFAULT_SCHEME_LIST_TIMEOUT

    if value <= 0:
        logger.warning(f"Ignoring non-positive XCFBUILD_LIST_TIMEOUT={raw!r}")
        return DEFAULT_SCHEME_LIST_TIMEOUT
    return value


def is_verbose() -> bool:
    """Check if verbose output was requested through the environment."""
    return os.environ.get("XCFBUILD_VERBOSE") == "1"
