"""Parsing of `xcodebuild -showBuildSettings` reports.

xcodebuild prints one block per target:

    Build settings for action build and target "ReactiveCocoa Mac":
        ACTION = build
        BUILT_PRODUCTS_DIR = /Users/me/Library/Developer/Xcode/DerivedData/...
        ...

Each block becomes one BuildSettings record, in report order.
"""

import logging
import re
from collections.abc import AsyncIterator, Iterable, Iterator, Mapping
from contextlib import aclosing
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from typing import Optional

from ..errors import MissingBuildSettingError, ParseError
from .models import SDK, BuildArguments, ProductType, ProjectLocator
from .tasks import launch_task_text, xcodebuild_task

logger = logging.getLogger(__name__)

# Matches lines of the forms:
#   Build settings for action build and target "ReactiveCocoaLayout Mac":
#   Build settings for action test and target CarthageKitTests:
TARGET_SETTINGS_REGEX = re.compile(r'^Build settings for action \S+ and target "?([^":]+)"?:$', re.IGNORECASE)


@dataclass(frozen=True)
class BuildSettings:
    """The flattened build settings xcodebuild reported for one target.

    Attributes:
        target: Name of the target these settings apply to
        settings: Setting names mapped to their values
    """

    target: str
    settings: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "settings", MappingProxyType(dict(self.settings)))

    def __getitem__(self, key: str) -> str:
        """Return the value of a build setting.

        Raises:
            MissingBuildSettingError: If the setting is absent
        """
        try:
            return self.settings[key]
        except KeyError:
            raise MissingBuildSettingError(key) from None

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.settings.get(key, default)

    @property
    def build_sdk(self) -> SDK:
        """The SDK these settings build for, from PLATFORM_NAME."""
        return SDK.from_string(self["PLATFORM_NAME"])

    @property
    def product_type(self) -> ProductType:
        """The product type of the target, from PRODUCT_TYPE."""
        return ProductType.from_string(self["PRODUCT_TYPE"])

    @property
    def built_products_dir(self) -> Path:
        """Absolute path of the built products directory, from BUILT_PRODUCTS_DIR."""
        products_dir = self["BUILT_PRODUCTS_DIR"]
        path = Path(products_dir)
        if not path.is_absolute():
            raise ParseError(f"expected absolute path for built products directory, got {products_dir}")
        return path

    @property
    def executable_path(self) -> str:
        """Path of the executable relative to the built products directory."""
        return self["EXECUTABLE_PATH"]

    @property
    def executable_url(self) -> Path:
        """Absolute path of the built executable."""
        return self.built_products_dir / self.executable_path

    @property
    def wrapper_name(self) -> str:
        """File name of the built product's bundle, e.g. ``ReactiveCocoa.framework``."""
        return self["WRAPPER_NAME"]

    @property
    def wrapper_url(self) -> Path:
        """Absolute path of the built product's bundle."""
        return self.built_products_dir / self.wrapper_name

    @property
    def relative_modules_path(self) -> Optional[str]:
        """Path, relative to the built products directory, of the product's Swift module.

        Returns None when the product does not build a module.
        """
        module_name = self.get("PRODUCT_MODULE_NAME")
        if module_name is None:
            return None
        contents_path = self["CONTENTS_FOLDER_PATH"]
        return str(PurePosixPath(contents_path) / "Modules" / f"{module_name}.swiftmodule")


class _SettingsAccumulator:
    """Parser state: the block currently being collected, if any."""

    def __init__(self) -> None:
        self.target: Optional[str] = None
        self.settings: dict[str, str] = {}

    def flush(self) -> Optional[BuildSettings]:
        """Finish the active block and reset to the no-block state."""
        completed = None
        if self.target is not None:
            completed = BuildSettings(self.target, self.settings)
        self.target = None
        self.settings = {}
        return completed


def parse_build_settings(lines: "str | Iterable[str]") -> Iterator[BuildSettings]:
    """Parse a build settings report into one record per target block.

    Key/value lines before the first target header are ignored. A report
    without any header yields nothing.

    Args:
        lines: The full report text, or an iterable of its lines

    Yields:
        BuildSettings records in report order
    """
    if isinstance(lines, str):
        lines = lines.splitlines()

    state = _SettingsAccumulator()
    for line in lines:
        stripped = line.strip()

        header = TARGET_SETTINGS_REGEX.match(stripped)
        if header:
            completed = state.flush()
            if completed is not None:
                yield completed
            state.target = header.group(1)
            continue

        components = line.split("=", 1)
        if len(components) == 2 and state.target is not None:
            key = components[0].strip()
            if key:
                state.settings[key] = components[1].strip()

    completed = state.flush()
    if completed is not None:
        yield completed


async def load_build_settings(arguments: BuildArguments) -> AsyncIterator[BuildSettings]:
    """Invoke xcodebuild to retrieve build settings for the given arguments.

    Yields one BuildSettings value per target included in the referenced scheme.

    Raises:
        TaskError: If xcodebuild fails
    """
    task = xcodebuild_task("-showBuildSettings", arguments)
    output = await launch_task_text(task)
    for settings in parse_build_settings(output):
        yield settings


async def sdk_for_scheme(scheme: str, project: ProjectLocator) -> SDK:
    """Determine which SDK the given scheme builds for by default.

    Raises:
        ParseError: If the SDK is unrecognized or no settings were reported
        MissingBuildSettingError: If PLATFORM_NAME is missing
    """
    async with aclosing(load_build_settings(BuildArguments(project, scheme=scheme))) as all_settings:
        async for settings in all_settings:
            sdk = settings.build_sdk
            logger.debug(f'Scheme "{scheme}" in {project} builds for {sdk.value} by default')
            return sdk
    raise ParseError(f'no build settings reported for scheme "{scheme}" in {project}')
