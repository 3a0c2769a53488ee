"""Value types describing what xcodebuild should build.

Defines:
- ProjectLocator: the workspace or project file a build targets
- BuildArguments: locator plus scheme, configuration and SDK selection
- Platform: a platform products are built for, with its SDKs and output folder
- SDK: an SDK xcodebuild can build against
- ProductType: the kind of product an Xcode target produces

All types are immutable; overrides produce new copies.
"""

from dataclasses import dataclass, replace
from enum import Enum
from functools import total_ordering
from pathlib import Path, PurePosixPath
from typing import Optional

from ..config import CARTHAGE_BINARIES_FOLDER_PATH
from ..errors import ParseError


class LocatorKind(Enum):
    """Which kind of Xcode document a ProjectLocator refers to.

    Values give the preference order: workspaces sort before projects.
    """

    WORKSPACE = 0
    PROJECT_FILE = 1


@total_ordering
@dataclass(frozen=True, eq=True)
class ProjectLocator:
    """Describes how to locate the project or workspace that Xcode should build.

    Attributes:
        kind: Workspace or project file
        path: Absolute path to the .xcworkspace or .xcodeproj
    """

    kind: LocatorKind
    path: Path

    def __post_init__(self) -> None:
        if not Path(self.path).is_absolute():
            raise ValueError(f"ProjectLocator path must be absolute, got {self.path}")

    @classmethod
    def workspace(cls, path: Path) -> "ProjectLocator":
        """Locator for the .xcworkspace at the given path."""
        return cls(LocatorKind.WORKSPACE, Path(path))

    @classmethod
    def project_file(cls, path: Path) -> "ProjectLocator":
        """Locator for the .xcodeproj at the given path."""
        return cls(LocatorKind.PROJECT_FILE, Path(path))

    @property
    def is_workspace(self) -> bool:
        return self.kind is LocatorKind.WORKSPACE

    @property
    def arguments(self) -> list[str]:
        """Arguments that make xcodebuild locate this project."""
        if self.kind is LocatorKind.WORKSPACE:
            return ["-workspace", str(self.path)]
        return ["-project", str(self.path)]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, ProjectLocator):
            return NotImplemented
        if self.kind is not other.kind:
            return self.kind.value < other.kind.value
        return str(self.path) < str(other.path)

    def __str__(self) -> str:
        return self.path.name


class Platform(Enum):
    """A platform to build products for."""

    MAC = "Mac"
    IOS = "iOS"

    @classmethod
    def supported_platforms(cls) -> list["Platform"]:
        return [cls.MAC, cls.IOS]

    @property
    def relative_path(self) -> str:
        """Folder, relative to the working directory, that receives this platform's binaries."""
        return str(PurePosixPath(CARTHAGE_BINARIES_FOLDER_PATH) / self.value)

    @property
    def sdks(self) -> list["SDK"]:
        """SDKs that must be built for this platform, in merge order.

        For multi-SDK platforms the first SDK's bundle is the base of the
        merged product.
        """
        return list(_PLATFORM_SDKS[self])

    def __str__(self) -> str:
        return self.value


class SDK(Enum):
    """An SDK buildable by Xcode, keyed by xcodebuild's PLATFORM_NAME."""

    MACOSX = "macosx"
    IPHONEOS = "iphoneos"
    IPHONESIMULATOR = "iphonesimulator"

    @classmethod
    def from_string(cls, string: str) -> "SDK":
        """Parse an SDK from a PLATFORM_NAME value reported by xcodebuild.

        Raises:
            ParseError: If the name is not a known SDK
        """
        for sdk in cls:
            if sdk.value == string:
                return sdk
        raise ParseError(f'unexpected SDK key "{string}"')

    @property
    def platform(self) -> Platform:
        if self is SDK.MACOSX:
            return Platform.MAC
        return Platform.IOS

    @property
    def arguments(self) -> list[str]:
        """Arguments that select this SDK for building."""
        # Passing -sdk macosx breaks xcodebuild's implicit dependency
        # resolution; a Mac target already builds against macosx.
        if self is SDK.MACOSX:
            return []
        return ["-sdk", self.value]

    def __str__(self) -> str:
        return _SDK_DESCRIPTIONS[self]


_PLATFORM_SDKS: dict[Platform, tuple[SDK, ...]] = {
    Platform.MAC: (SDK.MACOSX,),
    Platform.IOS: (SDK.IPHONEOS, SDK.IPHONESIMULATOR),
}

_SDK_DESCRIPTIONS: dict[SDK, str] = {
    SDK.MACOSX: "Mac OS X",
    SDK.IPHONEOS: "iOS Device",
    SDK.IPHONESIMULATOR: "iOS Simulator",
}


class ProductType(Enum):
    """The type of product built by an Xcode target."""

    FRAMEWORK = "com.apple.product-type.framework"
    STATIC_LIBRARY = "com.apple.product-type.library.static"
    TEST_BUNDLE = "com.apple.product-type.bundle.unit-test"

    @classmethod
    def from_string(cls, string: str) -> "ProductType":
        """Parse a PRODUCT_TYPE value reported by xcodebuild.

        Raises:
            ParseError: If the identifier is not a known product type
        """
        for product_type in cls:
            if product_type.value == string:
                return product_type
        raise ParseError(f'unexpected product type "{string}"')

    @property
    def should_build(self) -> bool:
        """Whether products of this type are built and copied automatically."""
        return self is ProductType.FRAMEWORK


@dataclass(frozen=True)
class BuildArguments:
    """Configures one xcodebuild invocation.

    Attributes:
        project: The project or workspace to build
        scheme: Scheme to build, or None for xcodebuild's default
        configuration: Build configuration (e.g. "Release"), or None
        sdk: SDK to build against, or None for the scheme's default
    """

    project: ProjectLocator
    scheme: Optional[str] = None
    configuration: Optional[str] = None
    sdk: Optional[SDK] = None

    def with_sdk(self, sdk: Optional[SDK]) -> "BuildArguments":
        """Return a copy of these arguments targeting a different SDK."""
        return replace(self, sdk=sdk)

    @property
    def arguments(self) -> list[str]:
        """The xcodebuild argument vector, without the action."""
        args = ["xcodebuild", *self.project.arguments]

        if self.scheme is not None:
            args += ["-scheme", self.scheme]

        if self.configuration is not None:
            args += ["-configuration", self.configuration]

        if self.sdk is not None:
            args += self.sdk.arguments

        return args

    def __str__(self) -> str:
        return " ".join(self.arguments)
