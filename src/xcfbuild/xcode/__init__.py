"""Driving xcodebuild, lipo and codesign to produce framework binaries.

Public API:
    build_in_directory: Build every eligible scheme of the project in a directory.
    build_dependency_project: Build a dependency checkout into the root build folder.
    build_scheme: Build one scheme for all SDKs of its platform.
    strip_framework: Remove unwanted architectures from a built framework.
"""

from .build import (
    SchemeBuild,
    build_scheme,
    copy_framework,
    merge_build_products_into_directory,
    should_build_scheme,
)
from .dependency import GitHubRepository, GitRepository, ProjectIdentifier, symlink_build_folder
from .discovery import locate_projects_in_directory
from .models import SDK, BuildArguments, LocatorKind, Platform, ProductType, ProjectLocator
from .orchestrator import (
    BuildEvent,
    BuildEventKind,
    DependencyBuild,
    DirectoryBuild,
    NullCallback,
    ProgressCallback,
    build_dependency_project,
    build_in_directory,
)
from .postprocess import architectures_in_framework, codesign, strip_framework
from .schemes import schemes_in_project
from .settings import BuildSettings, load_build_settings, sdk_for_scheme
from .tasks import OutputStream, TaskDescription, launch_task

__all__ = [
    "BuildArguments",
    "BuildEvent",
    "BuildEventKind",
    "BuildSettings",
    "DependencyBuild",
    "DirectoryBuild",
    "GitHubRepository",
    "GitRepository",
    "LocatorKind",
    "NullCallback",
    "OutputStream",
    "Platform",
    "ProductType",
    "ProgressCallback",
    "ProjectIdentifier",
    "ProjectLocator",
    "SDK",
    "SchemeBuild",
    "TaskDescription",
    "architectures_in_framework",
    "build_dependency_project",
    "build_in_directory",
    "build_scheme",
    "codesign",
    "copy_framework",
    "launch_task",
    "load_build_settings",
    "locate_projects_in_directory",
    "merge_build_products_into_directory",
    "schemes_in_project",
    "sdk_for_scheme",
    "should_build_scheme",
    "strip_framework",
    "symlink_build_folder",
]
