"""Unit tests for the build settings parser and its derived views."""

import asyncio
from pathlib import Path

import pytest
from fake_xcode import FakeXcrun, settings_block

from xcfbuild.errors import MissingBuildSettingError, ParseError, TaskError
from xcfbuild.xcode.models import SDK, BuildArguments, ProductType, ProjectLocator
from xcfbuild.xcode.settings import BuildSettings, load_build_settings, parse_build_settings, sdk_for_scheme


def _run(coro):
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


SAMPLE_REPORT = """\
Build settings for action build and target "A":
    K1 = V1
    K2 = V2

Build settings for action build and target "B":
    K3 = V3
"""


class TestParseBuildSettings:
    """Tests for the block state machine."""

    def test_two_blocks(self) -> None:
        records = list(parse_build_settings(SAMPLE_REPORT))
        assert [r.target for r in records] == ["A", "B"]
        assert dict(records[0].settings) == {"K1": "V1", "K2": "V2"}
        assert dict(records[1].settings) == {"K3": "V3"}

    def test_no_headers_yields_nothing(self) -> None:
        assert list(parse_build_settings("K1 = V1\nK2 = V2\n")) == []

    def test_empty_report(self) -> None:
        assert list(parse_build_settings("")) == []

    def test_lines_before_first_header_are_ignored(self) -> None:
        report = "Command line invocation:\n    STRAY = 1\n" + SAMPLE_REPORT
        records = list(parse_build_settings(report))
        assert "STRAY" not in records[0].settings

    def test_unquoted_target_and_other_action(self) -> None:
        records = list(parse_build_settings("Build settings for action test and target CarthageKitTests:\n    A = 1\n"))
        assert records[0].target == "CarthageKitTests"

    def test_header_is_case_insensitive(self) -> None:
        records = list(parse_build_settings('build settings for action build and target "Lower":\n'))
        assert records[0].target == "Lower"

    def test_target_name_with_spaces(self) -> None:
        records = list(parse_build_settings('Build settings for action build and target "ReactiveCocoa Mac":\n'))
        assert records[0].target == "ReactiveCocoa Mac"

    def test_value_split_on_first_equals(self) -> None:
        report = 'Build settings for action build and target "A":\n    OTHER_FLAGS = -DFOO=1 -DBAR=2\n'
        records = list(parse_build_settings(report))
        assert records[0]["OTHER_FLAGS"] == "-DFOO=1 -DBAR=2"

    def test_empty_value(self) -> None:
        report = 'Build settings for action build and target "A":\n    EMPTY =\n'
        assert list(parse_build_settings(report))[0]["EMPTY"] == ""

    def test_accepts_line_iterable(self) -> None:
        records = list(parse_build_settings(SAMPLE_REPORT.splitlines()))
        assert len(records) == 2

    def test_header_without_settings(self) -> None:
        records = list(parse_build_settings('Build settings for action build and target "Empty":\n'))
        assert len(records) == 1
        assert dict(records[0].settings) == {}


class TestBuildSettings:
    """Tests for the derived settings views."""

    def test_missing_key(self) -> None:
        settings = BuildSettings("A", {})
        with pytest.raises(MissingBuildSettingError, match="PLATFORM_NAME"):
            settings["PLATFORM_NAME"]

    def test_get_with_default(self) -> None:
        assert BuildSettings("A", {}).get("X", "fallback") == "fallback"

    def test_settings_are_read_only(self) -> None:
        settings = BuildSettings("A", {"K": "V"})
        with pytest.raises(TypeError):
            settings.settings["K"] = "changed"  # type: ignore[index]

    def test_build_sdk_simulator(self) -> None:
        assert BuildSettings("A", {"PLATFORM_NAME": "iphonesimulator"}).build_sdk is SDK.IPHONESIMULATOR

    def test_build_sdk_bogus(self) -> None:
        with pytest.raises(ParseError):
            BuildSettings("A", {"PLATFORM_NAME": "bogus"}).build_sdk

    def test_product_type(self) -> None:
        settings = BuildSettings("A", {"PRODUCT_TYPE": "com.apple.product-type.framework"})
        assert settings.product_type is ProductType.FRAMEWORK

    def test_product_paths(self) -> None:
        settings = BuildSettings(
            "A",
            {
                "BUILT_PRODUCTS_DIR": "/build/Release",
                "EXECUTABLE_PATH": "A.framework/A",
                "WRAPPER_NAME": "A.framework",
            },
        )
        assert settings.built_products_dir == Path("/build/Release")
        assert settings.executable_url == Path("/build/Release/A.framework/A")
        assert settings.wrapper_url == Path("/build/Release/A.framework")

    def test_relative_products_dir_rejected(self) -> None:
        with pytest.raises(ParseError):
            BuildSettings("A", {"BUILT_PRODUCTS_DIR": "build/Release"}).built_products_dir

    def test_relative_modules_path(self) -> None:
        settings = BuildSettings("A", {"PRODUCT_MODULE_NAME": "A", "CONTENTS_FOLDER_PATH": "A.framework"})
        assert settings.relative_modules_path == "A.framework/Modules/A.swiftmodule"

    def test_relative_modules_path_without_module(self) -> None:
        assert BuildSettings("A", {"CONTENTS_FOLDER_PATH": "A.framework"}).relative_modules_path is None

    def test_relative_modules_path_missing_contents_folder(self) -> None:
        with pytest.raises(MissingBuildSettingError):
            BuildSettings("A", {"PRODUCT_MODULE_NAME": "A"}).relative_modules_path


class TestLoadBuildSettings:
    """Tests for loading settings through xcodebuild."""

    def test_load(self, fake_xcrun: FakeXcrun, tmp_path: Path) -> None:
        fake_xcrun.set_settings(settings_block("A", "iphoneos", tmp_path) + settings_block("B", "iphoneos", tmp_path))
        project = ProjectLocator.project_file(tmp_path / "App.xcodeproj")

        async def collect():
            return [s async for s in load_build_settings(BuildArguments(project, scheme="App"))]

        records = _run(collect())

        assert [r.target for r in records] == ["A", "B"]
        assert fake_xcrun.invocations()[-1] == [
            "xcodebuild",
            "-project",
            str(tmp_path / "App.xcodeproj"),
            "-scheme",
            "App",
            "-showBuildSettings",
        ]

    def test_sdk_for_scheme_uses_first_record(self, fake_xcrun: FakeXcrun, tmp_path: Path) -> None:
        fake_xcrun.set_settings(settings_block("A", "iphonesimulator", tmp_path) + settings_block("B", "macosx", tmp_path))
        project = ProjectLocator.project_file(tmp_path / "App.xcodeproj")

        assert _run(sdk_for_scheme("App", project)) is SDK.IPHONESIMULATOR

    def test_sdk_for_scheme_without_settings(self, fake_xcrun: FakeXcrun, tmp_path: Path) -> None:
        fake_xcrun.set_settings("")
        project = ProjectLocator.project_file(tmp_path / "App.xcodeproj")

        with pytest.raises(ParseError):
            _run(sdk_for_scheme("App", project))

    def test_xcodebuild_failure(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.setenv("XCFBUILD_XCRUN", "false")
        project = ProjectLocator.project_file(tmp_path / "App.xcodeproj")

        with pytest.raises(TaskError):
            _run(sdk_for_scheme("App", project))
