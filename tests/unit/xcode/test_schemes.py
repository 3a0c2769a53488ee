"""Unit tests for shared scheme enumeration."""

import asyncio
import time
from pathlib import Path

import psutil
import pytest
from fake_xcode import FakeXcrun

from xcfbuild.errors import NoSharedSchemesError, XcodebuildListTimeoutError
from xcfbuild.xcode.models import ProjectLocator
from xcfbuild.xcode.schemes import parse_scheme_list, schemes_in_project


def _run(coro):
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


PROJECT = ProjectLocator.project_file(Path("/src/ReactiveCocoa.xcodeproj"))

LISTING = """\
Information about project "ReactiveCocoa":
    Targets:
        ReactiveCocoa-Mac
        ReactiveCocoa-iOS

    Build Configurations:
        Debug
        Release

    Schemes:
        ReactiveCocoa-Mac
        ReactiveCocoa-iOS

"""


async def _collect(project: ProjectLocator, timeout=None) -> list[str]:
    return [scheme async for scheme in schemes_in_project(project, timeout)]


class TestParseSchemeList:
    """Tests for the listing state machine."""

    def test_full_listing(self) -> None:
        assert list(parse_scheme_list(LISTING, PROJECT)) == ["ReactiveCocoa-Mac", "ReactiveCocoa-iOS"]

    def test_stops_at_blank_line(self) -> None:
        text = "Information:\n    Schemes:\n  Foo\n  Bar\n\nOther text\n  Baz\n"
        assert list(parse_scheme_list(text, PROJECT)) == ["Foo", "Bar"]

    def test_whitespace_only_line_ends_block(self) -> None:
        text = "Schemes:\n    Foo\n    \n    Bar\n"
        assert list(parse_scheme_list(text, PROJECT)) == ["Foo"]

    def test_no_schemes_header(self) -> None:
        assert list(parse_scheme_list("Targets:\n    App\n", PROJECT)) == []

    def test_workspace_sentinel(self) -> None:
        """The sentinel fails the listing regardless of what follows."""
        text = 'There are no schemes in workspace "X".\nSchemes:\n    Foo\n'
        with pytest.raises(NoSharedSchemesError):
            list(parse_scheme_list(text, PROJECT))

    def test_project_sentinel(self) -> None:
        text = 'Information about project "X":\n    This project contains no schemes.\n'
        with pytest.raises(NoSharedSchemesError) as exc_info:
            list(parse_scheme_list(text, PROJECT))
        assert exc_info.value.project == PROJECT

    def test_lazy_consumption(self) -> None:
        """Abandoning early does not scan the rest of the listing."""
        lines = iter(["Schemes:", "  First", "There are no schemes"])
        schemes = parse_scheme_list(lines, PROJECT)
        assert next(schemes) == "First"
        schemes.close()


class TestSchemesInProject:
    """Tests for listing schemes through xcodebuild."""

    def test_lists_schemes(self, fake_xcrun: FakeXcrun) -> None:
        fake_xcrun.set_list(LISTING)

        assert _run(_collect(PROJECT)) == ["ReactiveCocoa-Mac", "ReactiveCocoa-iOS"]
        assert fake_xcrun.invocations() == [["xcodebuild", "-project", str(PROJECT.path), "-list"]]

    def test_no_shared_schemes(self, fake_xcrun: FakeXcrun) -> None:
        fake_xcrun.set_list('There are no schemes in workspace "Carthage".\n')

        with pytest.raises(NoSharedSchemesError):
            _run(_collect(PROJECT))

    def test_timeout_kills_listing(self, fake_xcrun: FakeXcrun) -> None:
        """A hanging xcodebuild -list fails with a timeout and is not left running."""
        fake_xcrun.set_list(LISTING)
        fake_xcrun.set_delay("-list", 30)

        start = time.monotonic()
        with pytest.raises(XcodebuildListTimeoutError) as exc_info:
            _run(_collect(PROJECT, timeout=0.5))
        elapsed = time.monotonic() - start

        assert elapsed < 10
        assert exc_info.value.timeout == 0.5
        pid = fake_xcrun.last_pid()
        assert not psutil.pid_exists(pid) or psutil.Process(pid).status() == psutil.STATUS_ZOMBIE

    def test_timeout_from_environment(self, fake_xcrun: FakeXcrun, monkeypatch) -> None:
        fake_xcrun.set_list(LISTING)
        fake_xcrun.set_delay("-list", 30)
        monkeypatch.setenv("XCFBUILD_LIST_TIMEOUT", "0.3")

        with pytest.raises(XcodebuildListTimeoutError) as exc_info:
            _run(_collect(PROJECT))
        assert exc_info.value.timeout == 0.3
