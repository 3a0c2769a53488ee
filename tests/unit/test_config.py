"""Unit tests for environment-driven configuration."""

import pytest

from xcfbuild.config import (
    DEFAULT_SCHEME_LIST_TIMEOUT,
    DEFAULT_XCRUN_PATH,
    get_scheme_list_timeout,
    get_xcrun_path,
    is_verbose,
)


class TestXcrunPath:
    """Tests for the xcrun launcher override."""

    def test_default(self, monkeypatch) -> None:
        monkeypatch.delenv("XCFBUILD_XCRUN", raising=False)
        assert get_xcrun_path() == DEFAULT_XCRUN_PATH == "/usr/bin/xcrun"

    def test_override(self, monkeypatch) -> None:
        monkeypatch.setenv("XCFBUILD_XCRUN", "/Applications/Xcode.app/usr/bin/xcrun")
        assert get_xcrun_path() == "/Applications/Xcode.app/usr/bin/xcrun"

    def test_empty_override_uses_default(self, monkeypatch) -> None:
        monkeypatch.setenv("XCFBUILD_XCRUN", "")
        assert get_xcrun_path() == DEFAULT_XCRUN_PATH


class TestSchemeListTimeout:
    """Tests for the scheme listing deadline."""

    def test_default_is_eight_seconds(self, monkeypatch) -> None:
        monkeypatch.delenv("XCFBUILD_LIST_TIMEOUT", raising=False)
        assert get_scheme_list_timeout() == DEFAULT_SCHEME_LIST_TIMEOUT == 8.0

    def test_override(self, monkeypatch) -> None:
        monkeypatch.setenv("XCFBUILD_LIST_TIMEOUT", "30")
        assert get_scheme_list_timeout() == 30.0

    @pytest.mark.parametrize("raw", ["soon", "0", "-1"])
    def test_invalid_values_fall_back(self, monkeypatch, raw: str) -> None:
        monkeypatch.setenv("XCFBUILD_LIST_TIMEOUT", raw)
        assert get_scheme_list_timeout() == DEFAULT_SCHEME_LIST_TIMEOUT


class TestVerbose:
    """Tests for the verbose environment switch."""

    def test_enabled(self, monkeypatch) -> None:
        monkeypatch.setenv("XCFBUILD_VERBOSE", "1")
        assert is_verbose()

    @pytest.mark.parametrize("raw", ["", "0", "yes"])
    def test_disabled(self, monkeypatch, raw: str) -> None:
        monkeypatch.setenv("XCFBUILD_VERBOSE", raw)
        assert not is_verbose()
