"""Fixtures for the Xcode build engine tests."""

from pathlib import Path

import pytest
from fake_xcode import FakeXcrun


@pytest.fixture
def fake_xcrun(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> FakeXcrun:
    """Install a fake xcrun for the duration of a test."""
    fake = FakeXcrun.install(tmp_path / "fake-xcrun")
    monkeypatch.setenv("XCFBUILD_FAKE_DIR", str(fake.directory))
    monkeypatch.setenv("XCFBUILD_XCRUN", str(fake.executable))
    return fake
