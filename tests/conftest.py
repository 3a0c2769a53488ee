"""Pytest configuration and fixtures shared by all xcfbuild tests."""

import io
import sys

import pytest

from xcfbuild import output


@pytest.fixture(autouse=True)
def console_output():
    """Capture xcfbuild's timestamped console lines for the duration of a test.

    Yields the StringIO receiving every line, so tests can assert on what a
    user would have seen.
    """
    stream = io.StringIO()
    output.init_timer(stream)
    output.set_verbose(True)
    yield stream
    output.init_timer(sys.stdout)
