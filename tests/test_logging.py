"""
Tests for chocopack.logging module.

Tests verbosity filtering, stream routing, and the global logger.
"""

from __future__ import annotations

import io

import pytest

from chocopack.logging import (
    DefaultLogger,
    SilentLogger,
    get_global_logger,
    get_logger,
    set_global_logger,
)

# All tests in this file are unit tests (fast, mocked)
pytestmark = pytest.mark.unit


def _logger(**kwargs):
    out, err = io.StringIO(), io.StringIO()
    return DefaultLogger(out=out, err=err, **kwargs), out, err


def test_quiet_logger_hides_verbose_and_debug():
    """Test that only steps and warnings show without flags."""
    logger, out, _ = _logger()

    logger.step(1, 5, "Installing package...")
    logger.verbose("CHOCO", "hidden")
    logger.debug("CHOCO", "hidden")
    logger.warning("ICON", "no icon")

    assert out.getvalue().splitlines() == [
        "[1/5] Installing package...",
        "[ICON] WARNING: no icon",
    ]


def test_debug_implies_verbose():
    """Test that debug mode also shows verbose messages."""
    logger, out, _ = _logger(debug=True)

    logger.verbose("CHOCO", "v")
    logger.debug("CHOCO", "d")

    assert out.getvalue().splitlines() == ["[CHOCO] v", "[CHOCO] d"]


def test_errors_go_to_err_stream():
    """Test that errors are written to the error stream only."""
    logger, out, err = _logger()

    logger.error("PIPELINE", "7zip failed")

    assert out.getvalue() == ""
    assert err.getvalue() == "[PIPELINE] ERROR: 7zip failed\n"


def test_global_logger_default_and_replace():
    """Test the silent default and replacing the global logger."""
    original = get_global_logger()
    try:
        set_global_logger(SilentLogger())
        assert isinstance(get_global_logger(), SilentLogger)

        replacement = get_logger(verbose=True)
        set_global_logger(replacement)
        assert get_global_logger() is replacement
    finally:
        set_global_logger(original)
