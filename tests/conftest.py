"""Shared test fixtures for routefetch.

Provides reusable fixtures for isolating configuration, managing global
output state and building mock transports.  These fixtures are
automatically discovered by pytest and available to all test modules
without explicit imports.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from routefetch.output import OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time, so a manager created while capsys was active must not
    outlive the test.
    """
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep real ROUTEFETCH_* variables and ./routefetch.json out of tests.

    Changes the working directory to tmp_path so that project config is
    only picked up when a test writes one.
    """
    for var in [
        "ROUTEFETCH_TIMEOUT",
        "ROUTEFETCH_VERIFY_SSL",
        "ROUTEFETCH_FOLLOW_REDIRECTS",
        "ROUTEFETCH_VERBOSE",
    ]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet, colourless output manager."""
    output = OutputManager(no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def verbose_output() -> OutputManager:
    """Install a colourless output manager with debug traces enabled."""
    output = OutputManager(no_color=True, verbose=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Transport fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def recorded() -> list[httpx.Request]:
    """Requests seen by :func:`echo_transport`, in order."""
    return []


@pytest.fixture
def echo_transport(recorded: list[httpx.Request]) -> httpx.MockTransport:
    """A transport that records each request and answers 200 ``{"ok": true}``."""

    def handler(request: httpx.Request) -> httpx.Response:
        recorded.append(request)
        return httpx.Response(200, json={"ok": True})

    return httpx.MockTransport(handler)


@pytest.fixture
def make_transport() -> Callable[..., httpx.MockTransport]:
    """Factory for a transport answering every request with a fixed response."""

    def factory(
        status_code: int = 200,
        content: bytes = b"",
        headers: dict[str, str] | None = None,
    ) -> httpx.MockTransport:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status_code, content=content, headers=headers or {})

        return httpx.MockTransport(handler)

    return factory
