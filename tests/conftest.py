"""Pytest configuration and fixtures for ghost tests.

This conftest addresses Python 3.13 compatibility issues with pytest's capture fixtures.
Python 3.13 changed how stdout/stderr are handled, causing "I/O operation on closed file"
errors during test teardown. This is a known issue: https://github.com/pytest-dev/pytest/issues/11439

It also provides fixtures that lay out small ghost workspaces on disk.
"""

import sys
import textwrap
import warnings
from pathlib import Path
from typing import Callable, Iterable

import pytest

from ghost import output
from ghost.build.build_context import BuildContext, create_build_context
from ghost.build.build_profiles import default_profile
from ghost.build.toolchain import default_toolchain

# Suppress ResourceWarnings from file cleanup in Python 3.13
if sys.version_info >= (3, 13):
    warnings.filterwarnings("ignore", category=ResourceWarning)


@pytest.fixture(autouse=True)
def _restore_stdio():  # noqa: PT004
    """Ensure stdout/stderr are always restored after each test.

    This prevents "I/O operation on closed file" errors in Python 3.13
    when tests raise exceptions that close stdout/stderr.
    """
    yield

    # Restore if they were closed during the test
    if sys.stdout.closed:
        sys.stdout = sys.__stdout__
    if sys.stderr.closed:
        sys.stderr = sys.__stderr__


@pytest.fixture(autouse=True)
def _reset_output():  # noqa: PT004
    """Reset the global output state between tests."""
    yield
    output._output_stream = None
    output._verbose = False


@pytest.hookimpl(hookwrapper=True, tryfirst=True)
def pytest_runtest_call(item):  # noqa: ARG001
    """Wrap test execution to handle stdout/stderr closure gracefully."""
    yield

    # After test execution, ensure streams aren't closed
    if hasattr(sys.stdout, "closed") and sys.stdout.closed:
        sys.stdout = sys.__stdout__
    if hasattr(sys.stderr, "closed") and sys.stderr.closed:
        sys.stderr = sys.__stderr__


@pytest.fixture
def write_workspace(tmp_path) -> Callable[..., Path]:
    """Return a function writing the root ghost.build of a workspace in tmp_path."""

    def _write(members: Iterable[str], extra: str = "") -> Path:
        member_list = ", ".join(f'"{m}"' for m in members)
        text = f'[project]\nname = "demo"\nversion = "0.1.0"\n\n[workspace]\nmembers = [{member_list}]\n'
        if extra:
            text += "\n" + textwrap.dedent(extra)
        (tmp_path / "ghost.build").write_text(text, encoding="utf-8")
        return tmp_path

    return _write


@pytest.fixture
def write_package(tmp_path) -> Callable[..., Path]:
    """Return a function creating a member directory with a manifest and source files.

    Usage:
        root = write_package("libs/add", '''
            [package]
            name = "add"
            type = "static"
            [sources]
            files = ["src/add.c"]
        ''', files=["src/add.c"])
    """

    def _write(member: str, manifest: str, files: Iterable[str] = ()) -> Path:
        root = tmp_path / member
        root.mkdir(parents=True, exist_ok=True)
        (root / "ghost.build").write_text(textwrap.dedent(manifest), encoding="utf-8")
        for rel in files:
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("/* test source */\n", encoding="utf-8")
        return root

    return _write


@pytest.fixture
def build_ctx(tmp_path) -> BuildContext:
    """Build context rooted at tmp_path with the built-in toolchain and profile."""
    return create_build_context(default_toolchain(), default_profile(), tmp_path, environ={})
