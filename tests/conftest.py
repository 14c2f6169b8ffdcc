"""Pytest configuration and fixtures for toolguard tests."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Generator

import pytest

from toolguard import sandbox
from toolguard.config import ExecConfig
from toolguard.ratelimit import RateLimiter
from toolguard.security.paths import PathJail
from toolguard.tools.registry import Registry


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory(prefix="toolguard_test_") as tmp:
        yield Path(tmp).resolve()


@pytest.fixture
def workspace(temp_dir: Path) -> Path:
    """A workspace with a couple of files in it."""
    ws = temp_dir / "workspace"
    ws.mkdir()
    (ws / "test.txt").write_text("hello world\nsecond line\n")
    (ws / "data.json").write_text('{"key": "value"}')
    return ws


@pytest.fixture(autouse=True)
def clean_sandbox_detection() -> Generator[None, None, None]:
    """Detection state is process-wide; never leak it between tests."""
    sandbox.clear_override()
    sandbox.reset_cache()
    yield
    sandbox.clear_override()
    sandbox.reset_cache()


@pytest.fixture
def jail(workspace: Path) -> PathJail:
    return PathJail(workspace)


@pytest.fixture
def exec_config(workspace: Path) -> ExecConfig:
    """Unsandboxed, restricted-shell exec settings."""
    return ExecConfig(working_dir=workspace, sandbox="none", timeout=10)


@pytest.fixture
def registry() -> Registry:
    """An empty registry without rate limits."""
    return Registry(session_key="test", rate_limiter=RateLimiter())
