"""
Pytest Configuration and Fixtures.
Shared fixtures for all test modules.
"""

from __future__ import annotations

import asyncio
import io
import shutil
import sys
import tempfile
from collections.abc import Generator
from datetime import datetime
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(PROJECT_ROOT))


# ==================== Async Support ====================
# Use pytest-asyncio's recommended configuration for session-scoped event loops

pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(scope="session")
def event_loop_policy():
    """Return the event loop policy for the test session."""
    return asyncio.DefaultEventLoopPolicy()


# ==================== Filesystem Fixtures ====================

# Fixed "now" so file names are predictable: general-2026-10-19.log
FIXED_NOW = datetime(2026, 10, 19, 14, 30, 5)
MB = 1024 * 1024


@pytest.fixture
def temp_dir() -> Generator[str, None, None]:
    """Create a temporary directory."""
    path_str = tempfile.mkdtemp()
    path = Path(path_str)
    yield path_str
    # Cleanup
    if path.exists():
        shutil.rmtree(path)


@pytest.fixture
def console() -> io.StringIO:
    """Captured console stream for LogWriter."""
    return io.StringIO()


@pytest.fixture
def writer_factory(temp_dir: str, console: io.StringIO):
    """Build LogWriters with a frozen clock and captured console; kwargs override."""
    from utils.monitoring.logger import LogWriter

    def factory(log_dir: str | Path | None = None, **kwargs: Any) -> LogWriter:
        kwargs.setdefault("timezone", None)
        kwargs.setdefault("clock", lambda: FIXED_NOW)
        kwargs.setdefault("stream", console)
        return LogWriter(log_dir if log_dir is not None else temp_dir, **kwargs)

    return factory


@pytest.fixture
def log_writer(writer_factory) -> Any:
    """LogWriter on a temp dir with a frozen clock and captured console."""
    return writer_factory()


# ==================== Mock Fixtures ====================


def make_process(rss_mb: float = 50, vms_mb: float = 400) -> MagicMock:
    """psutil.Process stand-in reporting the given memory figures."""
    process = MagicMock()
    process.memory_info.return_value = MagicMock(rss=int(rss_mb * MB), vms=int(vms_mb * MB))
    return process


@pytest.fixture
def mock_process() -> MagicMock:
    return make_process()


@pytest.fixture
def process_factory():
    """Build psutil.Process stand-ins with custom memory figures."""
    return make_process


@pytest.fixture
def mock_logger() -> MagicMock:
    """Logging surface recording every call."""
    return MagicMock()


# ==================== Environment Fixtures ====================


@pytest.fixture
def mock_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set up mock environment variables."""
    monkeypatch.setenv("BOT_TOKEN", "123456:test_token")
    monkeypatch.setenv("LOG_TIMEZONE", "UTC")
    monkeypatch.delenv("DEBUG", raising=False)


# ==================== Pytest Configuration ====================


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
