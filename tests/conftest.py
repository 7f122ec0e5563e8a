"""
Pytest configuration and shared fixtures for mcphost tests.
"""

import io
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from mcphost.config import ClientSettings, ServerConfig  # noqa: E402
from mcphost.logging import HostLogger, LogConfig  # noqa: E402
from mcphost.types import LogFormat, LogLevel  # noqa: E402


# =============================================================================
# Path Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def tests_dir() -> Path:
    """Return the tests directory."""
    return Path(__file__).parent


@pytest.fixture(scope="session")
def fixtures_dir(tests_dir: Path) -> Path:
    """Return the fixtures directory."""
    return tests_dir / "fixtures"


@pytest.fixture(scope="session")
def fake_server_path(fixtures_dir: Path) -> Path:
    """Return path to the scripted fake MCP server."""
    return fixtures_dir / "fake_mcp_server.py"


# =============================================================================
# Server / Client Fixtures
# =============================================================================


@pytest.fixture
def server_config(fake_server_path: Path) -> Callable[..., ServerConfig]:
    """Build a ServerConfig that runs the fake server with the given flags."""

    def _make(*flags: str, name: str = "fake", **kwargs) -> ServerConfig:
        return ServerConfig(
            name=name,
            command=sys.executable,
            args=(str(fake_server_path), *flags),
            **kwargs,
        )

    return _make


@pytest.fixture
def client_settings() -> ClientSettings:
    """Settings with short timeouts for fast tests."""
    return ClientSettings(
        request_timeout=5.0,
        startup_grace=0.05,
        kill_timeout=1.0,
    )


@pytest.fixture
def log_output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def logger(log_output: io.StringIO) -> HostLogger:
    """JSON logger writing to an in-memory stream."""
    return HostLogger(LogConfig(level=LogLevel.DEBUG, format=LogFormat.JSON, output=log_output))


# =============================================================================
# Markers Configuration
# =============================================================================


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "property: Property-based tests")
    config.addinivalue_line("markers", "mcp_client: Tests that spawn the fake MCP server")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption("--run-slow", action="store_true", default=False, help="Run slow tests")


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow is given."""
    if config.getoption("--run-slow"):
        return
    skip_slow = pytest.mark.skip(reason="needs --run-slow")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)
