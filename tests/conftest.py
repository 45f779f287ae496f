"""Shared pytest fixtures for content-sync tests."""

from datetime import datetime, timezone

import pytest

from content_sync.config import Config
from content_sync.core.store import InMemoryStore

_ENV_VARS = (
    "CONTENT_SYNC_CONFIG",
    "CONTENT_SYNC_STORE_URL",
    "CONTENT_SYNC_STORE_KEY",
    "CONTENT_SYNC_TABLE",
    "CONTENT_SYNC_BATCH_SIZE",
    "CONTENT_SYNC_MAX_PARALLEL_WRITES",
    "CONTENT_SYNC_OPTIMIZE_BY_DATE",
    "CONTENT_SYNC_REVALIDATE_URL",
    "CONTENT_SYNC_REVALIDATE_SECRET",
    "LOG_LEVEL",
    "LOG_FILE",
)

FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live PostgREST store",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live PostgREST store"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep the developer's shell and .env out of every test."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fixed_clock():
    """Clock returning 2024-06-01T12:00:00Z."""
    return lambda: FIXED_NOW


@pytest.fixture
def store(fixed_clock):
    return InMemoryStore(clock=fixed_clock)


@pytest.fixture
def mock_config():
    return Config(
        store_url="https://db.example.com",
        store_key="service-key",
    )


class RecordingInvalidator:
    """Invalidator double that remembers every call."""

    def __init__(self, fail: bool = False):
        self.calls: list[tuple[list[str], str | None]] = []
        self.fail = fail

    def invalidate(self, slugs, scope):
        self.calls.append((list(slugs), scope))
        if self.fail:
            raise RuntimeError("revalidation endpoint down")


@pytest.fixture
def invalidator():
    return RecordingInvalidator()


@pytest.fixture
def failing_invalidator():
    return RecordingInvalidator(fail=True)
