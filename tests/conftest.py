"""
Shared pytest fixtures and configuration for url-archiver tests.
"""

import json

import pytest

from core.config import RunConfig
from storage.sqlite import SQLiteRecordStore


# ============================================================================
# Fixtures: Config
# ============================================================================

@pytest.fixture
def fast_config() -> RunConfig:
    """Small pool, one retry, no pauses between save attempts."""
    return RunConfig(concurrency=2, max_retries=1, retry_delay_seconds=0.0)


# ============================================================================
# Fixtures: Storage
# ============================================================================

@pytest.fixture
def db_path(tmp_path):
    """Path of a fresh SQLite database inside the test's temp dir."""
    return tmp_path / "urls.db"


@pytest.fixture
def record_store(db_path) -> SQLiteRecordStore:
    """Initialized, empty SQLite record store."""
    return SQLiteRecordStore(db_path, busy_timeout_seconds=1.0)


# ============================================================================
# Fixtures: Structured log parsing
# ============================================================================

@pytest.fixture
def json_lines():
    """Parse JSON log lines captured from stdout."""

    def _parse(stdout: str) -> list[dict]:
        lines = [line.strip() for line in stdout.splitlines() if line.strip()]
        return [json.loads(line) for line in lines]

    return _parse
