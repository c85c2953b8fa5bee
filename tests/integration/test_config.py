"""Tests for run configuration defaults, environment parsing, and validation."""

from __future__ import annotations

import os

import pytest
from pydantic import ValidationError

from core.config import ArchiverDefaults, RunConfig, default_concurrency


def test_defaults_follow_archiver_constants():
    """Unset knobs fall back to the fixed defaults."""
    config = RunConfig.from_env({})

    assert config.concurrency == default_concurrency() == (os.cpu_count() or 1) * 2
    assert config.max_retries == ArchiverDefaults.DEFAULT_MAX_RETRIES == 10
    assert config.retry_delay_seconds == pytest.approx(0.1)
    assert config.fetch_timeout_seconds is None
    assert config.max_body_bytes is None
    assert config.strict_status is False
    assert config.effective_queue_size == config.concurrency


def test_environment_values_are_parsed():
    """URL_ARCHIVER_* strings are coerced to typed fields."""
    config = RunConfig.from_env(
        {
            "URL_ARCHIVER_CONCURRENCY": "7",
            "URL_ARCHIVER_MAX_RETRIES": "0",
            "URL_ARCHIVER_RETRY_DELAY": "1.5",
            "URL_ARCHIVER_FETCH_TIMEOUT": "30",
            "URL_ARCHIVER_STRICT_STATUS": "true",
            "URL_ARCHIVER_QUEUE_SIZE": "64",
            "UNRELATED": "ignored",
        }
    )

    assert config.concurrency == 7
    assert config.max_retries == 0
    assert config.retry_delay_seconds == 1.5
    assert config.fetch_timeout_seconds == 30.0
    assert config.strict_status is True
    assert config.effective_queue_size == 64


def test_explicit_overrides_win_and_none_is_ignored():
    """CLI overrides beat the environment; unset flags (None) do not."""
    config = RunConfig.from_env(
        {"URL_ARCHIVER_CONCURRENCY": "7", "URL_ARCHIVER_MAX_RETRIES": "4"},
        concurrency=2,
        max_retries=None,
    )

    assert config.concurrency == 2
    assert config.max_retries == 4


def test_blank_environment_values_are_ignored():
    """An exported-but-empty variable does not override the default."""
    config = RunConfig.from_env({"URL_ARCHIVER_MAX_RETRIES": "  "})

    assert config.max_retries == ArchiverDefaults.DEFAULT_MAX_RETRIES


@pytest.mark.parametrize(
    "overrides",
    [
        {"concurrency": 0},
        {"max_retries": -1},
        {"retry_delay_seconds": -0.5},
        {"fetch_timeout_seconds": 0},
        {"queue_size": 0},
    ],
)
def test_out_of_range_values_rejected(overrides: dict):
    """Field constraints reject nonsensical settings."""
    with pytest.raises(ValidationError):
        RunConfig(**overrides)


def test_malformed_environment_value_rejected():
    """Non-numeric values fail validation rather than being silently dropped."""
    with pytest.raises(ValidationError):
        RunConfig.from_env({"URL_ARCHIVER_CONCURRENCY": "many"})


def test_unknown_fields_and_mutation_rejected():
    """Config is closed and frozen."""
    with pytest.raises(ValidationError):
        RunConfig(concurency=3)

    config = RunConfig(concurrency=3)
    with pytest.raises(ValidationError):
        config.concurrency = 4
