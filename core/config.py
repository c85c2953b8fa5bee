"""
Configuration for url-archiver.

Two layers:
- ArchiverDefaults: fixed constants (protocols, User-Agent, default paths).
- RunConfig: per-run knobs (concurrency, retry policy, fetch limits), built
  from defaults, `URL_ARCHIVER_*` environment variables, and CLI overrides.
"""

from __future__ import annotations

import os
from typing import Any, Mapping, Optional, Set

from pydantic import BaseModel, ConfigDict, Field


class ArchiverDefaults:
    """
    Fixed settings shared by every run.

    These are not per-run knobs; change them here, not from the command line.
    """

    # Protocol whitelist: only http(s), no file://, ftp, etc.
    ALLOWED_PROTOCOLS: Set[str] = {"http", "https"}
    """Only HTTP(S) allowed."""

    USER_AGENT: str = "url-archiver/0.1"
    """User-Agent header sent with every fetch."""

    DEFAULT_INPUT_PATH: str = "urls.txt"
    """Line-delimited URL list read when --urls is omitted."""

    DEFAULT_DB_PATH: str = "urls.db"
    """SQLite database used when --db is omitted."""

    # Retry policy around saves
    DEFAULT_MAX_RETRIES: int = 10
    """Additional save attempts after the first failure."""

    DEFAULT_RETRY_DELAY_SECONDS: float = 0.1
    """Fixed pause between save attempts."""

    DEFAULT_STORE_BUSY_TIMEOUT_SECONDS: float = 5.0
    """How long a SQLite connection waits on a locked database."""

    ENV_PREFIX: str = "URL_ARCHIVER_"
    """Prefix of environment variables read by RunConfig.from_env()."""

    @classmethod
    def validate(cls) -> None:
        """
        Validate constants at startup.

        Raises:
            AssertionError: If any constant is out of range.
        """
        assert cls.ALLOWED_PROTOCOLS, "ALLOWED_PROTOCOLS must not be empty"
        assert cls.DEFAULT_MAX_RETRIES >= 0, "DEFAULT_MAX_RETRIES must be ≥0"
        assert (
            cls.DEFAULT_RETRY_DELAY_SECONDS >= 0
        ), "DEFAULT_RETRY_DELAY_SECONDS must be ≥0"
        assert (
            cls.DEFAULT_STORE_BUSY_TIMEOUT_SECONDS > 0
        ), "DEFAULT_STORE_BUSY_TIMEOUT_SECONDS must be > 0"


# Validate at module import time
ArchiverDefaults.validate()


def default_concurrency() -> int:
    """Worker/slot count derived from available CPUs."""
    return (os.cpu_count() or 1) * 2


# Environment variable suffix -> RunConfig field
_ENV_FIELDS: dict[str, str] = {
    "CONCURRENCY": "concurrency",
    "MAX_RETRIES": "max_retries",
    "RETRY_DELAY": "retry_delay_seconds",
    "FETCH_TIMEOUT": "fetch_timeout_seconds",
    "MAX_BODY_BYTES": "max_body_bytes",
    "STRICT_STATUS": "strict_status",
    "QUEUE_SIZE": "queue_size",
    "STORE_BUSY_TIMEOUT": "store_busy_timeout_seconds",
}


class RunConfig(BaseModel):
    """Knobs for one archive run."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    concurrency: int = Field(default_factory=default_concurrency, ge=1)
    max_retries: int = Field(ArchiverDefaults.DEFAULT_MAX_RETRIES, ge=0)
    retry_delay_seconds: float = Field(ArchiverDefaults.DEFAULT_RETRY_DELAY_SECONDS, ge=0)

    # None = no client-side timeout (block until the server answers)
    fetch_timeout_seconds: Optional[float] = Field(None, gt=0)
    # None = no body size limit
    max_body_bytes: Optional[int] = Field(None, ge=1)
    # False = any HTTP status is stored as content
    strict_status: bool = False

    # Feeder backpressure only; the admission gate bounds in-flight work.
    queue_size: Optional[int] = Field(None, ge=1)

    store_busy_timeout_seconds: float = Field(
        ArchiverDefaults.DEFAULT_STORE_BUSY_TIMEOUT_SECONDS, gt=0
    )

    @property
    def effective_queue_size(self) -> int:
        """Task queue capacity (defaults to the concurrency limit)."""
        return self.queue_size or self.concurrency

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> RunConfig:
        """
        Build a config from `URL_ARCHIVER_*` variables plus explicit overrides.

        Overrides whose value is None are ignored, so unset CLI flags fall
        through to the environment and then to the defaults.

        Raises:
            pydantic.ValidationError: If a value is malformed or out of range.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for suffix, field_name in _ENV_FIELDS.items():
            raw = env.get(f"{ArchiverDefaults.ENV_PREFIX}{suffix}")
            if raw is not None and raw.strip() != "":
                values[field_name] = raw.strip()
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)
