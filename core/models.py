"""
Core Pydantic models for url-archiver.

Design principles:
- A Record is the only persisted unit: (url, content), keyed by url
- Fetch results and fetch logs are transient, never stored
- Run summaries are counters, updated by the dispatcher under its lock
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


def _utc_now() -> datetime:
    """Return timezone-aware UTC timestamp."""
    return datetime.now(UTC)


# ============================================================================
# Enums
# ============================================================================

class FetchErrorCode(str, Enum):
    """Why did a fetch fail?"""
    TIMEOUT = "TIMEOUT"
    FETCH_ERROR = "FETCH_ERROR"  # Network/transport error
    UNSUPPORTED_SCHEME = "UNSUPPORTED_SCHEME"  # Not http(s)
    BODY_TOO_LARGE = "BODY_TOO_LARGE"
    HTTP_STATUS = "HTTP_STATUS"  # Non-2xx while strict_status is on


class UrlOutcome(str, Enum):
    """Terminal state of one task."""
    SAVED = "SAVED"
    SKIPPED = "SKIPPED"  # Already in the store
    DUPLICATE = "DUPLICATE"  # Store rejected the insert (unique key)
    FETCH_FAILED = "FETCH_FAILED"
    SAVE_FAILED = "SAVE_FAILED"  # Retries exhausted
    ERROR = "ERROR"  # Unexpected exception inside the worker


class RunStatus(str, Enum):
    """Status of a run."""
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# ============================================================================
# Persisted record
# ============================================================================

class Record(BaseModel):
    """
    One stored URL body.

    Never mutated after creation: a URL that is already stored is skipped,
    not overwritten.
    """
    url: str
    content: Optional[str] = None


# ============================================================================
# Fetch
# ============================================================================

class FetchedDoc(BaseModel):
    """
    Raw result of a successful fetch.

    body_bytes is the full response body; text() is what gets stored.
    """
    url: str
    final_url: str  # After redirects
    status_code: int
    headers: Dict[str, str] = Field(default_factory=dict)
    body_bytes: bytes = b""
    encoding: Optional[str] = None  # Charset from Content-Type, if any
    latency_ms: Optional[int] = None

    def text(self) -> str:
        """Decode the body with the response charset, falling back to UTF-8."""
        encoding = self.encoding or "utf-8"
        try:
            return self.body_bytes.decode(encoding, errors="replace")
        except LookupError:
            # Unknown charset label from the server
            return self.body_bytes.decode("utf-8", errors="replace")


class FetchLog(BaseModel):
    """
    Log entry for a single fetch operation.
    """
    id: str = Field(default_factory=lambda: str(uuid4()))
    url: str

    status_code: Optional[int] = None  # HTTP status
    latency_ms: Optional[int] = None  # Time to full body
    bytes_received: Optional[int] = None

    error_code: Optional[FetchErrorCode] = None
    error: Optional[str] = None  # Exception text for failed fetches

    created_at: datetime = Field(default_factory=_utc_now)
    run_id: str


# ============================================================================
# Run summary
# ============================================================================

_OUTCOME_COUNTERS: Dict[UrlOutcome, str] = {
    UrlOutcome.SAVED: "saved_count",
    UrlOutcome.SKIPPED: "skipped_count",
    UrlOutcome.DUPLICATE: "duplicate_count",
    UrlOutcome.FETCH_FAILED: "fetch_error_count",
    UrlOutcome.SAVE_FAILED: "save_error_count",
    UrlOutcome.ERROR: "error_count",
}


class RunSummary(BaseModel):
    """
    Counters for an entire run.

    Every dequeued task ends in exactly one outcome, so after a clean run
    processed_count == enqueued_count.
    """
    id: str = Field(default_factory=lambda: str(uuid4()))

    started_at: datetime = Field(default_factory=_utc_now)
    ended_at: Optional[datetime] = None

    status: RunStatus = RunStatus.RUNNING
    error_message: Optional[str] = None

    enqueued_count: int = 0
    saved_count: int = 0
    skipped_count: int = 0
    duplicate_count: int = 0
    fetch_error_count: int = 0
    save_error_count: int = 0
    error_count: int = 0

    def count_outcome(self, outcome: UrlOutcome) -> None:
        """Increment the counter for one task outcome (caller holds the lock)."""
        field_name = _OUTCOME_COUNTERS[outcome]
        setattr(self, field_name, getattr(self, field_name) + 1)

    @property
    def processed_count(self) -> int:
        """Tasks that reached a terminal outcome."""
        return sum(getattr(self, field_name) for field_name in _OUTCOME_COUNTERS.values())
