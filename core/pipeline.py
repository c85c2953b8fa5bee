"""
Stage contracts for url-archiver.

Defines the seams between the pieces of a run:
discover → (exists check) → fetch → save

The dispatcher and workers only talk to these interfaces, so tests can swap
in stubs and the SQLite/HTTP implementations stay replaceable.
"""

from abc import ABC, abstractmethod
from typing import Iterator, Optional

from core.models import FetchedDoc, FetchLog


# ============================================================================
# Store errors
# ============================================================================

class StoreError(Exception):
    """Base class for persistence gateway failures."""


class StoreSetupError(StoreError):
    """The store could not be opened or its schema created (fatal)."""


class StoreQueryError(StoreError):
    """An existence query failed. Distinct from "not found"."""


class StoreWriteError(StoreError):
    """A save failed and was rolled back. Transient; safe to retry."""


class RecordExistsError(StoreError):
    """The unique key rejected the insert: a record for this URL exists."""


# ============================================================================
# Stage Interfaces
# ============================================================================

class DiscoverStage(ABC):
    """
    Discover stage: given a seed, produce an iterator of URLs to fetch.

    Example:
      seed = "urls.txt"
      → yields ["https://example.com/a", "https://example.com/b", ...]
    """

    @abstractmethod
    def discover(self, seed: str, run_id: str) -> Iterator[str]:
        """
        Discover URLs from seed.

        Args:
            seed: Starting point (file path, etc.)
            run_id: Run ID for tracking

        Yields:
            URLs in source order (duplicates are not removed)

        Raises:
            OSError: If the seed cannot be opened. Raised before the first
                URL is yielded, so the run never starts.
        """
        pass


class FetchStage(ABC):
    """
    Fetch stage: given a URL, download its full body.

    Responsibilities:
    - One blocking retrieval per call, no retries
    - Release the underlying connection on every exit path
    - Observability: log all fetches (success + error)
    """

    @abstractmethod
    def fetch(self, url: str, run_id: str) -> tuple[Optional[FetchedDoc], FetchLog]:
        """
        Fetch a single URL.

        Args:
            url: URL to fetch
            run_id: Run ID for tracking

        Returns:
            (FetchedDoc, FetchLog entry)
            - If fetch fails, FetchedDoc is None and FetchLog.error_code is set
            - If fetch succeeds, FetchedDoc carries status_code and body_bytes

        Always returns a FetchLog (never raises; errors logged)
        """
        pass


class RecordStore(ABC):
    """
    Persistence gateway: existence check and transactional insert.

    Implementations must be safe to call from many worker threads at once.
    """

    @abstractmethod
    def exists(self, url: str) -> bool:
        """
        Return whether a record for url is already stored.

        Raises:
            StoreQueryError: If the query itself failed. Callers decide
                explicitly how to treat an unknown answer.
        """
        pass

    @abstractmethod
    def save(self, url: str, content: str) -> None:
        """
        Insert one record inside a single transaction.

        The write is durable and visible to later exists()/save() calls once
        this returns. On failure the transaction is rolled back, so a retry
        never produces a second row.

        Raises:
            RecordExistsError: The unique key rejected a duplicate URL.
            StoreWriteError: Any other (transient) storage failure.
        """
        pass
