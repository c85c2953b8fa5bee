"""Core module for url-archiver."""

from core.models import (
    FetchedDoc,
    FetchErrorCode,
    FetchLog,
    Record,
    RunStatus,
    RunSummary,
    UrlOutcome,
)
from core.config import ArchiverDefaults, RunConfig
from core.pipeline import (
    DiscoverStage,
    FetchStage,
    RecordExistsError,
    RecordStore,
    StoreError,
    StoreQueryError,
    StoreSetupError,
    StoreWriteError,
)
from core.retry import RetriesExhaustedError, fixed_delay, with_retry
from core.admission import ConcurrencyGate
from core.worker import Worker
from core.dispatcher import Dispatcher

__all__ = [
    "FetchedDoc",
    "FetchErrorCode",
    "FetchLog",
    "Record",
    "RunStatus",
    "RunSummary",
    "UrlOutcome",
    "ArchiverDefaults",
    "RunConfig",
    "DiscoverStage",
    "FetchStage",
    "RecordExistsError",
    "RecordStore",
    "StoreError",
    "StoreQueryError",
    "StoreSetupError",
    "StoreWriteError",
    "RetriesExhaustedError",
    "fixed_delay",
    "with_retry",
    "ConcurrencyGate",
    "Worker",
    "Dispatcher",
]
