"""Fetcher subsystem: blocking HTTP retrieval with structured fetch logs."""

from fetcher.http import fetch_url
from fetcher.http import BodyLimitExceeded, HttpFetchStage
from fetcher.logging import emit_fetch_log, fetch_log_to_dict

__all__ = [
    "fetch_url",
    "BodyLimitExceeded",
    "HttpFetchStage",
    "emit_fetch_log",
    "fetch_log_to_dict",
]
