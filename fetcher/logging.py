"""Structured logging helpers for fetch operations."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from core.models import FetchLog
from core.structured_logging import emit_json_event


def _isoformat(value: datetime | None) -> str | None:
    """Serialize datetimes for logs."""
    if value is None:
        return None
    return value.isoformat()


def fetch_log_to_dict(fetch_log: FetchLog) -> dict[str, Any]:
    """Convert FetchLog to a JSON-safe dictionary."""
    return {
        "id": fetch_log.id,
        "url": fetch_log.url,
        "status_code": fetch_log.status_code,
        "latency_ms": fetch_log.latency_ms,
        "bytes_received": fetch_log.bytes_received,
        "error_code": fetch_log.error_code.value if fetch_log.error_code else None,
        "error": fetch_log.error,
        "fetched_at": _isoformat(fetch_log.created_at),
    }


def emit_fetch_log(fetch_log: FetchLog) -> str:
    """Emit one fetch_log JSON line and return it for testability."""
    return emit_json_event(
        "fetch_log",
        run_id=fetch_log.run_id,
        level="warning" if fetch_log.error_code else "info",
        component="fetcher",
        **fetch_log_to_dict(fetch_log),
    )
