"""
Worker: process one URL at a time from the shared task queue.

Per task, inside one admission slot:
1. exists check → skip if stored
2. fetch → abandon on failure (no fetch retry)
3. save with retry → abandon after retries are exhausted
"""

from __future__ import annotations

import queue
from typing import Any, Callable

from core.admission import ConcurrencyGate
from core.config import RunConfig
from core.models import UrlOutcome
from core.pipeline import (
    FetchStage,
    RecordExistsError,
    RecordStore,
    StoreQueryError,
    StoreWriteError,
)
from core.retry import RetriesExhaustedError, with_retry
from core.structured_logging import emit_json_event

# Put once per worker by the feeder after the source is exhausted.
QUEUE_CLOSED = object()


class Worker:
    """One long-lived consumer of the task queue."""

    def __init__(
        self,
        worker_id: int,
        *,
        store: RecordStore,
        fetcher: FetchStage,
        gate: ConcurrencyGate,
        config: RunConfig,
        run_id: str,
        on_outcome: Callable[[str, UrlOutcome], None] | None = None,
        sleep_fn: Callable[[float], None] | None = None,
    ) -> None:
        """Bind the shared run context; nothing here is owned by the worker."""
        self.worker_id = worker_id
        self.store = store
        self.fetcher = fetcher
        self.gate = gate
        self.config = config
        self.run_id = run_id
        self.on_outcome = on_outcome
        self.sleep_fn = sleep_fn

    def _emit(self, event_type: str, *, level: str = "info", **payload: Any) -> None:
        emit_json_event(
            event_type,
            run_id=self.run_id,
            level=level,
            component="worker",
            worker_id=self.worker_id,
            **payload,
        )

    def run(self, tasks: "queue.Queue[object]") -> None:
        """Consume tasks until the close sentinel arrives."""
        while True:
            task = tasks.get()
            try:
                if task is QUEUE_CLOSED:
                    return
                url = str(task)
                try:
                    outcome = self.process(url)
                except Exception as exc:
                    outcome = UrlOutcome.ERROR
                    self._emit(
                        "worker_task_error",
                        level="error",
                        url=url,
                        error_type=type(exc).__name__,
                        error=str(exc),
                    )
                if self.on_outcome:
                    self.on_outcome(url, outcome)
            finally:
                tasks.task_done()

    def process(self, url: str) -> UrlOutcome:
        """Run one task to a terminal outcome. The slot is released on every path."""
        with self.gate.slot():
            if self._already_stored(url):
                self._emit("url_skipped", url=url, reason="already_in_store")
                return UrlOutcome.SKIPPED

            fetched_doc, fetch_log = self.fetcher.fetch(url, self.run_id)
            if fetched_doc is None:
                self._emit(
                    "fetch_failed",
                    level="warning",
                    url=url,
                    error_code=fetch_log.error_code.value if fetch_log.error_code else None,
                    error=fetch_log.error,
                )
                return UrlOutcome.FETCH_FAILED

            content = fetched_doc.text()
            try:
                with_retry(
                    lambda: self.store.save(url, content),
                    max_retries=self.config.max_retries,
                    delay=self.config.retry_delay_seconds,
                    retry_on=(StoreWriteError,),
                    sleep_fn=self.sleep_fn,
                    on_retry=lambda attempt, limit, exc: self._emit(
                        "save_retry",
                        level="warning",
                        url=url,
                        retry=attempt,
                        max_retries=limit,
                        error=str(exc),
                    ),
                )
            except RecordExistsError as exc:
                self._emit("save_duplicate", level="warning", url=url, error=str(exc))
                return UrlOutcome.DUPLICATE
            except RetriesExhaustedError as exc:
                self._emit(
                    "save_failed",
                    level="error",
                    url=url,
                    attempts=exc.attempts,
                    error_type=type(exc.last_error).__name__,
                    error=str(exc.last_error),
                )
                return UrlOutcome.SAVE_FAILED

            self._emit(
                "url_processed",
                url=url,
                status_code=fetched_doc.status_code,
                bytes_received=len(fetched_doc.body_bytes),
            )
            return UrlOutcome.SAVED

    def _already_stored(self, url: str) -> bool:
        """
        Existence pre-check.

        A failed query is treated as "not stored": the fetch goes ahead and
        the unique key still rejects an actual duplicate on save.
        """
        try:
            return self.store.exists(url)
        except StoreQueryError as exc:
            self._emit(
                "exists_check_failed",
                level="warning",
                url=url,
                policy="treat_as_missing",
                error=str(exc),
            )
            return False
