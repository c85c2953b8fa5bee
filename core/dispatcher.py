"""
Dispatcher: run one archive job to completion.

Topology:
- one feeder thread reads the URL source into a bounded queue
- `concurrency` worker threads consume the queue
- a ConcurrencyGate bounds in-flight fetch+save work

The queue bound only gives the feeder backpressure; the gate is the single
admission limit. The feeder closes the queue with one sentinel per worker,
including when the source raises, so a run always drains and joins.
"""

from __future__ import annotations

import queue
import threading
from datetime import UTC, datetime
from typing import Callable, Iterable
from uuid import uuid4

from core.admission import ConcurrencyGate
from core.config import RunConfig
from core.models import RunStatus, RunSummary, UrlOutcome
from core.pipeline import FetchStage, RecordStore
from core.structured_logging import emit_json_event
from core.worker import QUEUE_CLOSED, Worker


class Dispatcher:
    """
    Owns the worker pool, task queue, and admission gate for runs.

    Usage:
        dispatcher = Dispatcher(store, HttpFetchStage(), RunConfig(concurrency=8))
        summary = dispatcher.run(urls)
    """

    def __init__(
        self,
        store: RecordStore,
        fetcher: FetchStage,
        config: RunConfig | None = None,
        gate: ConcurrencyGate | None = None,
        sleep_fn: Callable[[float], None] | None = None,
    ) -> None:
        """Initialize the explicit run context shared by all workers."""
        self.store = store
        self.fetcher = fetcher
        self.config = config or RunConfig()
        self.gate = gate or ConcurrencyGate(self.config.concurrency)
        self.sleep_fn = sleep_fn

    def run(self, urls: Iterable[str], run_id: str | None = None) -> RunSummary:
        """
        Feed every URL to the pool and block until all workers exit.

        Per-URL failures are counted, never raised. A source that raises
        mid-iteration stops feeding, lets queued work drain, and marks the run
        FAILED.

        Returns:
            RunSummary with one counter per outcome.
        """
        summary = RunSummary(id=run_id or str(uuid4()))
        # peak_in_flight is reported per run even when the gate is reused
        self.gate.reset_peak()
        stats_lock = threading.Lock()
        tasks: queue.Queue[object] = queue.Queue(maxsize=self.config.effective_queue_size)
        source_errors: list[BaseException] = []

        def _count(url: str, outcome: UrlOutcome) -> None:
            _ = url
            with stats_lock:
                summary.count_outcome(outcome)

        workers = [
            Worker(
                index,
                store=self.store,
                fetcher=self.fetcher,
                gate=self.gate,
                config=self.config,
                run_id=summary.id,
                on_outcome=_count,
                sleep_fn=self.sleep_fn,
            )
            for index in range(self.config.concurrency)
        ]
        threads = [
            threading.Thread(
                target=worker.run,
                args=(tasks,),
                name=f"url-archiver-worker-{worker.worker_id}",
                daemon=True,
            )
            for worker in workers
        ]

        def _feed() -> None:
            try:
                for url in urls:
                    emit_json_event(
                        "url_enqueued",
                        run_id=summary.id,
                        component="feeder",
                        url=url,
                    )
                    tasks.put(url)
                    with stats_lock:
                        summary.enqueued_count += 1
            except Exception as exc:
                source_errors.append(exc)
                emit_json_event(
                    "source_error",
                    run_id=summary.id,
                    level="error",
                    component="feeder",
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
            finally:
                for _ in workers:
                    tasks.put(QUEUE_CLOSED)

        feeder = threading.Thread(target=_feed, name="url-archiver-feeder", daemon=True)

        for thread in threads:
            thread.start()
        feeder.start()

        feeder.join()
        for thread in threads:
            thread.join()

        summary.ended_at = datetime.now(UTC)
        if source_errors:
            summary.status = RunStatus.FAILED
            summary.error_message = f"URL source failed: {source_errors[0]}"
        else:
            summary.status = RunStatus.COMPLETED

        emit_json_event(
            "run_completed",
            run_id=summary.id,
            level="info" if summary.status == RunStatus.COMPLETED else "error",
            component="dispatcher",
            status=summary.status.value,
            concurrency=self.config.concurrency,
            enqueued=summary.enqueued_count,
            saved=summary.saved_count,
            skipped=summary.skipped_count,
            duplicates=summary.duplicate_count,
            fetch_errors=summary.fetch_error_count,
            save_errors=summary.save_error_count,
            errors=summary.error_count,
            peak_in_flight=self.gate.peak_in_flight,
            note=summary.error_message,
        )
        return summary
