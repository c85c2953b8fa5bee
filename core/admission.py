"""Admission gate: bounds the number of in-flight fetch+save operations."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator


class ConcurrencyGate:
    """Counting gate with instrumented in-flight counters."""

    def __init__(self, max_concurrency: int) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")

        self.max_concurrency = max_concurrency

        self._semaphore = threading.Semaphore(max_concurrency)
        self._lock = threading.Lock()
        self._in_flight = 0
        self._peak_in_flight = 0

    @property
    def in_flight(self) -> int:
        """Slots currently held."""
        with self._lock:
            return self._in_flight

    @property
    def peak_in_flight(self) -> int:
        """Highest number of slots held at once since the last reset."""
        with self._lock:
            return self._peak_in_flight

    def reset_peak(self) -> None:
        """Restart peak tracking from the current in-flight count."""
        with self._lock:
            self._peak_in_flight = self._in_flight

    @contextmanager
    def slot(self) -> Iterator[None]:
        """Hold one slot for the duration of the block; blocks while saturated."""
        self._semaphore.acquire()
        with self._lock:
            self._in_flight += 1
            self._peak_in_flight = max(self._peak_in_flight, self._in_flight)
        try:
            yield
        finally:
            with self._lock:
                self._in_flight -= 1
            self._semaphore.release()
