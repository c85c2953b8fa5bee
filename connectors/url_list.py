"""URL list connector: one URL per line from a local text file."""

from __future__ import annotations

from pathlib import Path
from typing import IO, Iterator

from core.pipeline import DiscoverStage


class UrlListDiscoverStage(DiscoverStage):
    """Discover URLs from a line-delimited plain-text file."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    def discover(self, seed: str, run_id: str) -> Iterator[str]:
        """
        Open seed now and yield its URLs lazily.

        The file is opened before returning, so a missing or unreadable input
        fails the run before any worker starts. Blank lines are skipped;
        duplicate lines are yielded as-is.
        """
        _ = run_id
        handle = Path(seed).open("r", encoding=self.encoding)
        return self._iter_lines(handle)

    @staticmethod
    def _iter_lines(handle: IO[str]) -> Iterator[str]:
        with handle:
            for line in handle:
                url = line.strip()
                if url:
                    yield url
