"""Tests for the line-delimited URL list connector."""

from __future__ import annotations

import pytest

from connectors.url_list import UrlListDiscoverStage


def test_yields_stripped_urls_in_file_order(tmp_path):
    """Whitespace and CRLF endings are trimmed; blank lines are skipped."""
    path = tmp_path / "urls.txt"
    path.write_bytes(b"http://a.test\r\n\n  http://b.test  \n\t\nhttp://c.test")

    urls = list(UrlListDiscoverStage().discover(str(path), run_id="run-1"))

    assert urls == ["http://a.test", "http://b.test", "http://c.test"]


def test_duplicate_lines_are_kept(tmp_path):
    """The source does not dedup; the store's unique key does."""
    path = tmp_path / "urls.txt"
    path.write_text("http://a.test\nhttp://a.test\n", encoding="utf-8")

    urls = list(UrlListDiscoverStage().discover(str(path), run_id="run-1"))

    assert urls == ["http://a.test", "http://a.test"]


def test_missing_file_fails_at_discover_call(tmp_path):
    """Opening happens eagerly so a run never starts on a missing input."""
    stage = UrlListDiscoverStage()

    with pytest.raises(FileNotFoundError):
        stage.discover(str(tmp_path / "absent.txt"), run_id="run-1")


def test_lines_are_read_lazily(tmp_path):
    """URLs are streamed, not loaded up front."""
    path = tmp_path / "urls.txt"
    path.write_text("http://a.test\nhttp://b.test\n", encoding="utf-8")

    iterator = UrlListDiscoverStage().discover(str(path), run_id="run-1")

    assert next(iterator) == "http://a.test"
    assert next(iterator) == "http://b.test"
    with pytest.raises(StopIteration):
        next(iterator)
