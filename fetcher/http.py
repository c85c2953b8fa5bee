"""HTTP fetcher: one blocking GET per URL, full body, guaranteed release."""

from __future__ import annotations

import threading
import time
from typing import Any
from urllib.parse import urlparse

import requests

from core.config import ArchiverDefaults, RunConfig
from core.models import FetchErrorCode, FetchedDoc, FetchLog
from core.pipeline import FetchStage
from fetcher.logging import emit_fetch_log


class BodyLimitExceeded(Exception):
    """Raised when response body exceeds the configured limit."""


def _validate_url_scheme(url: str) -> bool:
    """Validate that URL uses allowed protocols."""
    try:
        parsed = urlparse(url)
    except ValueError:
        # Malformed netloc, e.g. an unclosed IPv6 bracket
        return False
    return parsed.scheme.lower() in ArchiverDefaults.ALLOWED_PROTOCOLS and bool(parsed.netloc)


def _declared_charset(headers: dict[str, str]) -> str | None:
    """
    Charset named explicitly in Content-Type, else None.

    requests falls back to ISO-8859-1 for any text/* type without a charset
    parameter; that guess is ignored so undeclared bodies decode as UTF-8.
    """
    content_type = headers.get("content-type", "")
    if "charset" not in content_type.lower():
        return None
    return requests.utils.get_encoding_from_headers({"content-type": content_type})


def _read_body_with_limit(response: requests.Response, max_bytes: int | None) -> bytes:
    """Read the whole response body, failing once it grows past max_bytes."""
    chunks: list[bytes] = []
    total = 0
    for chunk in response.iter_content(chunk_size=8192):
        if not chunk:
            continue
        total += len(chunk)
        if max_bytes is not None and total > max_bytes:
            raise BodyLimitExceeded(f"response exceeds {max_bytes} bytes")
        chunks.append(chunk)
    return b"".join(chunks)


def _failure(
    url: str,
    run_id: str,
    start: float,
    error_code: FetchErrorCode,
    error: str,
    status_code: int | None = None,
) -> tuple[None, FetchLog]:
    return None, FetchLog(
        url=url,
        status_code=status_code,
        error_code=error_code,
        error=error,
        run_id=run_id,
        latency_ms=int((time.monotonic() - start) * 1000),
    )


def fetch_url(
    url: str,
    run_id: str,
    session: requests.Session | None = None,
    timeout_seconds: float | None = None,
    max_body_bytes: int | None = None,
    strict_status: bool = False,
) -> tuple[FetchedDoc | None, FetchLog]:
    """
    Fetch a URL and return its full body.

    Any HTTP status counts as content unless strict_status is set, in which
    case non-2xx responses fail with HTTP_STATUS. The response is closed on
    every exit path.
    """
    start = time.monotonic()

    if not _validate_url_scheme(url):
        return _failure(
            url,
            run_id,
            start,
            FetchErrorCode.UNSUPPORTED_SCHEME,
            f"unsupported URL: {url!r}",
        )

    if session is not None:
        return _get_and_read(
            session, url, run_id, start, timeout_seconds, max_body_bytes, strict_status
        )

    with requests.Session() as own_session:
        return _get_and_read(
            own_session, url, run_id, start, timeout_seconds, max_body_bytes, strict_status
        )


def _get_and_read(
    session: requests.Session,
    url: str,
    run_id: str,
    start: float,
    timeout_seconds: float | None,
    max_body_bytes: int | None,
    strict_status: bool,
) -> tuple[FetchedDoc | None, FetchLog]:
    """Issue the GET and drain the body; the response is closed on every path."""
    try:
        response = session.get(
            url,
            headers={"User-Agent": ArchiverDefaults.USER_AGENT},
            timeout=timeout_seconds,
            stream=True,
        )
    except requests.Timeout as exc:
        return _failure(url, run_id, start, FetchErrorCode.TIMEOUT, str(exc))
    except requests.RequestException as exc:
        return _failure(url, run_id, start, FetchErrorCode.FETCH_ERROR, str(exc))

    try:
        if strict_status and not 200 <= response.status_code < 300:
            return _failure(
                url,
                run_id,
                start,
                FetchErrorCode.HTTP_STATUS,
                f"HTTP {response.status_code}",
                status_code=response.status_code,
            )

        body = _read_body_with_limit(response, max_body_bytes)
        headers = {k.lower(): v for k, v in response.headers.items()}
        doc = FetchedDoc(
            url=url,
            final_url=str(getattr(response, "url", None) or url),
            status_code=response.status_code,
            headers=headers,
            body_bytes=body,
            encoding=_declared_charset(headers),
            latency_ms=int((time.monotonic() - start) * 1000),
        )
        log = FetchLog(
            url=url,
            status_code=response.status_code,
            latency_ms=doc.latency_ms,
            bytes_received=len(body),
            run_id=run_id,
        )
        return doc, log

    except BodyLimitExceeded as exc:
        return _failure(
            url,
            run_id,
            start,
            FetchErrorCode.BODY_TOO_LARGE,
            str(exc),
            status_code=response.status_code,
        )
    except requests.Timeout as exc:
        return _failure(url, run_id, start, FetchErrorCode.TIMEOUT, str(exc))
    except requests.RequestException as exc:
        return _failure(url, run_id, start, FetchErrorCode.FETCH_ERROR, str(exc))
    finally:
        response.close()


class HttpFetchStage(FetchStage):
    """FetchStage implementation backed by fetch_url + structured logging."""

    def __init__(
        self,
        session: requests.Session | None = None,
        timeout_seconds: float | None = None,
        max_body_bytes: int | None = None,
        strict_status: bool = False,
        log_fetches: bool = True,
    ) -> None:
        """
        Initialize fetch policy.

        Without an injected session, each worker thread gets its own
        requests.Session so connection pools are never shared across threads.
        Sessions of threads that have exited are closed as new ones are made,
        so a stage reused across runs holds at most one per live thread.
        """
        self.session = session
        self.timeout_seconds = timeout_seconds
        self.max_body_bytes = max_body_bytes
        self.strict_status = strict_status
        self.log_fetches = log_fetches

        self._local = threading.local()
        self._owned_sessions: list[tuple[threading.Thread, requests.Session]] = []
        self._sessions_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: RunConfig, **kwargs: Any) -> HttpFetchStage:
        """Build a stage from a RunConfig's fetch settings."""
        return cls(
            timeout_seconds=config.fetch_timeout_seconds,
            max_body_bytes=config.max_body_bytes,
            strict_status=config.strict_status,
            **kwargs,
        )

    def _session_for_thread(self) -> requests.Session:
        if self.session is not None:
            return self.session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
            with self._sessions_lock:
                stale = [s for thread, s in self._owned_sessions if not thread.is_alive()]
                self._owned_sessions = [
                    (thread, s) for thread, s in self._owned_sessions if thread.is_alive()
                ]
                self._owned_sessions.append((threading.current_thread(), session))
            for stale_session in stale:
                stale_session.close()
        return session

    def fetch(self, url: str, run_id: str) -> tuple[FetchedDoc | None, FetchLog]:
        """Fetch one URL and emit structured logs."""
        fetched_doc, fetch_log = fetch_url(
            url=url,
            run_id=run_id,
            session=self._session_for_thread(),
            timeout_seconds=self.timeout_seconds,
            max_body_bytes=self.max_body_bytes,
            strict_status=self.strict_status,
        )
        if self.log_fetches:
            emit_fetch_log(fetch_log)
        return fetched_doc, fetch_log

    def close(self) -> None:
        """Close every session this stage created."""
        with self._sessions_lock:
            sessions, self._owned_sessions = self._owned_sessions, []
        for _, session in sessions:
            session.close()
