"""URL fetching over requests with retry logic."""

from __future__ import annotations

import threading
import time

import requests

from .config import CrawlConfig
from .types import FetchResult
from .url import normalize_url


class Fetcher:
    """Fetch URLs with `requests`, one `Session` per worker thread.

    Transport errors and HTTP failures are reported through `FetchResult.error`
    / `status_code` rather than raised. Transient outcomes (408, 429, 5xx,
    connection errors) are retried with linear backoff.
    """

    def __init__(self, config: CrawlConfig) -> None:
        self.config = config

        self._thread_local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()

        self._closed = False
        self._closed_lock = threading.Lock()

    def fetch(self, url: str) -> FetchResult:
        """Fetch one URL with configured retries."""

        normalized = normalize_url(url, keep_query=self.config.keep_query)
        if normalized is None:
            return FetchResult(
                requested_url=url,
                final_url=None,
                status_code=None,
                content_type=None,
                body=None,
                error="Invalid or unsupported URL",
            )

        attempts = max(1, self.config.retries + 1)
        backoff_seconds = max(0.0, self.config.retry_backoff_seconds)
        last_result: FetchResult | None = None

        for attempt in range(1, attempts + 1):
            if self._is_closed():
                return FetchResult(
                    requested_url=normalized,
                    final_url=None,
                    status_code=None,
                    content_type=None,
                    body=None,
                    error="Fetcher is closed",
                )

            result = self._fetch_once(normalized)
            last_result = result

            if self._is_terminal_result(result):
                return result

            if attempt < attempts and backoff_seconds > 0:
                # Linear backoff keeps behavior simple and predictable.
                time.sleep(backoff_seconds * attempt)

        if last_result is None:
            return FetchResult(
                requested_url=normalized,
                final_url=None,
                status_code=None,
                content_type=None,
                body=None,
                error="Unknown fetch failure",
            )

        return last_result

    def close(self) -> None:
        """Close all pooled HTTP sessions."""

        with self._closed_lock:
            self._closed = True

        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _is_closed(self) -> bool:
        with self._closed_lock:
            return self._closed

    @staticmethod
    def _is_terminal_result(result: FetchResult) -> bool:
        if result.error is not None:
            return False

        if result.status_code is None:
            return False

        if result.status_code in {408, 429} or result.status_code >= 500:
            return False

        return True

    def _fetch_once(self, url: str) -> FetchResult:
        started = time.perf_counter()
        session = self._thread_local_session()

        try:
            response = session.get(
                url,
                headers=self.config.headers(),
                timeout=self.config.timeout_seconds,
                allow_redirects=True,
            )
            elapsed_ms = int((time.perf_counter() - started) * 1000)

            body = response.content if response.content is not None else b""
            return FetchResult(
                requested_url=url,
                final_url=response.url or url,
                status_code=response.status_code,
                content_type=response.headers.get("Content-Type"),
                body=body,
                elapsed_ms=elapsed_ms,
                error=None,
            )
        except requests.RequestException as exc:
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            return FetchResult(
                requested_url=url,
                final_url=None,
                status_code=None,
                content_type=None,
                body=None,
                elapsed_ms=elapsed_ms,
                error=f"{exc.__class__.__name__}: {exc}",
            )

    def _thread_local_session(self) -> requests.Session:
        session = getattr(self._thread_local, "session", None)
        if session is None:
            session = requests.Session()
            self._thread_local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session


__all__ = ["Fetcher"]
