"""Shared fixtures: an in-memory documentation site and a JSON transformer."""

from __future__ import annotations

import json
import threading
from pathlib import Path

import pytest

from docmirror.crawler import CrawlConfig, FetchResult, TransformResult


BASE_URL = "https://docs.example.com/documentation"


class FakeSite:
    """Fetcher serving pages from a dict; records every fetch.

    Each page is `(text, links)`. `failures` maps URL -> HTTP status to return.
    Bodies are JSON so `JSONTransformer` can decode them without HTML parsing.
    """

    def __init__(self, pages: dict[str, tuple[str, list[str]]] | None = None) -> None:
        self.pages: dict[str, tuple[str, list[str]]] = dict(pages or {})
        self.failures: dict[str, int] = {}
        self.raise_for: set[str] = set()
        self.calls: list[str] = []
        self.on_fetch = None
        self._lock = threading.Lock()

    def fetch(self, url: str) -> FetchResult:
        with self._lock:
            self.calls.append(url)
        if self.on_fetch is not None:
            self.on_fetch(url)

        if url in self.raise_for:
            raise RuntimeError(f"boom while fetching {url}")

        if url in self.failures:
            return FetchResult(
                requested_url=url,
                final_url=url,
                status_code=self.failures[url],
                content_type="text/html",
                body=b"",
            )

        page = self.pages.get(url)
        if page is None:
            return FetchResult(
                requested_url=url,
                final_url=url,
                status_code=404,
                content_type="text/html",
                body=b"not found",
            )

        text, links = page
        body = json.dumps({"text": text, "links": links}).encode("utf-8")
        return FetchResult(
            requested_url=url,
            final_url=url,
            status_code=200,
            content_type="application/json",
            body=body,
            elapsed_ms=1,
        )


class JSONTransformer:
    """Decode FakeSite bodies; empty text yields `None`."""

    def transform(self, body: bytes, url: str) -> TransformResult | None:
        payload = json.loads(body.decode("utf-8"))
        if not payload["text"]:
            return None
        return TransformResult(
            text=payload["text"],
            links=list(payload["links"]),
            title=payload["text"].split("\n", 1)[0],
        )


def make_config(output_dir: Path, **overrides) -> CrawlConfig:
    options = {
        "start_url": BASE_URL,
        "output_dir": output_dir,
        "max_depth": 5,
        "max_pages": 100,
        "concurrency": 1,
        "request_delay_seconds": 0.0,
        "retries": 0,
    }
    options.update(overrides)
    return CrawlConfig(**options)


@pytest.fixture
def site() -> FakeSite:
    """Three-level tree rooted at BASE_URL with one out-of-scope link."""

    return FakeSite(
        {
            BASE_URL: (
                "Documentation home",
                [
                    f"{BASE_URL}/swiftui",
                    f"{BASE_URL}/uikit",
                    "https://other.example.com/documentation/elsewhere",
                ],
            ),
            f"{BASE_URL}/swiftui": (
                "SwiftUI overview",
                [f"{BASE_URL}/swiftui/view", f"{BASE_URL}/uikit"],
            ),
            f"{BASE_URL}/uikit": ("UIKit overview", [f"{BASE_URL}/uikit/uiview"]),
            f"{BASE_URL}/swiftui/view": ("View protocol", [BASE_URL]),
            f"{BASE_URL}/uikit/uiview": ("UIView class", []),
        }
    )


@pytest.fixture
def transformer() -> JSONTransformer:
    return JSONTransformer()
