"""Core type definitions for the crawl engine.

This module is intentionally dependency-light so other crawler modules can import
shared records without introducing cycles. Every persisted record has a
`to_json`/`from_json` pair; `from_json` validates its input and raises
`ValueError`/`TypeError` on malformed payloads so callers can surface a typed
corruption error instead of silently defaulting.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Protocol


JSONPrimitive = str | int | float | bool | None
JSONValue = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONDict = dict[str, JSONValue]


class CrawlStage(str, Enum):
    """Per-page stage names for error reporting."""

    FETCH = "fetch"
    TRANSFORM = "transform"
    STORE = "store"


class CrawlStatus(str, Enum):
    """Crawl status tracked per framework."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    PARTIAL = "partial"
    FAILED = "failed"


def utc_now_iso() -> str:
    """Return an RFC3339-like UTC timestamp string for metadata files."""

    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def parse_iso_utc(value: str | None) -> datetime | None:
    """Parse an ISO timestamp into an aware UTC datetime, or None."""

    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _require_mapping(value: Any, key: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise TypeError(f"'{key}' must be an object, got {type(value).__name__}")
    return value


def _require_str(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"'{key}' must be a non-empty string, got {value!r}")
    return value


def _optional_str(payload: Mapping[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string or null, got {value!r}")
    return value


def _count(payload: Mapping[str, Any], key: str, default: int = 0) -> int:
    value = payload.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"'{key}' must be a non-negative integer, got {value!r}")
    return value


@dataclass(frozen=True, slots=True)
class PageMetadata:
    """Metadata for one previously crawled URL."""

    url: str
    framework: str
    file_path: str
    content_hash: str
    depth: int
    last_crawled: str = field(default_factory=utc_now_iso)

    def to_json(self) -> JSONDict:
        return {
            "url": self.url,
            "framework": self.framework,
            "filePath": self.file_path,
            "contentHash": self.content_hash,
            "depth": self.depth,
            "lastCrawled": self.last_crawled,
        }

    @classmethod
    def from_json(cls, payload: Any) -> "PageMetadata":
        data = _require_mapping(payload, "page")
        return cls(
            url=_require_str(data, "url"),
            framework=_require_str(data, "framework"),
            file_path=_require_str(data, "filePath"),
            content_hash=_require_str(data, "contentHash"),
            depth=_count(data, "depth"),
            last_crawled=_optional_str(data, "lastCrawled") or utc_now_iso(),
        )


@dataclass(slots=True)
class CrawlStatistics:
    """Counters for one crawl run.

    `end_time` stays `None` while a run is in progress; an interrupted run leaves
    it unset in the persisted snapshot.
    """

    total_pages: int = 0
    new_pages: int = 0
    updated_pages: int = 0
    skipped_pages: int = 0
    errors: int = 0
    start_time: str | None = None
    end_time: str | None = None

    @property
    def duration(self) -> float | None:
        """Run duration in seconds, or None while the run is in progress."""

        start = parse_iso_utc(self.start_time)
        end = parse_iso_utc(self.end_time)
        if start is None or end is None:
            return None
        return max(0.0, (end - start).total_seconds())

    @property
    def finished(self) -> bool:
        return self.end_time is not None

    def copy(self) -> "CrawlStatistics":
        return replace(self)

    def to_json(self) -> JSONDict:
        return {
            "totalPages": self.total_pages,
            "newPages": self.new_pages,
            "updatedPages": self.updated_pages,
            "skippedPages": self.skipped_pages,
            "errors": self.errors,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }

    @classmethod
    def from_json(cls, payload: Any) -> "CrawlStatistics":
        data = _require_mapping(payload, "stats")
        return cls(
            total_pages=_count(data, "totalPages"),
            new_pages=_count(data, "newPages"),
            updated_pages=_count(data, "updatedPages"),
            skipped_pages=_count(data, "skippedPages"),
            errors=_count(data, "errors"),
            start_time=_optional_str(data, "startTime"),
            end_time=_optional_str(data, "endTime"),
        )


@dataclass(slots=True)
class FrameworkStats:
    """Per-framework counters used for grouping and reporting."""

    name: str
    page_count: int = 0
    new_pages: int = 0
    updated_pages: int = 0
    errors: int = 0
    last_crawled: str | None = None
    crawl_status: CrawlStatus = CrawlStatus.NOT_STARTED

    def to_json(self) -> JSONDict:
        return {
            "name": self.name,
            "pageCount": self.page_count,
            "newPages": self.new_pages,
            "updatedPages": self.updated_pages,
            "errors": self.errors,
            "lastCrawled": self.last_crawled,
            "crawlStatus": self.crawl_status.value,
        }

    @classmethod
    def from_json(cls, payload: Any) -> "FrameworkStats":
        data = _require_mapping(payload, "framework")
        return cls(
            name=_require_str(data, "name"),
            page_count=_count(data, "pageCount"),
            new_pages=_count(data, "newPages"),
            updated_pages=_count(data, "updatedPages"),
            errors=_count(data, "errors"),
            last_crawled=_optional_str(data, "lastCrawled"),
            crawl_status=CrawlStatus(data.get("crawlStatus", CrawlStatus.NOT_STARTED.value)),
        )


@dataclass(slots=True)
class CrawlMetadata:
    """The persisted aggregate: per-URL pages, run stats, and last crawl time."""

    pages: dict[str, PageMetadata] = field(default_factory=dict)
    stats: CrawlStatistics = field(default_factory=CrawlStatistics)
    last_crawl: str | None = None
    frameworks: dict[str, FrameworkStats] = field(default_factory=dict)

    def to_json(self) -> JSONDict:
        return {
            "pages": {url: page.to_json() for url, page in self.pages.items()},
            "stats": self.stats.to_json(),
            "lastCrawl": self.last_crawl,
            "frameworks": {key: fw.to_json() for key, fw in self.frameworks.items()},
        }

    @classmethod
    def from_json(cls, payload: Any) -> "CrawlMetadata":
        data = _require_mapping(payload, "metadata")

        pages: dict[str, PageMetadata] = {}
        for url, raw_page in _require_mapping(data.get("pages", {}), "pages").items():
            page = PageMetadata.from_json(raw_page)
            if page.url != url:
                raise ValueError(f"Page key {url!r} does not match record url {page.url!r}")
            pages[url] = page

        frameworks = {
            str(key): FrameworkStats.from_json(raw)
            for key, raw in _require_mapping(data.get("frameworks", {}), "frameworks").items()
        }

        return cls(
            pages=pages,
            stats=CrawlStatistics.from_json(data.get("stats", {})),
            last_crawl=_optional_str(data, "lastCrawl"),
            frameworks=frameworks,
        )


@dataclass(frozen=True, slots=True)
class QueuedURL:
    """A frontier entry: URL plus BFS depth assigned at first discovery."""

    url: str
    depth: int

    def to_json(self) -> JSONDict:
        return {"url": self.url, "depth": self.depth}

    @classmethod
    def from_json(cls, payload: Any) -> "QueuedURL":
        data = _require_mapping(payload, "queue item")
        return cls(url=_require_str(data, "url"), depth=_count(data, "depth"))


@dataclass(slots=True)
class SessionState:
    """Snapshot of an in-progress crawl used for resuming after interruption."""

    start_url: str
    output_directory: str
    visited: set[str] = field(default_factory=set)
    queue: list[QueuedURL] = field(default_factory=list)
    session_start_time: str = field(default_factory=utc_now_iso)
    saved_at: str = field(default_factory=utc_now_iso)
    is_active: bool = True

    def matches(self, start_url: str, output_directory: str) -> bool:
        return self.start_url == start_url and self.output_directory == output_directory

    def to_json(self) -> JSONDict:
        return {
            "visited": sorted(self.visited),
            "queue": [item.to_json() for item in self.queue],
            "startURL": self.start_url,
            "outputDirectory": self.output_directory,
            "sessionStartTime": self.session_start_time,
            "savedAt": self.saved_at,
            "isActive": self.is_active,
        }

    @classmethod
    def from_json(cls, payload: Any) -> "SessionState":
        data = _require_mapping(payload, "session")

        visited_raw = data.get("visited", [])
        if not isinstance(visited_raw, list) or not all(isinstance(u, str) for u in visited_raw):
            raise ValueError("'visited' must be a list of strings")

        queue_raw = data.get("queue", [])
        if not isinstance(queue_raw, list):
            raise ValueError("'queue' must be a list")

        is_active = data.get("isActive", True)
        if not isinstance(is_active, bool):
            raise ValueError(f"'isActive' must be a bool, got {is_active!r}")

        return cls(
            start_url=_require_str(data, "startURL"),
            output_directory=_require_str(data, "outputDirectory"),
            visited=set(visited_raw),
            queue=[QueuedURL.from_json(item) for item in queue_raw],
            session_start_time=_optional_str(data, "sessionStartTime") or utc_now_iso(),
            saved_at=_optional_str(data, "savedAt") or utc_now_iso(),
            is_active=is_active,
        )


@dataclass(slots=True)
class FetchResult:
    """Result of attempting to download one URL."""

    requested_url: str
    final_url: str | None
    status_code: int | None
    content_type: str | None
    body: bytes | None
    fetched_at: str = field(default_factory=utc_now_iso)
    elapsed_ms: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return (
            self.error is None
            and self.status_code is not None
            and 200 <= self.status_code < 300
            and self.body is not None
        )

    @property
    def content_length(self) -> int | None:
        return None if self.body is None else len(self.body)

    @property
    def failure_message(self) -> str:
        if self.error:
            return self.error
        if self.status_code is not None:
            return f"HTTP status {self.status_code}"
        return "Unknown fetch failure"


@dataclass(slots=True)
class TransformResult:
    """Normalized page content and its outbound links."""

    text: str
    links: list[str] = field(default_factory=list)
    title: str | None = None
    metadata: dict[str, JSONValue] = field(default_factory=dict)


class PageFetcher(Protocol):
    """Network collaborator: download one URL, reporting failures in the result."""

    def fetch(self, url: str) -> FetchResult: ...


class ContentTransformer(Protocol):
    """Format collaborator: raw bytes to normalized text plus outbound links.

    Returns `None` when the payload yields no usable content.
    """

    def transform(self, body: bytes, url: str) -> TransformResult | None: ...


@dataclass(frozen=True, slots=True)
class ErrorRecord:
    """One failure row written to errors.jsonl."""

    stage: CrawlStage
    url: str
    message: str
    depth: int | None = None
    framework: str | None = None
    error_type: str | None = None
    status_code: int | None = None
    created_at: str = field(default_factory=utc_now_iso)

    @classmethod
    def from_exception(
        cls,
        *,
        stage: CrawlStage,
        url: str,
        exc: BaseException,
        **kwargs: Any,
    ) -> "ErrorRecord":
        return cls(
            stage=stage,
            url=url,
            message=str(exc),
            error_type=exc.__class__.__name__,
            **kwargs,
        )

    def to_json(self) -> JSONDict:
        return {
            "stage": self.stage.value,
            "url": self.url,
            "message": self.message,
            "depth": self.depth,
            "framework": self.framework,
            "error_type": self.error_type,
            "status_code": self.status_code,
            "created_at": self.created_at,
        }


@dataclass(frozen=True, slots=True)
class CrawlProgress:
    """Progress information passed to `on_progress` callbacks."""

    current_url: str
    visited_count: int
    max_pages: int
    queue_size: int
    stats: CrawlStatistics

    @property
    def percentage(self) -> float:
        if self.max_pages <= 0:
            return 0.0
        return self.visited_count / self.max_pages * 100.0


__all__ = [
    "CrawlMetadata",
    "CrawlProgress",
    "CrawlStage",
    "CrawlStatistics",
    "ContentTransformer",
    "CrawlStatus",
    "ErrorRecord",
    "FetchResult",
    "FrameworkStats",
    "JSONDict",
    "JSONPrimitive",
    "JSONValue",
    "PageFetcher",
    "PageMetadata",
    "QueuedURL",
    "SessionState",
    "TransformResult",
    "parse_iso_utc",
    "utc_now_iso",
]
