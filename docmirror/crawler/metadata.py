"""Persistent per-URL crawl metadata with atomic load/save."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Callable, Iterable

from .constants import ARTIFACT_SAMPLE_LIMIT
from .errors import MetadataCorruptError
from .storage import atomic_write_json
from .types import (
    CrawlMetadata,
    CrawlStatistics,
    CrawlStatus,
    FrameworkStats,
    PageMetadata,
    utc_now_iso,
)


LOGGER = logging.getLogger(__name__)


class MetadataStore:
    """In-memory `CrawlMetadata` plus the file it is persisted to.

    All mutations go through the store lock, so one store can be shared between
    the orchestrator and read-only observers. Every `save` rewrites the whole
    file atomically; there is no append format.
    """

    def __init__(self, path: str | Path, metadata: CrawlMetadata | None = None) -> None:
        self.path = Path(path)
        self._metadata = metadata or CrawlMetadata()
        self._lock = threading.Lock()

    @classmethod
    def load(cls, path: str | Path) -> "MetadataStore":
        """Load metadata from `path`.

        A missing file yields an empty store. A file that cannot be parsed or
        does not match the expected schema raises `MetadataCorruptError`:
        silently starting over would re-fetch the entire mirror.
        """

        metadata_path = Path(path)
        if not metadata_path.exists():
            LOGGER.info("No metadata at %s; starting with empty metadata", metadata_path)
            return cls(metadata_path)

        try:
            payload = json.loads(metadata_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise MetadataCorruptError(metadata_path, str(exc)) from exc

        try:
            metadata = CrawlMetadata.from_json(payload)
        except (TypeError, ValueError) as exc:
            raise MetadataCorruptError(metadata_path, str(exc)) from exc

        LOGGER.info("Loaded metadata for %d pages from %s", len(metadata.pages), metadata_path)
        return cls(metadata_path, metadata)

    def save(self, path: str | Path | None = None) -> Path:
        """Write the whole metadata file atomically and return its path."""

        target = Path(path) if path is not None else self.path
        with self._lock:
            payload = self._metadata.to_json()
        atomic_write_json(target, payload)
        return target

    # Pages

    def get_page(self, url: str) -> PageMetadata | None:
        with self._lock:
            return self._metadata.pages.get(url)

    def has_page(self, url: str) -> bool:
        with self._lock:
            return url in self._metadata.pages

    def page_count(self) -> int:
        with self._lock:
            return len(self._metadata.pages)

    def pages(self) -> dict[str, PageMetadata]:
        with self._lock:
            return dict(self._metadata.pages)

    def upsert_page(
        self,
        url: str,
        framework: str,
        file_path: str | Path,
        content_hash: str,
        depth: int,
        *,
        is_new: bool = True,
    ) -> PageMetadata:
        """Insert or replace the record for `url` and update framework stats."""

        now = utc_now_iso()
        page = PageMetadata(
            url=url,
            framework=framework,
            file_path=str(file_path),
            content_hash=content_hash,
            depth=depth,
            last_crawled=now,
        )

        with self._lock:
            self._metadata.pages[url] = page

            fw = self._framework_locked(framework)
            fw.page_count += 1
            if is_new:
                fw.new_pages += 1
            else:
                fw.updated_pages += 1
            fw.last_crawled = now
            fw.crawl_status = CrawlStatus.IN_PROGRESS

        return page

    # Frameworks

    def _framework_locked(self, framework: str) -> FrameworkStats:
        key = framework.lower()
        fw = self._metadata.frameworks.get(key)
        if fw is None:
            fw = FrameworkStats(name=framework)
            self._metadata.frameworks[key] = fw
        return fw

    def record_framework_error(self, framework: str) -> None:
        with self._lock:
            fw = self._framework_locked(framework)
            fw.errors += 1
            fw.crawl_status = CrawlStatus.IN_PROGRESS

    def mark_frameworks_complete(self, frameworks: Iterable[str]) -> None:
        now = utc_now_iso()
        with self._lock:
            for framework in frameworks:
                fw = self._metadata.frameworks.get(framework.lower())
                if fw is None:
                    continue
                fw.crawl_status = CrawlStatus.COMPLETE
                fw.last_crawled = now

    def framework_stats(self, framework: str) -> FrameworkStats | None:
        with self._lock:
            fw = self._metadata.frameworks.get(framework.lower())
            return None if fw is None else FrameworkStats.from_json(fw.to_json())

    def stats_by_framework(self) -> dict[str, FrameworkStats]:
        """Return framework stats, computing them from pages for older files."""

        with self._lock:
            if self._metadata.frameworks:
                return {
                    key: FrameworkStats.from_json(fw.to_json())
                    for key, fw in self._metadata.frameworks.items()
                }

            computed: dict[str, FrameworkStats] = {}
            for page in self._metadata.pages.values():
                key = page.framework.lower()
                fw = computed.setdefault(key, FrameworkStats(name=page.framework))
                fw.page_count += 1
                if fw.last_crawled is None or page.last_crawled > fw.last_crawled:
                    fw.last_crawled = page.last_crawled
                fw.crawl_status = CrawlStatus.COMPLETE
            return computed

    # Statistics

    def statistics(self) -> CrawlStatistics:
        with self._lock:
            return self._metadata.stats.copy()

    def reset_statistics(self, stats: CrawlStatistics) -> None:
        with self._lock:
            self._metadata.stats = stats.copy()

    def update_statistics(self, mutator: Callable[[CrawlStatistics], None]) -> CrawlStatistics:
        """Apply `mutator` to the current statistics as one transaction.

        The mutator works on a copy; if it raises, the stored statistics are
        left untouched.
        """

        with self._lock:
            working = self._metadata.stats.copy()
            mutator(working)
            self._metadata.stats = working
            return working.copy()

    @property
    def last_crawl(self) -> str | None:
        with self._lock:
            return self._metadata.last_crawl

    def finalize(self, stats: CrawlStatistics) -> None:
        """Fold final run statistics into the aggregate and stamp `last_crawl`."""

        with self._lock:
            self._metadata.stats = stats.copy()
            self._metadata.last_crawl = stats.end_time or utc_now_iso()

    def snapshot(self) -> CrawlMetadata:
        """Return a deep copy of the current metadata value."""

        with self._lock:
            return CrawlMetadata.from_json(self._metadata.to_json())

    # Validation

    def artifact_existence_ratio(self, sample_limit: int = ARTIFACT_SAMPLE_LIMIT) -> float:
        """Spot-check recorded artifact paths and return the share that exist.

        Samples roughly 10% of pages (at least 1, at most `sample_limit`) spread
        evenly across the page list. Returns 1.0 for empty metadata.
        """

        with self._lock:
            pages = list(self._metadata.pages.values())

        if not pages:
            return 1.0

        samples = min(sample_limit, max(1, len(pages) // 10))
        existing = 0
        for idx in range(samples):
            page = pages[idx * len(pages) // samples]
            if Path(page.file_path).exists():
                existing += 1
        return existing / samples


__all__ = ["MetadataStore"]
