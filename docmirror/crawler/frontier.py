"""Breadth-first frontier with scope, depth, and page-budget enforcement."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Sequence

from .types import QueuedURL
from .url import is_url_in_scope, normalize_url

if TYPE_CHECKING:
    from .config import CrawlConfig


class EnqueueStatus(str, Enum):
    """Result status for frontier enqueue attempts."""

    ENQUEUED = "enqueued"
    SKIPPED_INVALID_URL = "skipped_invalid_url"
    SKIPPED_OUT_OF_SCOPE = "skipped_out_of_scope"
    SKIPPED_DEPTH = "skipped_depth"
    SKIPPED_VISITED = "skipped_visited"
    SKIPPED_PENDING = "skipped_pending"
    SKIPPED_BUDGET = "skipped_budget"


@dataclass(frozen=True, slots=True)
class EnqueueResult:
    """Outcome of one enqueue attempt."""

    status: EnqueueStatus
    normalized_url: str | None = None
    item: QueuedURL | None = None

    @property
    def accepted(self) -> bool:
        return self.status == EnqueueStatus.ENQUEUED


class Frontier:
    """FIFO queue of `(url, depth)` pairs plus the visited set.

    - A URL is marked visited when it is dequeued, never when it is enqueued,
      so it can be rediscovered from several parents before being processed.
    - A URL that is visited or already pending is never enqueued again, so
      each URL is dequeued at most once per run.
    - At most `max_pages` URLs are ever accepted in one run.
    """

    def __init__(
        self,
        *,
        max_depth: int,
        max_pages: int,
        allowed_prefixes: Sequence[str] = (),
        keep_query: bool = False,
    ) -> None:
        if max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        if max_pages <= 0:
            raise ValueError("max_pages must be > 0")

        self.max_depth = max_depth
        self.max_pages = max_pages
        self.allowed_prefixes = list(allowed_prefixes)
        self.keep_query = keep_query

        self._lock = threading.Lock()
        self._queue: deque[QueuedURL] = deque()
        self._pending: set[str] = set()
        self._visited: set[str] = set()
        self._accepted = 0

        self._enqueued_count = 0
        self._dequeued_count = 0
        self._skipped_counts: dict[EnqueueStatus, int] = {}

    @classmethod
    def from_config(cls, config: "CrawlConfig") -> "Frontier":
        return cls(
            max_depth=config.max_depth,
            max_pages=config.max_pages,
            allowed_prefixes=config.allowed_prefixes,
            keep_query=config.keep_query,
        )

    def _skip(self, status: EnqueueStatus, normalized: str | None = None) -> EnqueueResult:
        self._skipped_counts[status] = self._skipped_counts.get(status, 0) + 1
        return EnqueueResult(status, normalized_url=normalized)

    def enqueue(self, url: str, depth: int, *, check_scope: bool = True) -> EnqueueResult:
        """Attempt to append one URL at `depth` with constraints enforced.

        `check_scope=False` skips the prefix allow-list, for seeding the start URL.
        """

        normalized = normalize_url(url, keep_query=self.keep_query)

        with self._lock:
            if normalized is None:
                return self._skip(EnqueueStatus.SKIPPED_INVALID_URL)

            if normalized in self._visited:
                return self._skip(EnqueueStatus.SKIPPED_VISITED, normalized)

            if normalized in self._pending:
                return self._skip(EnqueueStatus.SKIPPED_PENDING, normalized)

            if check_scope and not is_url_in_scope(normalized, self.allowed_prefixes):
                return self._skip(EnqueueStatus.SKIPPED_OUT_OF_SCOPE, normalized)

            if depth > self.max_depth:
                return self._skip(EnqueueStatus.SKIPPED_DEPTH, normalized)

            if self._accepted >= self.max_pages:
                return self._skip(EnqueueStatus.SKIPPED_BUDGET, normalized)

            item = QueuedURL(url=normalized, depth=depth)
            self._queue.append(item)
            self._pending.add(normalized)
            self._accepted += 1
            self._enqueued_count += 1

        return EnqueueResult(EnqueueStatus.ENQUEUED, normalized_url=normalized, item=item)

    def enqueue_many(self, urls: Iterable[str], depth: int) -> list[EnqueueResult]:
        """Attempt to enqueue multiple URLs, preserving input order."""

        return [self.enqueue(url, depth) for url in urls]

    def dequeue(self) -> QueuedURL | None:
        """Pop the head item and mark it visited; `None` when the queue is empty."""

        with self._lock:
            if not self._queue:
                return None
            item = self._queue.popleft()
            self._pending.discard(item.url)
            self._visited.add(item.url)
            self._dequeued_count += 1
            return item

    def restore(self, visited: Iterable[str], queue: Iterable[QueuedURL]) -> None:
        """Load a saved session's visited set and pending queue.

        Queue entries that were already visited are dropped. The page budget
        counts everything restored, so a resumed run cannot exceed the limit.
        """

        with self._lock:
            self._visited = set(visited)
            self._queue.clear()
            self._pending.clear()
            for item in queue:
                if item.url in self._visited or item.url in self._pending:
                    continue
                self._queue.append(item)
                self._pending.add(item.url)
            self._accepted = len(self._visited) + len(self._queue)

    def __len__(self) -> int:
        with self._lock:
            return len(self._queue)

    def empty(self) -> bool:
        with self._lock:
            return not self._queue

    def visited_urls(self) -> set[str]:
        """Return snapshot of URLs dequeued so far (including restored ones)."""

        with self._lock:
            return set(self._visited)

    def pending(self) -> list[QueuedURL]:
        """Return snapshot of the pending queue in dequeue order."""

        with self._lock:
            return list(self._queue)

    def snapshot(self) -> dict[str, int]:
        """Return frontier counters for logs/stats reporting."""

        with self._lock:
            payload: dict[str, int] = {
                "queue_size": len(self._queue),
                "visited": len(self._visited),
                "accepted": self._accepted,
                "enqueued": self._enqueued_count,
                "dequeued": self._dequeued_count,
            }
            for status, count in self._skipped_counts.items():
                payload[status.value] = count
            return payload


__all__ = [
    "EnqueueResult",
    "EnqueueStatus",
    "Frontier",
]
