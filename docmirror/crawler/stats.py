"""Run statistics reporting: diagnostics counters, summaries, progress lines."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
import threading
from typing import Any, Iterable, Mapping

from .change import RecrawlReason
from .frontier import EnqueueResult
from .types import CrawlStage, CrawlStatistics, parse_iso_utc


def format_duration(seconds: float | None) -> str:
    """Format seconds as `1h 2m 3s`, `2m 3s`, or `3s`."""

    if seconds is None:
        return "n/a"
    total = int(max(0.0, seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def elapsed_seconds(stats: CrawlStatistics) -> float:
    """Seconds since `start_time` (to `end_time` when finished)."""

    start = parse_iso_utc(stats.start_time)
    if start is None:
        return 0.0
    end = parse_iso_utc(stats.end_time) or datetime.now(timezone.utc)
    return max(0.0, (end - start).total_seconds())


def summarize(stats: CrawlStatistics) -> dict[str, Any]:
    """Return the user-facing summary payload for a run."""

    elapsed = elapsed_seconds(stats)
    processed = stats.total_pages + stats.errors
    return {
        **stats.to_json(),
        "duration_seconds": stats.duration if stats.finished else elapsed,
        "duration": format_duration(stats.duration if stats.finished else elapsed),
        "pages_per_second": processed / elapsed if elapsed > 0 else 0.0,
    }


def summary_lines(stats: CrawlStatistics, *, output_dir: str | None = None) -> list[str]:
    lines = [
        "Statistics:",
        f"  Total pages processed: {stats.total_pages}",
        f"  New pages: {stats.new_pages}",
        f"  Updated pages: {stats.updated_pages}",
        f"  Skipped (unchanged): {stats.skipped_pages}",
        f"  Errors: {stats.errors}",
    ]
    if stats.duration is not None:
        lines.append(f"  Duration: {format_duration(stats.duration)}")
    if output_dir:
        lines.append(f"Output: {output_dir}")
    return lines


def progress_lines(
    stats: CrawlStatistics,
    *,
    visited: int,
    queued: int,
    max_pages: int,
) -> list[str]:
    """Periodic progress report with throughput and a naive ETA."""

    elapsed = elapsed_seconds(stats)
    pages_per_second = visited / elapsed if elapsed > 0 else 0.0
    remaining = max(0, max_pages - visited)
    eta = remaining / pages_per_second if pages_per_second > 0 else None

    return [
        f"Progress update [{visited}/{max_pages}]:",
        f"  Queue: {queued} pending URLs",
        f"  New: {stats.new_pages} | Updated: {stats.updated_pages} | Skipped: {stats.skipped_pages}",
        f"  Errors: {stats.errors}",
        f"  Speed: {pages_per_second:.2f} pages/sec",
        f"  Elapsed: {format_duration(elapsed)}",
        f"  ETA: {format_duration(eta)}",
    ]


class RunDiagnostics:
    """Thread-safe diagnostic counters that complement `CrawlStatistics`.

    These counters explain *why* pages were enqueued, skipped, or failed; they
    are reported at the end of a run but never persisted in the metadata file.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._enqueue_counts: dict[str, int] = defaultdict(int)
        self._decision_counts: dict[str, int] = defaultdict(int)
        self._failure_counts: dict[str, int] = defaultdict(int)
        self._fetch_elapsed_ms_total = 0
        self._fetch_bytes_total = 0
        self._checkpoints_written = 0
        self._checkpoints_failed = 0

    def record_enqueue_many(self, results: Iterable[EnqueueResult]) -> None:
        with self._lock:
            for result in results:
                self._enqueue_counts[result.status.value] += 1

    def record_decision(self, reason: RecrawlReason) -> None:
        with self._lock:
            self._decision_counts[reason.value] += 1

    def record_failure(self, stage: CrawlStage) -> None:
        with self._lock:
            self._failure_counts[stage.value] += 1

    def record_fetch(self, *, elapsed_ms: int | None, content_length: int | None) -> None:
        with self._lock:
            if elapsed_ms is not None:
                self._fetch_elapsed_ms_total += int(elapsed_ms)
            if content_length is not None:
                self._fetch_bytes_total += int(content_length)

    def record_checkpoint(self, written: bool) -> None:
        with self._lock:
            if written:
                self._checkpoints_written += 1
            else:
                self._checkpoints_failed += 1

    def to_json(self, frontier_snapshot: Mapping[str, int] | None = None) -> dict[str, Any]:
        with self._lock:
            return {
                "enqueue": dict(self._enqueue_counts),
                "decisions": dict(self._decision_counts),
                "failures": dict(self._failure_counts),
                "fetch": {
                    "elapsed_ms_total": self._fetch_elapsed_ms_total,
                    "bytes_total": self._fetch_bytes_total,
                },
                "checkpoints": {
                    "written": self._checkpoints_written,
                    "failed": self._checkpoints_failed,
                },
                "frontier": dict(frontier_snapshot or {}),
            }


__all__ = [
    "RunDiagnostics",
    "elapsed_seconds",
    "format_duration",
    "progress_lines",
    "summarize",
    "summary_lines",
]
