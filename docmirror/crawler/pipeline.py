"""End-to-end incremental crawl orchestration."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import queue
import threading
import time
from typing import Callable

from tqdm import tqdm

from .change import ChangeDetector, RecrawlReason
from .config import CrawlConfig, ResumeMode
from .constants import MIN_ARTIFACT_EXISTENCE_RATIO
from .fetcher import Fetcher
from .frontier import Frontier
from .hashing import content_hash
from .metadata import MetadataStore
from .parsers import HTMLTransformer, HTMLTransformerConfig
from .session import SessionCheckpointManager
from .stats import RunDiagnostics, progress_lines, summary_lines
from .storage import Storage
from .types import (
    ContentTransformer,
    CrawlProgress,
    CrawlStage,
    CrawlStatistics,
    ErrorRecord,
    FetchResult,
    PageFetcher,
    QueuedURL,
    SessionState,
    TransformResult,
    utc_now_iso,
)
from .url import extract_framework


LOGGER = logging.getLogger(__name__)

RESULT_POLL_SECONDS = 0.2
WORKER_JOIN_TIMEOUT_SECONDS = 5.0


@dataclass(slots=True)
class _PageOutcome:
    """What a worker hands back to the orchestrator for one dequeued URL."""

    item: QueuedURL
    fetch_result: FetchResult | None = None
    transform_result: TransformResult | None = None
    failed_stage: CrawlStage | None = None
    message: str | None = None
    error_type: str | None = None

    @classmethod
    def from_exception(cls, item: QueuedURL, stage: CrawlStage, exc: Exception) -> "_PageOutcome":
        return cls(item=item, failed_stage=stage, message=str(exc), error_type=exc.__class__.__name__)


class CrawlPipeline:
    """Drive one crawl: frontier, fetch workers, change detection, metadata, checkpoints.

    Concurrency model:
    - `concurrency` worker threads only fetch and transform pages.
    - Results come back through one queue; the thread calling `run` is the only
      writer of the frontier, metadata store, statistics, and session file.
    - A politeness delay gates successive fetch dispatches.
    """

    def __init__(
        self,
        config: CrawlConfig,
        *,
        fetcher: PageFetcher | None = None,
        transformer: ContentTransformer | None = None,
        storage: Storage | None = None,
        stop_event: threading.Event | None = None,
        on_progress: Callable[[CrawlProgress], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config

        self.storage = storage or Storage(config.output_dir)
        self.fetcher: PageFetcher = fetcher or Fetcher(config)
        self.transformer: ContentTransformer = transformer or HTMLTransformer(
            HTMLTransformerConfig(keep_query=config.keep_query)
        )
        self.frontier = Frontier.from_config(config)
        self.session = SessionCheckpointManager(
            config.session_path,
            interval_seconds=config.checkpoint_interval_seconds,
            clock=clock,
        )
        self.diagnostics = RunDiagnostics()

        self.store: MetadataStore | None = None
        self.detector: ChangeDetector | None = None
        self.resumed = False

        self._owns_fetcher = fetcher is None
        self._stop_event = stop_event or threading.Event()
        self._on_progress = on_progress
        self._clock = clock

        self._work_queue: queue.Queue[QueuedURL | None] = queue.Queue()
        self._results: queue.Queue[_PageOutcome] = queue.Queue()
        self._in_flight: dict[str, QueuedURL] = {}
        self._next_dispatch_at = 0.0
        self._frameworks_seen: set[str] = set()
        self._progress_bar: tqdm | None = None
        self._processed = 0

    # Public API

    def request_stop(self) -> None:
        """Ask the run loop to checkpoint and return as soon as possible."""

        self._stop_event.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def run(self) -> CrawlStatistics:
        """Run the crawl and return its statistics.

        Raises `ConfigurationError`, `MetadataCorruptError`,
        `SessionCorruptError` or `SessionConflictError` before any page is
        fetched. Per-page failures never raise. When stopped early (via
        `request_stop` or `KeyboardInterrupt`) the returned statistics have no
        `end_time` and the session file is left in place for resuming.
        """

        self.storage.ensure_writable()
        self.store = MetadataStore.load(self.config.metadata_path)
        self.detector = ChangeDetector(
            self.store,
            enabled=self.config.change_detection_enabled,
            force_recrawl=self.config.force_recrawl,
        )
        self._warn_if_metadata_stale()
        self._prepare_session()

        LOGGER.info("Start URL: %s", self.config.start_url)
        LOGGER.info("Max pages: %d, max depth: %d", self.config.max_pages, self.config.max_depth)
        LOGGER.info(
            "Current: %d visited, %d queued",
            len(self.frontier.visited_urls()),
            len(self.frontier),
        )
        LOGGER.info("Output: %s", self.config.output_dir)

        workers = [
            threading.Thread(
                target=self._worker,
                name=f"crawler-worker-{idx}",
                daemon=True,
            )
            for idx in range(self.config.concurrency)
        ]
        for worker in workers:
            worker.start()

        self._progress_bar = tqdm(
            total=self.config.max_pages,
            initial=min(len(self.frontier.visited_urls()), self.config.max_pages),
            desc="Crawling",
            unit="page",
            disable=not self.config.show_progress,
        )

        try:
            self._crawl_loop()
        except KeyboardInterrupt:
            LOGGER.warning("Interrupted; writing final checkpoint")
            self._stop_event.set()
            self._finish_interrupted()
            raise
        finally:
            # In-flight results are abandoned on stop; their URLs are re-queued in the checkpoint.
            self._shutdown_workers(workers, wait=not self.stop_requested)
            self._progress_bar.close()
            if self._owns_fetcher and isinstance(self.fetcher, Fetcher):
                self.fetcher.close()

        if self.stop_requested:
            return self._finish_interrupted()
        return self._finish_completed()

    # Setup

    def _warn_if_metadata_stale(self) -> None:
        assert self.store is not None
        ratio = self.store.artifact_existence_ratio()
        if ratio < MIN_ARTIFACT_EXISTENCE_RATIO:
            LOGGER.warning(
                "Only %d%% of sampled artifacts from %s exist on disk; "
                "missing pages will be re-materialized",
                int(ratio * 100),
                self.config.metadata_path,
            )

    def _prepare_session(self) -> None:
        assert self.store is not None
        saved = self._resolve_saved_session()

        if saved is not None:
            LOGGER.info("Found resumable session")
            LOGGER.info("  Resuming from %d visited URLs", len(saved.visited))
            LOGGER.info("  Queue has %d pending URLs", len(saved.queue))

            self.frontier.restore(saved.visited, saved.queue)

            def _resume(stats: CrawlStatistics) -> None:
                if stats.start_time is None:
                    stats.start_time = saved.session_start_time
                stats.end_time = None

            stats = self.store.update_statistics(_resume)
            self.session.start_session(stats.start_time)
            self.resumed = True
            return

        started = utc_now_iso()
        self.store.reset_statistics(CrawlStatistics(start_time=started))
        self.session.start_session(started)
        seeded = self.frontier.enqueue(self.config.start_url, 0, check_scope=False)
        self.diagnostics.record_enqueue_many([seeded])
        LOGGER.info("Starting new crawl")

    def _resolve_saved_session(self) -> SessionState | None:
        assert self.store is not None
        if not self.session.has_active_session():
            return None

        if self.config.force_recrawl:
            LOGGER.info("Force recrawl requested; discarding saved session")
            self.session.clear_session_state()
            return None

        if self.config.resume_mode == ResumeMode.FRESH:
            LOGGER.info("resume_mode=fresh; discarding saved session")
            self.session.clear_session_state()
            return None

        saved = self.session.get_saved_session()
        if saved is None:
            return None

        if self.store.statistics().finished:
            LOGGER.info("Saved session predates the last completed run; discarding it")
            self.session.clear_session_state()
            return None

        if self.config.resume_mode == ResumeMode.AUTO:
            return self.session.check_conflict(self.config.start_url, self.config.output_dir)

        if not saved.matches(self.config.start_url, str(self.config.output_dir)):
            LOGGER.warning(
                "Resuming session for %s (output %s) as requested",
                saved.start_url,
                saved.output_directory,
            )

        return saved

    # Main loop

    def _crawl_loop(self) -> None:
        while not self.stop_requested:
            self._dispatch_ready_work()
            if self.stop_requested:
                return
            if not self._in_flight:
                return

            try:
                outcome = self._results.get(timeout=RESULT_POLL_SECONDS)
            except queue.Empty:
                continue

            if self.stop_requested:
                # Left in flight so the final checkpoint re-queues it.
                return

            self._in_flight.pop(outcome.item.url, None)
            self._apply_outcome(outcome)
            self._after_unit_of_work(outcome.item)

    def _dispatch_ready_work(self) -> None:
        while len(self._in_flight) < self.config.concurrency and not self.frontier.empty():
            wait = self._next_dispatch_at - self._clock()
            if wait > 0 and self._stop_event.wait(wait):
                return

            item = self.frontier.dequeue()
            if item is None:
                return

            self._in_flight[item.url] = item
            self._work_queue.put(item)
            self._next_dispatch_at = self._clock() + self.config.request_delay_seconds

    def _after_unit_of_work(self, item: QueuedURL) -> None:
        # Politeness: the next fetch waits at least one delay after this page finished.
        self._next_dispatch_at = max(
            self._next_dispatch_at,
            self._clock() + self.config.request_delay_seconds,
        )

        self._checkpoint()

        self._processed += 1
        visited = len(self.frontier.visited_urls()) - len(self._in_flight)
        if self._progress_bar is not None:
            self._progress_bar.update(1)

        assert self.store is not None
        stats = self.store.statistics()
        if self._processed % self.config.progress_log_every == 0:
            for line in progress_lines(
                stats,
                visited=visited,
                queued=len(self.frontier),
                max_pages=self.config.max_pages,
            ):
                LOGGER.info(line)

        if self._on_progress is not None:
            self._on_progress(
                CrawlProgress(
                    current_url=item.url,
                    visited_count=visited,
                    max_pages=self.config.max_pages,
                    queue_size=len(self.frontier),
                    stats=stats,
                )
            )

    # Workers

    def _worker(self) -> None:
        while True:
            item = self._work_queue.get()
            if item is None:
                return
            self._results.put(self._process(item))

    def _process(self, item: QueuedURL) -> _PageOutcome:
        try:
            fetch_result = self.fetcher.fetch(item.url)
        except Exception as exc:
            return _PageOutcome.from_exception(item, CrawlStage.FETCH, exc)

        if not fetch_result.ok or fetch_result.body is None:
            return _PageOutcome(
                item=item,
                fetch_result=fetch_result,
                failed_stage=CrawlStage.FETCH,
                message=fetch_result.failure_message,
            )

        try:
            transformed = self.transformer.transform(
                fetch_result.body,
                fetch_result.final_url or item.url,
            )
        except Exception as exc:
            outcome = _PageOutcome.from_exception(item, CrawlStage.TRANSFORM, exc)
            outcome.fetch_result = fetch_result
            return outcome

        if transformed is None:
            return _PageOutcome(
                item=item,
                fetch_result=fetch_result,
                failed_stage=CrawlStage.TRANSFORM,
                message="Transformer produced no content",
            )

        return _PageOutcome(item=item, fetch_result=fetch_result, transform_result=transformed)

    def _shutdown_workers(self, workers: list[threading.Thread], *, wait: bool = True) -> None:
        for _ in workers:
            self._work_queue.put(None)
        if not wait:
            return
        for worker in workers:
            worker.join(timeout=WORKER_JOIN_TIMEOUT_SECONDS)

    # Per-page results (orchestrator thread only)

    def _apply_outcome(self, outcome: _PageOutcome) -> None:
        assert self.store is not None and self.detector is not None

        item = outcome.item
        framework = extract_framework(item.url, marker=self.config.framework_marker)
        self._frameworks_seen.add(framework)

        if outcome.fetch_result is not None:
            self.diagnostics.record_fetch(
                elapsed_ms=outcome.fetch_result.elapsed_ms,
                content_length=outcome.fetch_result.content_length,
            )

        if outcome.failed_stage is not None or outcome.transform_result is None:
            self._record_failure(
                ErrorRecord(
                    stage=outcome.failed_stage or CrawlStage.TRANSFORM,
                    url=item.url,
                    message=outcome.message or "Unknown failure",
                    depth=item.depth,
                    framework=framework,
                    error_type=outcome.error_type,
                    status_code=(
                        outcome.fetch_result.status_code if outcome.fetch_result else None
                    ),
                )
            )
            return

        transformed = outcome.transform_result
        page_hash = content_hash(transformed.text)
        artifact_path = self.storage.artifact_path_for(item.url, framework)

        decision = self.detector.decide(item.url, page_hash, artifact_path)
        self.diagnostics.record_decision(decision.reason)

        if not decision.should_fetch:
            LOGGER.info("[depth=%d] %s unchanged, skipping", item.depth, item.url)
            self.store.update_statistics(_count_skipped)
            if self.config.expand_unchanged_pages:
                self._enqueue_links(item, transformed.links)
            return

        is_new = not self.store.has_page(item.url)
        try:
            saved_path = self.storage.save_artifact(
                url=item.url,
                framework=framework,
                depth=item.depth,
                content_hash=page_hash,
                result=transformed,
                path=artifact_path,
            )
        except OSError as exc:
            self._record_failure(
                ErrorRecord.from_exception(
                    stage=CrawlStage.STORE,
                    url=item.url,
                    exc=exc,
                    depth=item.depth,
                    framework=framework,
                )
            )
            return

        self.store.upsert_page(
            item.url,
            framework,
            saved_path,
            page_hash,
            item.depth,
            is_new=is_new,
        )
        self.store.update_statistics(_count_new if is_new else _count_updated)

        if is_new:
            LOGGER.info("[depth=%d] saved new page %s", item.depth, saved_path.name)
        elif decision.reason == RecrawlReason.MISSING_ARTIFACT:
            LOGGER.info("[depth=%d] restored missing artifact %s", item.depth, saved_path.name)
        else:
            LOGGER.info("[depth=%d] updated page %s", item.depth, saved_path.name)

        self._enqueue_links(item, transformed.links)

    def _enqueue_links(self, item: QueuedURL, links: list[str]) -> None:
        if item.depth >= self.config.max_depth or not links:
            return
        results = self.frontier.enqueue_many(links, item.depth + 1)
        self.diagnostics.record_enqueue_many(results)

    def _record_failure(self, record: ErrorRecord) -> None:
        assert self.store is not None
        LOGGER.warning("Failed %s at %s stage: %s", record.url, record.stage.value, record.message)

        self.store.update_statistics(_count_error)
        if record.framework:
            self.store.record_framework_error(record.framework)
        self.diagnostics.record_failure(record.stage)

        try:
            self.storage.save_error(record)
        except OSError:
            LOGGER.exception("Failed to append error record for %s", record.url)

    # Checkpoints and finalization

    def _checkpoint_frontier(self) -> tuple[set[str], list[QueuedURL]]:
        """Frontier state to persist; in-flight URLs go back to the head of the queue."""

        in_flight = sorted(self._in_flight.values(), key=lambda queued: queued.depth)
        visited = self.frontier.visited_urls() - {queued.url for queued in in_flight}
        return visited, in_flight + self.frontier.pending()

    def _checkpoint(self, *, force: bool = False) -> bool:
        """Write session + metadata; periodic unless `force`. Returns True if written."""

        assert self.store is not None
        if not force and not self.session.due():
            return False

        visited, pending = self._checkpoint_frontier()
        save = self.session.save_session_state if force else self.session.auto_save_if_needed
        written = save(
            visited,
            pending,
            self.config.start_url,
            str(self.config.output_dir),
        )
        self.diagnostics.record_checkpoint(written)

        # Metadata is saved whether or not the session write succeeded.
        try:
            self.store.save()
        except OSError:
            LOGGER.exception("Failed to save metadata during checkpoint")

        if not written:
            return False

        if self.config.checkpoint_delay_seconds > 0:
            self._next_dispatch_at = max(
                self._next_dispatch_at,
                self._clock() + self.config.checkpoint_delay_seconds,
            )
        return True

    def _finish_interrupted(self) -> CrawlStatistics:
        assert self.store is not None
        self._checkpoint(force=True)
        stats = self.store.statistics()
        LOGGER.info(
            "Crawl stopped early; session saved to %s (%d visited, %d queued)",
            self.config.session_path,
            len(self.frontier.visited_urls()) - len(self._in_flight),
            len(self.frontier) + len(self._in_flight),
        )
        for line in summary_lines(stats, output_dir=str(self.config.output_dir)):
            LOGGER.info(line)
        return stats

    def _finish_completed(self) -> CrawlStatistics:
        assert self.store is not None

        def _finish(stats: CrawlStatistics) -> None:
            stats.end_time = utc_now_iso()

        stats = self.store.update_statistics(_finish)
        self.store.mark_frameworks_complete(self._frameworks_seen)
        self.store.finalize(stats)
        self.store.save()
        self.session.clear_session_state()

        LOGGER.info("Crawl completed")
        for line in summary_lines(stats, output_dir=str(self.config.output_dir)):
            LOGGER.info(line)
        LOGGER.debug("Run diagnostics: %s", self.diagnostics.to_json(self.frontier.snapshot()))
        return stats


def _count_new(stats: CrawlStatistics) -> None:
    stats.new_pages += 1
    stats.total_pages += 1


def _count_updated(stats: CrawlStatistics) -> None:
    stats.updated_pages += 1
    stats.total_pages += 1


def _count_skipped(stats: CrawlStatistics) -> None:
    stats.skipped_pages += 1
    stats.total_pages += 1


def _count_error(stats: CrawlStatistics) -> None:
    stats.errors += 1


def crawl(config: CrawlConfig, **kwargs) -> CrawlStatistics:
    """Run one crawl for `config` and return its final statistics."""

    return CrawlPipeline(config, **kwargs).run()


__all__ = [
    "CrawlPipeline",
    "crawl",
]
