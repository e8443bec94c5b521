"""Crawler package: config, shared types, and incremental pipeline components."""

from .change import ChangeDetector, RecrawlDecision, RecrawlReason
from .config import CrawlConfig, ResumeMode, load_config, save_config
from .errors import (
    ConfigurationError,
    CrawlerError,
    MetadataCorruptError,
    SessionConflictError,
    SessionCorruptError,
)
from .fetcher import Fetcher
from .frontier import EnqueueResult, EnqueueStatus, Frontier
from .hashing import content_hash
from .metadata import MetadataStore
from .parsers import HTMLTransformer, HTMLTransformerConfig
from .pipeline import CrawlPipeline, crawl
from .session import SessionCheckpointManager
from .stats import RunDiagnostics, summarize
from .storage import Storage
from .types import (
    ContentTransformer,
    CrawlMetadata,
    CrawlProgress,
    CrawlStage,
    CrawlStatistics,
    CrawlStatus,
    ErrorRecord,
    FetchResult,
    FrameworkStats,
    PageFetcher,
    PageMetadata,
    QueuedURL,
    SessionState,
    TransformResult,
    utc_now_iso,
)
from .url import (
    artifact_filename,
    extract_framework,
    extract_links_from_html,
    is_url_in_scope,
    normalize_url,
    resolve_url,
)

__all__ = [
    "ChangeDetector",
    "ConfigurationError",
    "ContentTransformer",
    "CrawlConfig",
    "CrawlMetadata",
    "CrawlPipeline",
    "CrawlProgress",
    "CrawlStage",
    "CrawlStatistics",
    "CrawlStatus",
    "CrawlerError",
    "EnqueueResult",
    "EnqueueStatus",
    "ErrorRecord",
    "FetchResult",
    "Fetcher",
    "FrameworkStats",
    "Frontier",
    "HTMLTransformer",
    "HTMLTransformerConfig",
    "MetadataCorruptError",
    "MetadataStore",
    "PageFetcher",
    "PageMetadata",
    "QueuedURL",
    "RecrawlDecision",
    "RecrawlReason",
    "ResumeMode",
    "RunDiagnostics",
    "SessionCheckpointManager",
    "SessionConflictError",
    "SessionCorruptError",
    "SessionState",
    "Storage",
    "TransformResult",
    "artifact_filename",
    "content_hash",
    "crawl",
    "extract_framework",
    "extract_links_from_html",
    "is_url_in_scope",
    "load_config",
    "normalize_url",
    "resolve_url",
    "save_config",
    "summarize",
    "utc_now_iso",
]
