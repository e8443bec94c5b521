"""Error taxonomy for the crawl engine.

Configuration problems and metadata corruption are fatal and abort a run before
any work starts. Per-page failures never surface as exceptions from
`CrawlPipeline.run`; they are counted in the run statistics instead.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .types import SessionState


class CrawlerError(Exception):
    """Base class for fatal crawl engine errors."""


class ConfigurationError(CrawlerError, ValueError):
    """Invalid crawl configuration (bad start URL, unwritable output dir, ...)."""


class MetadataCorruptError(CrawlerError):
    """Existing metadata file could not be decoded."""

    def __init__(self, path: str | Path, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Corrupt crawl metadata at {self.path}: {reason}")


class SessionCorruptError(CrawlerError):
    """Existing session recovery file could not be decoded."""

    def __init__(self, path: str | Path, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Corrupt session file at {self.path}: {reason}")


class SessionConflictError(CrawlerError):
    """A saved session belongs to a different start URL or output directory.

    The caller decides whether to resume it or start fresh; see
    `CrawlConfig.resume_mode`.
    """

    def __init__(self, saved: "SessionState", *, start_url: str, output_directory: str) -> None:
        self.saved = saved
        self.start_url = start_url
        self.output_directory = output_directory
        super().__init__(
            "Saved session does not match this crawl "
            f"(saved start_url={saved.start_url!r}, output_directory={saved.output_directory!r}; "
            f"requested start_url={start_url!r}, output_directory={output_directory!r}). "
            "Choose resume_mode='resume' to continue it or resume_mode='fresh' to discard it."
        )


__all__ = [
    "ConfigurationError",
    "CrawlerError",
    "MetadataCorruptError",
    "SessionConflictError",
    "SessionCorruptError",
]
