"""Per-URL recrawl decisions based on stored metadata and local artifacts."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .metadata import MetadataStore


class RecrawlReason(str, Enum):
    """Why a page was (or was not) scheduled for saving."""

    DISABLED = "change_detection_disabled"
    FORCED = "force_recrawl"
    NEW_PAGE = "new_page"
    MISSING_ARTIFACT = "missing_artifact"
    CONTENT_CHANGED = "content_changed"
    UNCHANGED = "unchanged"


@dataclass(frozen=True, slots=True)
class RecrawlDecision:
    reason: RecrawlReason

    @property
    def should_fetch(self) -> bool:
        return self.reason != RecrawlReason.UNCHANGED


class ChangeDetector:
    """Decide whether a page needs to be re-materialized.

    The checks run in a fixed order: disabled, forced, unknown URL, missing
    artifact, hash mismatch. The missing-artifact check must come before the
    hash comparison, otherwise a deleted local file behind an unchanged remote
    page would never be restored.
    """

    def __init__(
        self,
        store: MetadataStore,
        *,
        enabled: bool = True,
        force_recrawl: bool = False,
    ) -> None:
        self.store = store
        self.enabled = enabled
        self.force_recrawl = force_recrawl

    def decide(
        self,
        url: str,
        new_content_hash: str,
        artifact_path: str | Path | None = None,
    ) -> RecrawlDecision:
        if not self.enabled:
            return RecrawlDecision(RecrawlReason.DISABLED)

        if self.force_recrawl:
            return RecrawlDecision(RecrawlReason.FORCED)

        page = self.store.get_page(url)
        if page is None:
            return RecrawlDecision(RecrawlReason.NEW_PAGE)

        path = Path(artifact_path) if artifact_path is not None else Path(page.file_path)
        if not path.exists():
            return RecrawlDecision(RecrawlReason.MISSING_ARTIFACT)

        if page.content_hash != new_content_hash:
            return RecrawlDecision(RecrawlReason.CONTENT_CHANGED)

        return RecrawlDecision(RecrawlReason.UNCHANGED)

    def should_recrawl(
        self,
        url: str,
        new_content_hash: str,
        artifact_path: str | Path | None = None,
    ) -> bool:
        """Return True when the page must be saved again."""

        return self.decide(url, new_content_hash, artifact_path).should_fetch


__all__ = ["ChangeDetector", "RecrawlDecision", "RecrawlReason"]
