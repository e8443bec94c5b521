"""Typed crawler configuration with JSON/YAML load/save helpers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

import yaml  # type: ignore

from .constants import (
    DEFAULT_CHANGE_DETECTION_ENABLED,
    DEFAULT_CHECKPOINT_DELAY_SECONDS,
    DEFAULT_CHECKPOINT_INTERVAL_SECONDS,
    DEFAULT_CONCURRENCY,
    DEFAULT_EXPAND_UNCHANGED_PAGES,
    DEFAULT_FORCE_RECRAWL,
    DEFAULT_FRAMEWORK_MARKER,
    DEFAULT_HTTP_HEADERS,
    DEFAULT_KEEP_QUERY,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_PAGES,
    DEFAULT_PROGRESS_LOG_EVERY,
    DEFAULT_REQUEST_DELAY_SECONDS,
    DEFAULT_RETRIES,
    DEFAULT_RETRY_BACKOFF_SECONDS,
    DEFAULT_SHOW_PROGRESS,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
    JSON_INDENT,
    METADATA_FILENAME,
    SESSION_FILENAME,
    SUPPORTED_CONFIG_SUFFIXES,
)
from .errors import ConfigurationError
from .types import JSONDict, JSONValue
from .url import default_prefix_for, normalize_url


class ResumeMode(str, Enum):
    """How to treat a saved session that belongs to a different crawl."""

    AUTO = "auto"  # resume a matching session, raise on a conflicting one
    RESUME = "resume"  # resume whatever session is saved
    FRESH = "fresh"  # always discard a saved session


def _as_float(value: Any, key: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid float for '{key}': {value!r}") from exc


def _as_int(value: Any, key: str) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid int for '{key}': {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid int for '{key}': {value!r}") from exc


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ConfigurationError(f"Invalid bool for '{key}': {value!r}")


def _as_optional_path(value: Any) -> Path | None:
    if value is None or value == "":
        return None
    return Path(str(value))


@dataclass(slots=True)
class CrawlConfig:
    """Configuration for one incremental crawl, passed explicitly to the pipeline."""

    start_url: str
    output_dir: Path

    max_depth: int = DEFAULT_MAX_DEPTH
    max_pages: int = DEFAULT_MAX_PAGES
    allowed_prefixes: list[str] = field(default_factory=list)

    force_recrawl: bool = DEFAULT_FORCE_RECRAWL
    change_detection_enabled: bool = DEFAULT_CHANGE_DETECTION_ENABLED
    resume_mode: ResumeMode = ResumeMode.AUTO
    expand_unchanged_pages: bool = DEFAULT_EXPAND_UNCHANGED_PAGES

    metadata_file: Path | None = None
    session_file: Path | None = None

    concurrency: int = DEFAULT_CONCURRENCY
    request_delay_seconds: float = DEFAULT_REQUEST_DELAY_SECONDS
    checkpoint_interval_seconds: float = DEFAULT_CHECKPOINT_INTERVAL_SECONDS
    checkpoint_delay_seconds: float = DEFAULT_CHECKPOINT_DELAY_SECONDS

    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    retries: int = DEFAULT_RETRIES
    retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS
    user_agent: str = DEFAULT_USER_AGENT
    default_headers: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HTTP_HEADERS))

    framework_marker: str = DEFAULT_FRAMEWORK_MARKER
    keep_query: bool = DEFAULT_KEEP_QUERY
    progress_log_every: int = DEFAULT_PROGRESS_LOG_EVERY
    show_progress: bool = DEFAULT_SHOW_PROGRESS

    metadata: dict[str, JSONValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        normalized_start = normalize_url(self.start_url, keep_query=self.keep_query)
        if normalized_start is None:
            raise ConfigurationError(f"Invalid start URL: {self.start_url!r}")
        self.start_url = normalized_start

        self.output_dir = Path(self.output_dir)
        if not str(self.output_dir).strip():
            raise ConfigurationError("output_dir must not be empty")

        if self.max_depth < 0:
            raise ConfigurationError("max_depth must be >= 0")
        if self.max_pages <= 0:
            raise ConfigurationError("max_pages must be > 0")
        if self.concurrency <= 0:
            raise ConfigurationError("concurrency must be > 0")
        if self.request_delay_seconds < 0:
            raise ConfigurationError("request_delay_seconds must be >= 0")
        if self.checkpoint_interval_seconds < 0:
            raise ConfigurationError("checkpoint_interval_seconds must be >= 0")
        if self.checkpoint_delay_seconds < 0:
            raise ConfigurationError("checkpoint_delay_seconds must be >= 0")
        if self.timeout_seconds <= 0:
            raise ConfigurationError("timeout_seconds must be > 0")
        if self.retries < 0:
            raise ConfigurationError("retries must be >= 0")
        if self.retry_backoff_seconds < 0:
            raise ConfigurationError("retry_backoff_seconds must be >= 0")
        if self.progress_log_every <= 0:
            raise ConfigurationError("progress_log_every must be > 0")
        if not self.framework_marker.strip():
            raise ConfigurationError("framework_marker must not be empty")

        if isinstance(self.resume_mode, str) and not isinstance(self.resume_mode, ResumeMode):
            try:
                self.resume_mode = ResumeMode(self.resume_mode.strip().lower())
            except ValueError as exc:
                raise ConfigurationError(f"Invalid resume_mode: {self.resume_mode!r}") from exc

        prefixes: list[str] = []
        for prefix in self.allowed_prefixes:
            stripped = str(prefix).strip()
            if not stripped:
                continue
            normalized_prefix = normalize_url(stripped, keep_query=self.keep_query)
            if normalized_prefix is None:
                raise ConfigurationError(f"Invalid allowed prefix: {prefix!r}")
            if normalized_prefix not in prefixes:
                prefixes.append(normalized_prefix)
        if not prefixes:
            default_prefix = default_prefix_for(self.start_url)
            if default_prefix:
                prefixes.append(default_prefix)
        self.allowed_prefixes = prefixes

        if self.metadata_file is None:
            self.metadata_file = self.output_dir / METADATA_FILENAME
        else:
            self.metadata_file = Path(self.metadata_file)
        if self.session_file is None:
            self.session_file = self.output_dir / SESSION_FILENAME
        else:
            self.session_file = Path(self.session_file)

    @property
    def metadata_path(self) -> Path:
        assert self.metadata_file is not None
        return self.metadata_file

    @property
    def session_path(self) -> Path:
        assert self.session_file is not None
        return self.session_file

    def headers(self) -> dict[str, str]:
        """Return request headers with the configured User-Agent applied."""

        merged = dict(self.default_headers)
        merged.setdefault("User-Agent", self.user_agent)
        return merged

    def to_dict(self) -> JSONDict:
        """Serialize config for manifests and reproducibility."""

        return {
            "start_url": self.start_url,
            "output_dir": str(self.output_dir),
            "max_depth": self.max_depth,
            "max_pages": self.max_pages,
            "allowed_prefixes": list(self.allowed_prefixes),
            "force_recrawl": self.force_recrawl,
            "change_detection_enabled": self.change_detection_enabled,
            "resume_mode": self.resume_mode.value,
            "expand_unchanged_pages": self.expand_unchanged_pages,
            "metadata_file": str(self.metadata_file),
            "session_file": str(self.session_file),
            "concurrency": self.concurrency,
            "request_delay_seconds": self.request_delay_seconds,
            "checkpoint_interval_seconds": self.checkpoint_interval_seconds,
            "checkpoint_delay_seconds": self.checkpoint_delay_seconds,
            "timeout_seconds": self.timeout_seconds,
            "retries": self.retries,
            "retry_backoff_seconds": self.retry_backoff_seconds,
            "user_agent": self.user_agent,
            "default_headers": dict(self.default_headers),
            "framework_marker": self.framework_marker,
            "keep_query": self.keep_query,
            "progress_log_every": self.progress_log_every,
            "show_progress": self.show_progress,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CrawlConfig":
        """Build config from a parsed dictionary."""

        for key in ("start_url", "output_dir"):
            if key not in payload:
                raise ConfigurationError(f"Config missing required key: '{key}'")

        raw_prefixes = payload.get("allowed_prefixes") or []
        if isinstance(raw_prefixes, str):
            raw_prefixes = [raw_prefixes]

        return cls(
            start_url=str(payload["start_url"]),
            output_dir=Path(str(payload["output_dir"])),
            max_depth=_as_int(payload.get("max_depth", DEFAULT_MAX_DEPTH), "max_depth"),
            max_pages=_as_int(payload.get("max_pages", DEFAULT_MAX_PAGES), "max_pages"),
            allowed_prefixes=[str(prefix) for prefix in raw_prefixes],
            force_recrawl=_as_bool(
                payload.get("force_recrawl", DEFAULT_FORCE_RECRAWL),
                "force_recrawl",
            ),
            change_detection_enabled=_as_bool(
                payload.get("change_detection_enabled", DEFAULT_CHANGE_DETECTION_ENABLED),
                "change_detection_enabled",
            ),
            resume_mode=str(payload.get("resume_mode", ResumeMode.AUTO.value)),
            expand_unchanged_pages=_as_bool(
                payload.get("expand_unchanged_pages", DEFAULT_EXPAND_UNCHANGED_PAGES),
                "expand_unchanged_pages",
            ),
            metadata_file=_as_optional_path(payload.get("metadata_file")),
            session_file=_as_optional_path(payload.get("session_file")),
            concurrency=_as_int(payload.get("concurrency", DEFAULT_CONCURRENCY), "concurrency"),
            request_delay_seconds=_as_float(
                payload.get("request_delay_seconds", DEFAULT_REQUEST_DELAY_SECONDS),
                "request_delay_seconds",
            ),
            checkpoint_interval_seconds=_as_float(
                payload.get("checkpoint_interval_seconds", DEFAULT_CHECKPOINT_INTERVAL_SECONDS),
                "checkpoint_interval_seconds",
            ),
            checkpoint_delay_seconds=_as_float(
                payload.get("checkpoint_delay_seconds", DEFAULT_CHECKPOINT_DELAY_SECONDS),
                "checkpoint_delay_seconds",
            ),
            timeout_seconds=_as_float(
                payload.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS),
                "timeout_seconds",
            ),
            retries=_as_int(payload.get("retries", DEFAULT_RETRIES), "retries"),
            retry_backoff_seconds=_as_float(
                payload.get("retry_backoff_seconds", DEFAULT_RETRY_BACKOFF_SECONDS),
                "retry_backoff_seconds",
            ),
            user_agent=str(payload.get("user_agent", DEFAULT_USER_AGENT)),
            default_headers={
                str(k): str(v)
                for k, v in dict(payload.get("default_headers", DEFAULT_HTTP_HEADERS)).items()
            },
            framework_marker=str(payload.get("framework_marker", DEFAULT_FRAMEWORK_MARKER)),
            keep_query=_as_bool(payload.get("keep_query", DEFAULT_KEEP_QUERY), "keep_query"),
            progress_log_every=_as_int(
                payload.get("progress_log_every", DEFAULT_PROGRESS_LOG_EVERY),
                "progress_log_every",
            ),
            show_progress=_as_bool(
                payload.get("show_progress", DEFAULT_SHOW_PROGRESS),
                "show_progress",
            ),
            metadata=dict(payload.get("metadata", {})),
        )


def _load_yaml(path: Path) -> dict[str, Any]:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"YAML config at {path} must be a mapping at top level")
    return data


def load_config(path: str | Path) -> CrawlConfig:
    """Load CrawlConfig from JSON/YAML path."""

    config_path = Path(path)
    suffix = config_path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise ConfigurationError(
            f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
        )

    if suffix == ".json":
        payload = json.loads(config_path.read_text(encoding="utf-8"))
    else:
        payload = _load_yaml(config_path)

    if not isinstance(payload, dict):
        raise ConfigurationError(f"Config at {config_path} must be a mapping")

    return CrawlConfig.from_dict(payload)


def save_config(config: CrawlConfig, path: str | Path) -> None:
    """Save CrawlConfig as JSON or YAML based on file extension."""

    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    suffix = out_path.suffix.lower()
    payload = config.to_dict()

    if suffix == ".json":
        out_path.write_text(
            json.dumps(payload, indent=JSON_INDENT, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        return

    if suffix in {".yaml", ".yml"}:
        out_path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
        return

    raise ConfigurationError(
        f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
    )


__all__ = [
    "CrawlConfig",
    "ResumeMode",
    "load_config",
    "save_config",
]
