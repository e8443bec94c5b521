"""Filesystem-backed storage for crawl artifacts and failure logs.

Storage owns the artifact layout under `output_dir`. Other modules should use
this API (or the atomic write helpers) instead of building paths or writing
files manually.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Mapping

from .constants import ARTIFACT_EXTENSION, ERRORS_FILENAME
from .errors import ConfigurationError
from .types import ErrorRecord, JSONDict, TransformResult, utc_now_iso
from .url import artifact_filename


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write `data` to `path` via a temp file in the same directory + rename."""

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent),
        prefix=path.name + ".",
        suffix=".tmp",
    )
    try:
        with os.fdopen(tmp_fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        raise


def atomic_write_json(path: Path, payload: Mapping[str, Any]) -> None:
    """Serialize `payload` as pretty JSON and write it atomically."""

    content = json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n"
    atomic_write_bytes(path, content.encode("utf-8"))


class Storage:
    """Persist normalized page artifacts under a single `output_dir` root."""

    def __init__(self, output_dir: str | Path) -> None:
        self.output_dir = Path(output_dir)
        self.errors_path = self.output_dir / ERRORS_FILENAME

        self._jsonl_lock = threading.Lock()

    def ensure_writable(self) -> None:
        """Create the output root and verify it accepts writes.

        Raises `ConfigurationError` when the directory cannot be created or
        written, so the run aborts before any work begins.
        """

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ConfigurationError(
                f"Cannot create output directory {self.output_dir}: {exc}"
            ) from exc

        if not self.output_dir.is_dir():
            raise ConfigurationError(f"Output path {self.output_dir} is not a directory")

        try:
            fd, probe = tempfile.mkstemp(dir=str(self.output_dir), prefix=".write-probe.")
            os.close(fd)
            os.unlink(probe)
        except OSError as exc:
            raise ConfigurationError(
                f"Output directory {self.output_dir} is not writable: {exc}"
            ) from exc

    def artifact_path_for(self, url: str, framework: str) -> Path:
        """Build the deterministic artifact path for a URL within its framework."""

        return self.output_dir / framework / f"{artifact_filename(url)}{ARTIFACT_EXTENSION}"

    def save_artifact(
        self,
        *,
        url: str,
        framework: str,
        depth: int,
        content_hash: str,
        result: TransformResult,
        path: Path | None = None,
    ) -> Path:
        """Persist one normalized page atomically and return its path."""

        target = path or self.artifact_path_for(url, framework)
        payload: JSONDict = {
            "url": url,
            "framework": framework,
            "title": result.title,
            "content": result.text,
            "contentHash": content_hash,
            "depth": depth,
            "crawledAt": utc_now_iso(),
        }
        if result.metadata:
            payload["metadata"] = dict(result.metadata)

        atomic_write_json(target, payload)
        return target

    def save_error(self, record: ErrorRecord) -> None:
        """Append error record to `errors.jsonl`."""

        line = json.dumps(record.to_json(), ensure_ascii=False, sort_keys=True)
        with self._jsonl_lock:
            self.errors_path.parent.mkdir(parents=True, exist_ok=True)
            with self.errors_path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")


__all__ = ["Storage", "atomic_write_bytes", "atomic_write_json"]
