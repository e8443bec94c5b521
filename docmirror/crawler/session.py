"""Crawl session checkpoints for resuming interrupted runs."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Callable, Iterable

from .errors import SessionConflictError, SessionCorruptError
from .storage import atomic_write_json
from .types import QueuedURL, SessionState, utc_now_iso


LOGGER = logging.getLogger(__name__)


class SessionCheckpointManager:
    """Persist the frontier to a recovery file and read it back on startup.

    Checkpoint writes never raise: a failed write is logged and the auto-save
    timer is left untouched, so the next `auto_save_if_needed` call retries.
    Losing one checkpoint only means redoing some pages after a restart.
    """

    def __init__(
        self,
        session_path: str | Path,
        *,
        interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval_seconds < 0:
            raise ValueError("interval_seconds must be >= 0")

        self.session_path = Path(session_path)
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._last_save: float | None = None
        self._session_start_time: str | None = None

        self.save_count = 0
        self.failure_count = 0

    def start_session(self, session_start_time: str | None = None) -> None:
        """Set the start time recorded in subsequent checkpoints."""

        self._session_start_time = session_start_time or utc_now_iso()

    def save_session_state(
        self,
        visited: Iterable[str],
        queue: Iterable[QueuedURL],
        start_url: str,
        output_directory: str | Path,
    ) -> bool:
        """Write a checkpoint unconditionally. Returns False if the write failed."""

        state = SessionState(
            start_url=start_url,
            output_directory=str(output_directory),
            visited=set(visited),
            queue=list(queue),
            session_start_time=self._session_start_time or utc_now_iso(),
            saved_at=utc_now_iso(),
            is_active=True,
        )

        try:
            atomic_write_json(self.session_path, state.to_json())
        except OSError:
            self.failure_count += 1
            LOGGER.exception("Failed to write session checkpoint to %s", self.session_path)
            return False

        self._last_save = self._clock()
        self.save_count += 1
        LOGGER.info(
            "Saved session state: %d visited, %d queued",
            len(state.visited),
            len(state.queue),
        )
        return True

    def due(self) -> bool:
        """True when no checkpoint has succeeded yet or the interval has elapsed."""

        if self._last_save is None:
            return True
        return self._clock() - self._last_save >= self.interval_seconds

    def auto_save_if_needed(
        self,
        visited: Iterable[str],
        queue: Iterable[QueuedURL],
        start_url: str,
        output_directory: str | Path,
    ) -> bool:
        """Write a checkpoint only when `due()`. Returns True if one was written."""

        if not self.due():
            return False
        return self.save_session_state(visited, queue, start_url, output_directory)

    def has_active_session(self) -> bool:
        """True when a recovery file exists and marks its session as active.

        An unreadable recovery file also counts as active so the caller hits the
        corruption error in `get_saved_session` instead of overwriting it.
        """

        if not self.session_path.exists():
            return False
        try:
            state = self.get_saved_session()
        except SessionCorruptError:
            return True
        return state is not None and state.is_active

    def get_saved_session(self) -> SessionState | None:
        """Read the recovery file; `None` if absent, `SessionCorruptError` if unreadable."""

        if not self.session_path.exists():
            return None

        try:
            payload = json.loads(self.session_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise SessionCorruptError(self.session_path, str(exc)) from exc

        try:
            return SessionState.from_json(payload)
        except (TypeError, ValueError) as exc:
            raise SessionCorruptError(self.session_path, str(exc)) from exc

    def check_conflict(self, start_url: str, output_directory: str | Path) -> SessionState | None:
        """Return the saved session, raising if it belongs to a different crawl."""

        saved = self.get_saved_session()
        if saved is None:
            return None
        if not saved.matches(start_url, str(output_directory)):
            raise SessionConflictError(
                saved,
                start_url=start_url,
                output_directory=str(output_directory),
            )
        return saved

    def clear_session_state(self) -> None:
        """Delete the recovery file after a run completes normally."""

        try:
            self.session_path.unlink()
        except FileNotFoundError:
            return
        LOGGER.info("Cleared session state at %s", self.session_path)


__all__ = ["SessionCheckpointManager"]
