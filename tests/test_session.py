import json
import os

import pytest

from docmirror.crawler import (
    QueuedURL,
    SessionCheckpointManager,
    SessionConflictError,
    SessionCorruptError,
)


START = "https://docs.example.com/documentation"


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def make_manager(tmp_path, clock=None, interval=30.0) -> SessionCheckpointManager:
    return SessionCheckpointManager(
        tmp_path / "session.json",
        interval_seconds=interval,
        clock=clock or FakeClock(),
    )


def test_lifecycle_save_read_clear(tmp_path):
    manager = make_manager(tmp_path)
    manager.start_session("2024-01-01T00:00:00+00:00")
    assert not manager.has_active_session()

    assert manager.save_session_state(
        {START, f"{START}/a"},
        [QueuedURL(f"{START}/b", 1)],
        START,
        str(tmp_path),
    )

    assert manager.has_active_session()
    saved = manager.get_saved_session()
    assert saved.visited == {START, f"{START}/a"}
    assert saved.queue == [QueuedURL(f"{START}/b", 1)]
    assert saved.start_url == START
    assert saved.output_directory == str(tmp_path)
    assert saved.session_start_time == "2024-01-01T00:00:00+00:00"

    raw = json.loads((tmp_path / "session.json").read_text(encoding="utf-8"))
    assert raw["startURL"] == START
    assert raw["queue"] == [{"url": f"{START}/b", "depth": 1}]

    manager.clear_session_state()
    assert not manager.has_active_session()
    assert manager.get_saved_session() is None
    manager.clear_session_state()


def test_auto_save_respects_interval(tmp_path):
    clock = FakeClock()
    manager = make_manager(tmp_path, clock=clock, interval=30.0)
    path = tmp_path / "session.json"

    assert manager.auto_save_if_needed(set(), [], START, str(tmp_path))
    first_mtime = os.stat(path).st_mtime_ns
    os.utime(path, ns=(first_mtime - 10_000_000_000, first_mtime - 10_000_000_000))
    backdated = os.stat(path).st_mtime_ns

    clock.now += 10
    assert not manager.auto_save_if_needed({START}, [], START, str(tmp_path))
    assert os.stat(path).st_mtime_ns == backdated

    clock.now += 25
    assert manager.auto_save_if_needed({START}, [], START, str(tmp_path))
    assert os.stat(path).st_mtime_ns != backdated
    assert manager.get_saved_session().visited == {START}
    assert manager.save_count == 2


def test_failed_write_is_reported_and_retried(tmp_path):
    clock = FakeClock()
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    manager = SessionCheckpointManager(blocker / "session.json", interval_seconds=30, clock=clock)

    assert not manager.auto_save_if_needed(set(), [], START, str(tmp_path))
    assert manager.failure_count == 1
    # the timer is not reset by a failure, so the very next tick retries
    assert manager.due()


def test_corrupt_session_file(tmp_path):
    (tmp_path / "session.json").write_text("{ broken", encoding="utf-8")
    manager = make_manager(tmp_path)

    assert manager.has_active_session()
    with pytest.raises(SessionCorruptError):
        manager.get_saved_session()


def test_check_conflict(tmp_path):
    manager = make_manager(tmp_path)
    manager.save_session_state(set(), [], START, str(tmp_path))

    assert manager.check_conflict(START, tmp_path).start_url == START
    with pytest.raises(SessionConflictError):
        manager.check_conflict(f"{START}/other", tmp_path)
    with pytest.raises(SessionConflictError):
        manager.check_conflict(START, tmp_path / "elsewhere")
