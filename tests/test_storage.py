import json

import pytest

from docmirror.crawler import ConfigurationError, CrawlStage, ErrorRecord, Storage, TransformResult
from docmirror.crawler.storage import atomic_write_json


URL = "https://docs.example.com/documentation/swiftui/view"


def test_artifact_layout_and_payload(tmp_path):
    storage = Storage(tmp_path)
    result = TransformResult(text="View protocol", links=[], title="View", metadata={"extractor": "soup"})

    path = storage.save_artifact(
        url=URL,
        framework="swiftui",
        depth=2,
        content_hash="c" * 64,
        result=result,
    )

    assert path == tmp_path / "swiftui" / "documentation_swiftui_view.json"
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["url"] == URL
    assert payload["content"] == "View protocol"
    assert payload["title"] == "View"
    assert payload["contentHash"] == "c" * 64
    assert payload["depth"] == 2
    assert payload["metadata"] == {"extractor": "soup"}
    assert "crawledAt" in payload


def test_atomic_write_leaves_no_temp_files(tmp_path):
    target = tmp_path / "nested" / "data.json"
    atomic_write_json(target, {"a": 1})
    atomic_write_json(target, {"a": 2})

    assert json.loads(target.read_text(encoding="utf-8")) == {"a": 2}
    assert [p.name for p in target.parent.iterdir()] == ["data.json"]


def test_atomic_write_failure_keeps_previous_content(tmp_path):
    target = tmp_path / "data.json"
    atomic_write_json(target, {"a": 1})

    with pytest.raises(TypeError):
        atomic_write_json(target, {"a": object()})

    assert json.loads(target.read_text(encoding="utf-8")) == {"a": 1}


def test_errors_are_appended_as_jsonl(tmp_path):
    storage = Storage(tmp_path)
    storage.save_error(ErrorRecord(stage=CrawlStage.FETCH, url=URL, message="HTTP status 500", status_code=500))
    storage.save_error(
        ErrorRecord.from_exception(stage=CrawlStage.STORE, url=URL, exc=OSError("disk full"), depth=2)
    )

    lines = storage.errors_path.read_text(encoding="utf-8").splitlines()
    records = [json.loads(line) for line in lines]
    assert [record["stage"] for record in records] == ["fetch", "store"]
    assert records[1]["error_type"] == "OSError"
    assert records[1]["depth"] == 2


def test_ensure_writable_rejects_file_path(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("x", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        Storage(blocker).ensure_writable()


def test_ensure_writable_creates_directory(tmp_path):
    storage = Storage(tmp_path / "a" / "b")
    storage.ensure_writable()
    assert (tmp_path / "a" / "b").is_dir()
    assert list((tmp_path / "a" / "b").iterdir()) == []
