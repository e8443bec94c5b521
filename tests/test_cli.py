import json
import logging

import pytest

from docmirror import crawl as cli
from docmirror.crawler import (
    CrawlConfig,
    CrawlStatistics,
    ResumeMode,
    SessionCheckpointManager,
    save_config,
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_build_config_from_flags(tmp_path):
    args = cli.parse_args(
        [
            "--start_url",
            "https://docs.example.com/documentation/",
            "--output_dir",
            str(tmp_path),
            "--max_pages",
            "7",
            "--allowed_prefix",
            "https://docs.example.com/documentation/swiftui",
            "--force_recrawl",
            "--no_change_detection",
            "--resume_mode",
            "fresh",
        ]
    )

    config = cli.build_config(args)

    assert config.start_url == "https://docs.example.com/documentation"
    assert config.max_pages == 7
    assert config.allowed_prefixes == ["https://docs.example.com/documentation/swiftui"]
    assert config.force_recrawl
    assert not config.change_detection_enabled
    assert config.resume_mode == ResumeMode.FRESH


def test_flags_override_config_file(tmp_path):
    path = tmp_path / "crawl.yaml"
    save_config(
        CrawlConfig(
            start_url="https://docs.example.com/documentation",
            output_dir=tmp_path / "from-file",
            max_depth=3,
        ),
        path,
    )

    args = cli.parse_args(["--config", str(path), "--output_dir", str(tmp_path / "from-flag")])
    config = cli.build_config(args)

    assert config.max_depth == 3
    assert config.output_dir == tmp_path / "from-flag"
    assert config.metadata_path == tmp_path / "from-flag" / "metadata.json"


def test_missing_start_url_exits_with_config_error(tmp_path):
    assert cli.main(["--output_dir", str(tmp_path)]) == 2


def test_session_conflict_exits_with_config_error(tmp_path):
    manager = SessionCheckpointManager(tmp_path / "session.json", interval_seconds=30)
    manager.save_session_state(set(), [], "https://docs.example.com/documentation/other", str(tmp_path))

    code = cli.main(["--start_url", "https://docs.example.com/documentation", "--output_dir", str(tmp_path)])

    assert code == 2


def test_print_summary(tmp_path, capsys):
    config = CrawlConfig(start_url="https://docs.example.com/documentation", output_dir=tmp_path)
    stats = CrawlStatistics(
        total_pages=3,
        new_pages=2,
        skipped_pages=1,
        start_time="2024-01-01T00:00:00+00:00",
        end_time="2024-01-01T00:00:09+00:00",
    )

    cli.print_summary(stats, config, print_stats_json=True)

    out = capsys.readouterr().out
    assert "=== Crawl Complete ===" in out
    assert "newPages: 2" in out
    assert "duration: 9s" in out
    payload = json.loads(out.split("--- Full Stats JSON ---\n", 1)[1])
    assert payload["skippedPages"] == 1
