"""CLI entrypoint for incremental documentation crawls."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import Any

if __package__ in {None, ""}:
    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))

from docmirror.crawler import (
    ConfigurationError,
    CrawlConfig,
    CrawlPipeline,
    CrawlStatistics,
    MetadataCorruptError,
    ResumeMode,
    SessionConflictError,
    SessionCorruptError,
    load_config,
    summarize,
)
from docmirror.crawler.constants import LOGS_DIRNAME


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Incrementally crawl a documentation tree into a local mirror.",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to JSON/YAML crawl config.",
    )
    parser.add_argument(
        "--start_url",
        type=str,
        default=None,
        help="Root URL of the documentation tree. Overrides config if provided.",
    )
    parser.add_argument(
        "--output_dir",
        type=Path,
        default=None,
        help="Mirror directory for artifacts, metadata, session, and logs.",
    )
    parser.add_argument(
        "--allowed_prefix",
        action="append",
        default=[],
        help="Allowed URL prefix (repeatable). Defaults to the start URL.",
    )

    parser.add_argument("--max_depth", type=int, default=None)
    parser.add_argument("--max_pages", type=int, default=None)
    parser.add_argument("--concurrency", type=int, default=None)
    parser.add_argument("--request_delay_seconds", type=float, default=None)

    parser.add_argument(
        "--force_recrawl",
        action="store_true",
        help="Re-save every page and discard any saved session.",
    )
    parser.add_argument(
        "--no_change_detection",
        action="store_true",
        help="Disable content-hash change detection.",
    )
    parser.add_argument(
        "--resume_mode",
        type=str,
        choices=[mode.value for mode in ResumeMode],
        default=None,
        help="auto: resume matching sessions; resume: always resume; fresh: always start over.",
    )

    parser.add_argument(
        "--progress",
        action="store_true",
        help="Show a progress bar.",
    )
    parser.add_argument(
        "--print_stats_json",
        action="store_true",
        help="Print full stats JSON in stdout after run.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging.",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> CrawlConfig:
    if args.config is not None:
        payload: dict[str, Any] = load_config(args.config).to_dict()
        # Derived from output_dir unless the file set them explicitly.
        if args.output_dir is not None:
            payload.pop("metadata_file", None)
            payload.pop("session_file", None)
    else:
        payload = {}

    if args.start_url is not None:
        payload["start_url"] = args.start_url
    if args.output_dir is not None:
        payload["output_dir"] = str(args.output_dir)

    if not payload.get("start_url"):
        raise ConfigurationError("No start URL provided. Use --config or --start_url.")
    if not payload.get("output_dir"):
        raise ConfigurationError("No output directory provided. Use --config or --output_dir.")

    if args.allowed_prefix:
        payload["allowed_prefixes"] = list(args.allowed_prefix)
    elif args.start_url is not None and args.config is not None:
        # The config's prefixes were derived from its own start URL.
        payload.pop("allowed_prefixes", None)

    if args.max_depth is not None:
        payload["max_depth"] = args.max_depth
    if args.max_pages is not None:
        payload["max_pages"] = args.max_pages
    if args.concurrency is not None:
        payload["concurrency"] = args.concurrency
    if args.request_delay_seconds is not None:
        payload["request_delay_seconds"] = args.request_delay_seconds

    if args.force_recrawl:
        payload["force_recrawl"] = True
    if args.no_change_detection:
        payload["change_detection_enabled"] = False
    if args.resume_mode is not None:
        payload["resume_mode"] = args.resume_mode
    if args.progress:
        payload["show_progress"] = True

    return CrawlConfig.from_dict(payload)


def setup_logging(output_dir: Path | None, verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if output_dir is not None:
        log_dir = output_dir / LOGS_DIRNAME
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_dir / "crawl.log", encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # Trafilatura warns on most boilerplate-heavy pages; none of it is actionable here.
    logging.getLogger("trafilatura").setLevel(logging.ERROR)
    logging.getLogger("trafilatura.core").setLevel(logging.ERROR)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def print_summary(
    stats: CrawlStatistics,
    config: CrawlConfig,
    *,
    print_stats_json: bool,
) -> None:
    summary = summarize(stats)

    title = "Crawl Complete" if stats.finished else "Crawl Stopped (resumable)"
    print(f"\n=== {title} ===")
    print(f"output_dir: {config.output_dir}")
    print(f"metadata: {config.metadata_path}")
    if not stats.finished:
        print(f"session: {config.session_path}")

    print("\n--- Core Stats ---")
    for key in [
        "totalPages",
        "newPages",
        "updatedPages",
        "skippedPages",
        "errors",
        "duration",
    ]:
        print(f"{key}: {summary[key]}")

    if print_stats_json:
        print("\n--- Full Stats JSON ---")
        print(json.dumps(summary, indent=2, sort_keys=True))


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.output_dir, verbose=args.verbose)

    try:
        config = build_config(args)
    except (ConfigurationError, OSError) as exc:
        logging.error("Failed to build config: %s", exc)
        return 2

    logging.info(
        "Starting crawl: start_url=%s, output_dir=%s, resume_mode=%s",
        config.start_url,
        config.output_dir,
        config.resume_mode.value,
    )

    try:
        pipeline = CrawlPipeline(config)
        stats = pipeline.run()
    except KeyboardInterrupt:
        logging.error("Interrupted by user; progress saved for resume")
        return 130
    except (
        ConfigurationError,
        MetadataCorruptError,
        SessionConflictError,
        SessionCorruptError,
    ) as exc:
        logging.error("Fatal: %s", exc)
        return 2
    except Exception:
        logging.exception("Crawl failed")
        return 1

    print_summary(stats, config, print_stats_json=args.print_stats_json)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
