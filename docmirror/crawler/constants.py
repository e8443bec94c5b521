"""Default values shared by crawler config and components."""

from __future__ import annotations

DEFAULT_MAX_DEPTH = 15
DEFAULT_MAX_PAGES = 15000
DEFAULT_CONCURRENCY = 4

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_RETRIES = 2
DEFAULT_RETRY_BACKOFF_SECONDS = 1.0

DEFAULT_REQUEST_DELAY_SECONDS = 0.5
DEFAULT_CHECKPOINT_INTERVAL_SECONDS = 30.0
DEFAULT_CHECKPOINT_DELAY_SECONDS = 0.0

DEFAULT_FORCE_RECRAWL = False
DEFAULT_CHANGE_DETECTION_ENABLED = True
DEFAULT_KEEP_QUERY = False
DEFAULT_EXPAND_UNCHANGED_PAGES = False
DEFAULT_SHOW_PROGRESS = False
DEFAULT_PROGRESS_LOG_EVERY = 50

DEFAULT_FRAMEWORK_MARKER = "documentation"
ROOT_FRAMEWORK = "root"

DEFAULT_USER_AGENT = "docmirror/0.1 (+incremental documentation mirror)"
DEFAULT_HTTP_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/json;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.8",
}

METADATA_FILENAME = "metadata.json"
SESSION_FILENAME = "session.json"
ERRORS_FILENAME = "errors.jsonl"
LOGS_DIRNAME = "logs"
ARTIFACT_EXTENSION = ".json"
MAX_FILENAME_CHARS = 180

# Below this share of sampled artifacts present on disk, metadata is reported as stale.
MIN_ARTIFACT_EXISTENCE_RATIO = 0.5
ARTIFACT_SAMPLE_LIMIT = 100

JSON_INDENT = 2
SUPPORTED_CONFIG_SUFFIXES = (".json", ".yaml", ".yml")
