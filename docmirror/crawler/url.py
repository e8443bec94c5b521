"""URL normalization, prefix scope, link extraction, and naming helpers."""

from __future__ import annotations

import hashlib
import posixpath
import re
from typing import Iterable, Sequence
from urllib.parse import (
    parse_qsl,
    quote,
    urlencode,
    urljoin,
    urlsplit,
    urlunsplit,
)

from bs4 import BeautifulSoup

from .constants import DEFAULT_FRAMEWORK_MARKER, MAX_FILENAME_CHARS, ROOT_FRAMEWORK


DEFAULT_ALLOWED_SCHEMES = ("http", "https")
SKIP_HREF_PREFIXES = ("javascript:", "mailto:", "tel:", "data:")
TRACKING_QUERY_PARAM_PREFIXES = ("utm_",)
TRACKING_QUERY_PARAMS = {
    "fbclid",
    "gclid",
    "mc_cid",
    "mc_eid",
    "mkt_tok",
    "spm",
    "igshid",
    "ref_src",
}

_UNSAFE_FILENAME_RE = re.compile(r"[^a-z0-9._-]+")
_REPEATED_UNDERSCORE_RE = re.compile(r"_+")


def host_from_url(url: str) -> str:
    """Extract normalized host from URL."""

    parsed = urlsplit(url)
    host = (parsed.hostname or "").strip().lower()
    if host.startswith("www."):
        host = host[4:]
    return host.strip(".")


def is_http_url(url: str, allowed_schemes: Sequence[str] = DEFAULT_ALLOWED_SCHEMES) -> bool:
    """Return True if URL is absolute and has an allowed HTTP-like scheme."""

    parsed = urlsplit(url)
    if not parsed.scheme or not parsed.netloc:
        return False
    return parsed.scheme.lower() in {scheme.lower() for scheme in allowed_schemes}


def _has_default_port(scheme: str, port: int | None) -> bool:
    if port is None:
        return False
    return (scheme == "http" and port == 80) or (scheme == "https" and port == 443)


def _normalize_netloc(parsed_url) -> str:  # urllib.parse.SplitResult
    host = (parsed_url.hostname or "").lower()
    if not host:
        return parsed_url.netloc.lower()

    userinfo = ""
    if parsed_url.username:
        userinfo = quote(parsed_url.username, safe="")
        if parsed_url.password:
            userinfo += ":" + quote(parsed_url.password, safe="")
        userinfo += "@"

    port: int | None
    try:
        port = parsed_url.port
    except ValueError:
        port = None

    if port is not None and not _has_default_port(parsed_url.scheme.lower(), port):
        return f"{userinfo}{host}:{port}"
    return f"{userinfo}{host}"


def _normalize_path(path: str) -> str:
    if not path:
        return "/"

    collapsed = re.sub(r"/{2,}", "/", path)
    normalized = posixpath.normpath(collapsed)

    if collapsed.startswith("/") and not normalized.startswith("/"):
        normalized = "/" + normalized

    if normalized in {"", "."}:
        normalized = "/"

    if normalized != "/":
        normalized = normalized.rstrip("/")

    return normalized or "/"


def _is_tracking_query_key(key: str) -> bool:
    normalized = key.strip().lower()
    if not normalized:
        return False

    if normalized in TRACKING_QUERY_PARAMS:
        return True

    return any(normalized.startswith(prefix) for prefix in TRACKING_QUERY_PARAM_PREFIXES)


def _normalize_query(query: str) -> str:
    if not query:
        return ""

    pairs = [
        (key, value)
        for key, value in parse_qsl(query, keep_blank_values=True)
        if not _is_tracking_query_key(key)
    ]
    if not pairs:
        return ""

    return urlencode(sorted(pairs), doseq=True)


def normalize_url(
    url: str | None,
    *,
    keep_query: bool = False,
    allowed_schemes: Sequence[str] = DEFAULT_ALLOWED_SCHEMES,
) -> str | None:
    """Canonicalize an absolute URL for dedup and metadata keys.

    Fragments are always dropped. The query string is dropped unless
    `keep_query` is set, in which case tracking parameters are removed and the
    remaining pairs are sorted. Returns `None` for invalid URLs or URLs outside
    the allowed schemes.
    """

    if not url:
        return None

    raw = url.strip()
    if not raw:
        return None

    parsed = urlsplit(raw)
    if not parsed.scheme or not parsed.netloc:
        return None

    scheme = parsed.scheme.lower()
    if scheme not in {item.lower() for item in allowed_schemes}:
        return None

    netloc = _normalize_netloc(parsed)
    if not netloc:
        return None

    path = _normalize_path(parsed.path)
    query = _normalize_query(parsed.query) if keep_query else ""

    return urlunsplit((scheme, netloc, path, query, ""))


def resolve_url(
    base_url: str,
    href: str | None,
    *,
    keep_query: bool = False,
) -> str | None:
    """Resolve possibly relative link against base URL and normalize it."""

    if href is None:
        return None

    candidate = href.strip()
    if not candidate or candidate.startswith("#"):
        return None

    lowered = candidate.lower()
    if any(lowered.startswith(prefix) for prefix in SKIP_HREF_PREFIXES):
        return None

    return normalize_url(urljoin(base_url, candidate), keep_query=keep_query)


def default_prefix_for(start_url: str) -> str | None:
    """Default allow-list prefix: the normalized start URL itself."""

    return normalize_url(start_url)


def is_url_in_scope(url: str, allowed_prefixes: Iterable[str]) -> bool:
    """Return True when URL starts with at least one allowed prefix.

    An empty prefix collection places every URL in scope.
    """

    prefixes = [prefix for prefix in allowed_prefixes if prefix]
    if not prefixes:
        return True
    return any(url.startswith(prefix) for prefix in prefixes)


def extract_links_from_html(
    html: str | bytes,
    *,
    base_url: str,
    include_nofollow: bool = False,
    keep_query: bool = False,
) -> list[str]:
    """Extract resolved links from HTML anchor/area tags.

    Returns links in document order with duplicates removed. A `<base href>`
    element, when present, overrides `base_url` for resolution.
    """

    soup = BeautifulSoup(html, "lxml")

    base_tag = soup.find("base", href=True)
    if base_tag is not None:
        base_url = urljoin(base_url, str(base_tag["href"]))

    out: list[str] = []
    seen: set[str] = set()

    for element in soup.find_all(["a", "area"]):
        href = element.get("href")
        if not href:
            continue

        rel_values = {value.lower() for value in (element.get("rel") or [])}
        if not include_nofollow and "nofollow" in rel_values:
            continue

        resolved = resolve_url(base_url, str(href), keep_query=keep_query)
        if not resolved or resolved in seen:
            continue

        seen.add(resolved)
        out.append(resolved)

    return out


def extract_framework(url: str, *, marker: str = DEFAULT_FRAMEWORK_MARKER) -> str:
    """Derive the framework tag from the path segment following `marker`.

    `https://host/documentation/swiftui/view` yields `swiftui`. URLs without the
    marker segment (or with nothing after it) fall into the `root` group.
    """

    segments = [segment for segment in urlsplit(url).path.split("/") if segment]
    if marker in segments:
        index = segments.index(marker)
        if index + 1 < len(segments):
            return segments[index + 1].lower()
    return ROOT_FRAMEWORK


def artifact_filename(url: str, *, max_chars: int = MAX_FILENAME_CHARS) -> str:
    """Build a filesystem-safe file stem from a URL's path and query.

    Over-long names are truncated and suffixed with a short digest of the URL so
    distinct pages never collide.
    """

    parsed = urlsplit(url)
    raw = parsed.path
    if parsed.query:
        raw = f"{raw}?{parsed.query}"

    cleaned = _UNSAFE_FILENAME_RE.sub("_", raw.lower())
    cleaned = _REPEATED_UNDERSCORE_RE.sub("_", cleaned).strip("_")
    if not cleaned:
        return "index"

    if len(cleaned) > max_chars:
        digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:12]
        cleaned = f"{cleaned[: max_chars - len(digest) - 1].rstrip('_')}_{digest}"

    return cleaned


__all__ = [
    "DEFAULT_ALLOWED_SCHEMES",
    "SKIP_HREF_PREFIXES",
    "TRACKING_QUERY_PARAM_PREFIXES",
    "TRACKING_QUERY_PARAMS",
    "artifact_filename",
    "default_prefix_for",
    "extract_framework",
    "extract_links_from_html",
    "host_from_url",
    "is_http_url",
    "is_url_in_scope",
    "normalize_url",
    "resolve_url",
]
