import pytest

from docmirror.crawler.url import (
    artifact_filename,
    default_prefix_for,
    extract_framework,
    extract_links_from_html,
    host_from_url,
    is_url_in_scope,
    normalize_url,
    resolve_url,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("https://Docs.Example.com/documentation/", "https://docs.example.com/documentation"),
        ("https://docs.example.com:443/a//b/", "https://docs.example.com/a/b"),
        ("http://docs.example.com:8080/a", "http://docs.example.com:8080/a"),
        ("https://docs.example.com/a#section", "https://docs.example.com/a"),
        ("https://docs.example.com/a?lang=swift", "https://docs.example.com/a"),
        ("https://docs.example.com", "https://docs.example.com/"),
        ("https://docs.example.com/a/./b/../c", "https://docs.example.com/a/c"),
    ],
)
def test_normalize_url(raw, expected):
    assert normalize_url(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "   ", "/relative/path", "ftp://host/file", "mailto:x@y.z"])
def test_normalize_url_rejects_invalid(raw):
    assert normalize_url(raw) is None


def test_keep_query_strips_tracking_and_sorts():
    url = "https://docs.example.com/a?b=2&utm_source=x&a=1"
    assert normalize_url(url, keep_query=True) == "https://docs.example.com/a?a=1&b=2"


def test_resolve_url_skips_fragments_and_pseudo_schemes():
    base = "https://docs.example.com/documentation/swiftui"
    assert resolve_url(base, "#top") is None
    assert resolve_url(base, "javascript:void(0)") is None
    assert resolve_url(base, "view") == "https://docs.example.com/documentation/view"
    assert resolve_url(base, "/documentation/uikit/") == "https://docs.example.com/documentation/uikit"


def test_scope_is_prefix_match():
    prefixes = [default_prefix_for("https://docs.example.com/documentation/")]
    assert is_url_in_scope("https://docs.example.com/documentation/swiftui", prefixes)
    assert not is_url_in_scope("https://docs.example.com/tutorials", prefixes)
    assert not is_url_in_scope("https://evil.example.com/documentation", prefixes)
    assert is_url_in_scope("https://anything.example.com", [])


def test_extract_links_dedupes_and_honors_base_and_nofollow():
    html = """
    <html><head><base href="https://docs.example.com/documentation/"></head>
    <body>
      <a href="swiftui">SwiftUI</a>
      <a href="swiftui#state">SwiftUI again</a>
      <a href="uikit" rel="nofollow">UIKit</a>
      <a href="mailto:docs@example.com">mail</a>
      <area href="/documentation/foundation">
    </body></html>
    """
    links = extract_links_from_html(html, base_url="https://ignored.example.com/")
    assert links == [
        "https://docs.example.com/documentation/swiftui",
        "https://docs.example.com/documentation/foundation",
    ]

    with_nofollow = extract_links_from_html(
        html, base_url="https://ignored.example.com/", include_nofollow=True
    )
    assert "https://docs.example.com/documentation/uikit" in with_nofollow


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://docs.example.com/documentation/SwiftUI/View", "swiftui"),
        ("https://docs.example.com/documentation", "root"),
        ("https://docs.example.com/tutorials/app", "root"),
    ],
)
def test_extract_framework(url, expected):
    assert extract_framework(url) == expected


def test_extract_framework_custom_marker():
    assert extract_framework("https://docs.example.com/api/core/x", marker="api") == "core"


def test_artifact_filename():
    assert artifact_filename("https://docs.example.com/documentation/SwiftUI/View") == (
        "documentation_swiftui_view"
    )
    assert artifact_filename("https://docs.example.com/") == "index"
    assert artifact_filename("https://docs.example.com/a?b=1") == "a_b_1"


def test_artifact_filename_truncates_long_paths_without_collisions():
    base = "https://docs.example.com/" + "segment/" * 60
    first = artifact_filename(base + "one")
    second = artifact_filename(base + "two")
    assert len(first) <= 180
    assert first != second


def test_host_from_url():
    assert host_from_url("https://www.Example.com:8443/x") == "example.com"
