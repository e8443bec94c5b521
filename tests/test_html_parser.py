from docmirror.crawler import HTMLTransformer, HTMLTransformerConfig


PAGE_URL = "https://docs.example.com/documentation/swiftui"

HTML = b"""
<html>
  <head><title>SwiftUI | Docs</title><style>body { color: red; }</style></head>
  <body>
    <h1>SwiftUI</h1>
    <p>Declare the user interface and behavior for your app on every platform.</p>
    <script>var tracking = true;</script>
    <a href="swiftui/view">View</a>
    <a href="/documentation/uikit#overview">UIKit</a>
    <a href="https://docs.example.com/documentation/swiftui/view">View again</a>
  </body>
</html>
"""


def soup_only() -> HTMLTransformer:
    return HTMLTransformer(HTMLTransformerConfig(use_trafilatura=False))


def test_soup_fallback_extracts_visible_text_title_and_links():
    result = soup_only().transform(HTML, PAGE_URL)

    assert result is not None
    assert result.title == "SwiftUI | Docs"
    assert "Declare the user interface" in result.text
    assert "tracking" not in result.text
    assert "color: red" not in result.text
    assert result.links == [
        "https://docs.example.com/documentation/swiftui/view",
        "https://docs.example.com/documentation/uikit",
    ]
    assert result.metadata["extractor"] == "soup"
    assert result.metadata["links_found"] == 2


def test_title_falls_back_to_heading():
    result = soup_only().transform(b"<html><body><h1>Heading</h1><p>text</p></body></html>", PAGE_URL)
    assert result.title == "Heading"


def test_empty_pages_yield_none():
    transformer = soup_only()
    assert transformer.transform(b"", PAGE_URL) is None
    assert transformer.transform(b"<html><body><script>x()</script></body></html>", PAGE_URL) is None


def test_min_text_chars_rejects_short_pages():
    transformer = HTMLTransformer(HTMLTransformerConfig(use_trafilatura=False, min_text_chars=10_000))
    assert transformer.transform(HTML, PAGE_URL) is None


def test_default_transformer_returns_text():
    result = HTMLTransformer().transform(HTML, PAGE_URL)

    assert result is not None
    assert result.text
    assert result.metadata["extractor"] in {"trafilatura", "soup"}


def test_whitespace_is_normalized():
    html = b"<html><body><p>one    two</p>\n\n\n\n<p>three</p></body></html>"
    result = soup_only().transform(html, PAGE_URL)
    assert "one two" in result.text
    assert "\n\n\n" not in result.text
