"""HTML content transformer: Trafilatura extraction + link discovery."""

from __future__ import annotations

from dataclasses import dataclass
import re

from bs4 import BeautifulSoup
import trafilatura

from ..types import TransformResult
from ..url import extract_links_from_html


@dataclass(slots=True)
class HTMLTransformerConfig:
    """Config for HTML extraction."""

    transformer_name: str = "html_transformer_trafilatura"
    include_nofollow_links: bool = False
    keep_query: bool = False
    use_trafilatura: bool = True
    min_text_chars: int | None = None


class HTMLTransformer:
    """Turn HTML pages into normalized text and outbound links.

    Text comes from Trafilatura's main-content extraction, falling back to the
    visible text of the page body when Trafilatura finds nothing (short
    reference pages are often rejected as boilerplate).
    """

    def __init__(self, config: HTMLTransformerConfig | None = None) -> None:
        self.config = config or HTMLTransformerConfig()

    def transform(self, body: bytes, url: str) -> TransformResult | None:
        html_text = self._coerce_html_text(body)
        if not html_text.strip():
            return None

        soup = BeautifulSoup(html_text, "lxml")
        title = self._extract_title(soup)

        links = extract_links_from_html(
            html_text,
            base_url=url,
            include_nofollow=self.config.include_nofollow_links,
            keep_query=self.config.keep_query,
        )

        extractor = "trafilatura"
        text, trafilatura_error = self._extract_with_trafilatura(html_text)
        if not text:
            extractor = "soup"
            text = self._extract_with_soup(soup)

        text = self._normalize_whitespace(text)
        if not text:
            return None

        min_chars = self.config.min_text_chars
        if min_chars is not None and len(text) < min_chars:
            return None

        metadata = {
            "transformer": self.config.transformer_name,
            "extractor": extractor,
            "raw_chars": len(html_text),
            "clean_chars": len(text),
            "links_found": len(links),
        }
        if trafilatura_error:
            metadata["trafilatura_error"] = trafilatura_error

        return TransformResult(text=text, links=links, title=title, metadata=metadata)

    def _extract_with_trafilatura(self, html_text: str) -> tuple[str, str | None]:
        if not self.config.use_trafilatura:
            return "", None

        try:
            extracted = trafilatura.extract(
                html_text,
                output_format="txt",
                include_comments=False,
                include_tables=True,
                include_images=False,
                deduplicate=True,
            )
            return (extracted or "").strip(), None
        except Exception as exc:
            return "", f"Trafilatura extraction failed: {exc.__class__.__name__}: {exc}"

    @staticmethod
    def _extract_with_soup(soup: BeautifulSoup) -> str:
        for element in soup(["script", "style", "noscript", "template"]):
            element.decompose()
        root = soup.body or soup
        return root.get_text("\n", strip=True)

    @staticmethod
    def _normalize_whitespace(text: str) -> str:
        normalized = text.replace("\r\n", "\n").replace("\r", "\n")
        normalized = re.sub(r"[ \t]+", " ", normalized)
        normalized = re.sub(r"\n\s*\n+", "\n\n", normalized)
        return normalized.strip()

    @staticmethod
    def _coerce_html_text(html: str | bytes) -> str:
        if isinstance(html, bytes):
            return html.decode("utf-8", errors="replace")
        return html

    @staticmethod
    def _extract_title(soup: BeautifulSoup) -> str | None:
        if soup.title and soup.title.get_text(strip=True):
            return soup.title.get_text(" ", strip=True)
        heading = soup.find(["h1", "h2"])
        if heading:
            text = heading.get_text(" ", strip=True)
            if text:
                return text
        return None


__all__ = [
    "HTMLTransformer",
    "HTMLTransformerConfig",
]
