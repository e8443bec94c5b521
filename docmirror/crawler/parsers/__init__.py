"""Content transformer exports."""

from .html_parser import HTMLTransformer, HTMLTransformerConfig

__all__ = [
    "HTMLTransformer",
    "HTMLTransformerConfig",
]
