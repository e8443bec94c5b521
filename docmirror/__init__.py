"""Incremental documentation mirror crawler."""

__version__ = "0.1.0"
