"""Content fingerprinting used for change detection and artifact payloads."""

from __future__ import annotations

import hashlib

HASH_HEX_LENGTH = 64


def content_hash(data: bytes | bytearray | str) -> str:
    """Return the SHA-256 hex digest of `data` (text is UTF-8 encoded first)."""

    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(bytes(data)).hexdigest()


__all__ = ["HASH_HEX_LENGTH", "content_hash"]
