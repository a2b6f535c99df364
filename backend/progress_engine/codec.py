"""Reversible text compression for the LMS suspend-data field."""

from __future__ import annotations

import base64
import binascii
import zlib
from typing import Optional

COMPRESSION_LEVEL = 9


def encode(text: str) -> str:
    """Compress ``text`` into Base64 so it fits a text-only LMS field."""
    compressed = zlib.compress(text.encode("utf-8"), COMPRESSION_LEVEL)
    return base64.b64encode(compressed).decode("ascii")


def decode(blob: str) -> Optional[str]:
    """Inverse of :func:`encode`; ``None`` when ``blob`` is not a valid payload."""
    if not blob:
        return None
    try:
        compressed = base64.b64decode(blob.encode("ascii"), validate=True)
        return zlib.decompress(compressed).decode("utf-8")
    except (binascii.Error, zlib.error, UnicodeError, ValueError):
        return None


def encoded_size(text: str) -> int:
    return len(encode(text))


__all__ = ["decode", "encode", "encoded_size"]
