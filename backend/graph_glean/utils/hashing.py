"""Hashing utilities."""

from __future__ import annotations

import hashlib


def content_id64(text: str) -> int:
    """Return an unsigned 64-bit content id for ``text``."""
    digest = hashlib.blake2b(text.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big")


__all__ = ["content_id64"]
