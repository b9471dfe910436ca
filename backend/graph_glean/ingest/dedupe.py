"""Deduplication helpers."""

from __future__ import annotations

from typing import Iterable

from graph_glean.ingest.types import Chunk


def dedupe_chunks(chunks: Iterable[Chunk]) -> list[Chunk]:
    """Remove chunks with an already-seen id while preserving order."""
    seen: set[int] = set()
    unique: list[Chunk] = []
    for chunk in chunks:
        if chunk.id in seen:
            continue
        seen.add(chunk.id)
        unique.append(chunk)
    return unique


__all__ = ["dedupe_chunks"]
