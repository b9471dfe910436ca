"""Common ingestion data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class Document:
    """Raw input unit handed to the chunker."""

    data: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Chunk:
    """Content-addressed slice of a document."""

    id: int
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ExtractionStats:
    """Aggregated pipeline statistics."""

    processed: int = 0
    failed: int = 0
    chunks: int = 0
    duplicate_chunks: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "failed": self.failed,
            "chunks": self.chunks,
            "duplicate_chunks": self.duplicate_chunks,
        }


__all__ = ["Document", "Chunk", "ExtractionStats"]
