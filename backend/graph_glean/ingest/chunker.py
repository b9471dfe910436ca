"""Chunking utilities."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence

from graph_glean.core.config import DEFAULT_SEPARATORS, Settings
from graph_glean.ingest.types import Chunk, Document
from graph_glean.utils.hashing import content_id64
from graph_glean.utils.text import sanitize


@dataclass(slots=True)
class SplitChunk:
    """A chunk body together with the overlap carried over from its predecessor."""

    body: str
    prefix: str = ""

    @property
    def text(self) -> str:
        return self.prefix + self.body


class TextSplitter:
    """Separator-aware splitter that merges segments greedily and injects overlap.

    Each segment stays paired with the separator that follows it. Text is only
    ever cut between pairs, so a single pair longer than ``chunk_size`` is
    emitted as-is.
    """

    def __init__(
        self,
        separators: Sequence[str] = DEFAULT_SEPARATORS,
        chunk_size: int = 3200,
        chunk_overlap: int = 400,
        keep_line_breaks: bool = False,
    ) -> None:
        if not separators:
            raise ValueError("at least one separator is required")
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if not 0 <= chunk_overlap < chunk_size:
            raise ValueError("chunk_overlap must be in [0, chunk_size)")
        self.separators = tuple(separators)
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.keep_line_breaks = keep_line_breaks
        pattern = "|".join(re.escape(sep) for sep in self.separators)
        self._split_re = re.compile(f"({pattern})")

    @classmethod
    def from_settings(cls, settings: Settings) -> "TextSplitter":
        return cls(
            separators=settings.separators,
            chunk_size=settings.chunk_size,
            chunk_overlap=settings.chunk_overlap,
            keep_line_breaks=settings.keep_line_breaks,
        )

    def split(self, text: str) -> list[str]:
        """Split text into ordered chunk strings, overlap included."""
        return [chunk.text for chunk in self.segment(text)]

    def segment(self, text: str) -> list[SplitChunk]:
        """Split text keeping each chunk's overlap prefix separate from its body."""
        text = sanitize(text, keep_line_breaks=self.keep_line_breaks)
        if not text:
            return []
        if len(text) <= self.chunk_size:
            return [SplitChunk(body=text)]

        groups = self._merge_splits(self._split_re.split(text))
        chunks: list[SplitChunk] = []
        for index, group in enumerate(groups):
            prefix = ""
            if index > 0 and self.chunk_overlap > 0:
                prefix = self._overlap_prefix(groups[index - 1])
            chunks.append(SplitChunk(body="".join(group), prefix=prefix))
        return chunks

    def _merge_splits(self, splits: list[str]) -> list[list[str]]:
        # re.split with a capture group alternates segment, separator, segment, ...
        # Padding keeps every segment paired with a (possibly empty) separator.
        if len(splits) % 2:
            splits = splits + [""]
        budget = self.chunk_size - self.chunk_overlap
        groups: list[list[str]] = []
        current: list[str] = []
        current_length = 0

        for index in range(0, len(splits), 2):
            segment, separator = splits[index], splits[index + 1]
            pair_length = len(segment) + len(separator)
            # A bare separator (empty segment) never opens a chunk.
            if current and segment and current_length + pair_length > budget:
                groups.append(current)
                current = []
                current_length = 0
            current.extend((segment, separator))
            current_length += pair_length

        if current:
            groups.append(current)
        return groups

    def _overlap_prefix(self, previous: Sequence[str]) -> str:
        retained: list[str] = []
        length = 0
        for piece in reversed(previous):
            if length >= self.chunk_overlap:
                break
            retained.append(piece)
            length += len(piece)
        return "".join(reversed(retained))


def chunk_document(document: Document, splitter: TextSplitter) -> list[Chunk]:
    """Split one document into content-addressed chunks, duplicates included."""
    return [
        Chunk(id=content_id64(text), content=text, metadata=dict(document.metadata))
        for text in splitter.split(document.data)
    ]


__all__ = ["SplitChunk", "TextSplitter", "chunk_document"]
