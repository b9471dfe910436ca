"""Document-to-graph pipeline orchestration."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from graph_glean.core.config import Settings
from graph_glean.core.errors import WorkerFailure
from graph_glean.core.logging import get_logger, log_context
from graph_glean.extraction.orchestrator import ExtractionOrchestrator
from graph_glean.ingest.chunker import TextSplitter, chunk_document
from graph_glean.ingest.dedupe import dedupe_chunks
from graph_glean.ingest.types import Chunk, Document, ExtractionStats
from graph_glean.llm.base import ModelClient
from graph_glean.llm.prompts import PromptRegistry
from graph_glean.models.graph import Graph
from graph_glean.utils.time import now_ms

logger = get_logger(__name__)


@dataclass(slots=True)
class DocumentResult:
    """Outcome for a single document."""

    index: int
    status: str
    chunk_count: int
    graph: Graph | None = None
    detail: str | None = None
    failed_chunk: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "status": self.status,
            "chunk_count": self.chunk_count,
            "graph": self.graph.model_dump() if self.graph is not None else None,
            "detail": self.detail,
            "failed_chunk": self.failed_chunk,
        }


@dataclass(slots=True)
class PipelineRun:
    """Results of one pipeline invocation, in document order."""

    started_at: int
    stats: ExtractionStats = field(default_factory=ExtractionStats)
    results: list[DocumentResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at,
            "stats": self.stats.to_dict(),
            "results": [result.to_dict() for result in self.results],
        }


class GraphGleanPipeline:
    """Coordinate chunking, deduplication, extraction and merging."""

    def __init__(
        self,
        settings: Settings,
        client: ModelClient,
        prompts: PromptRegistry | None = None,
        splitter: TextSplitter | None = None,
        orchestrator: ExtractionOrchestrator | None = None,
    ) -> None:
        self.settings = settings
        self.splitter = splitter or TextSplitter.from_settings(settings)
        self.orchestrator = orchestrator or ExtractionOrchestrator.from_settings(
            settings, client, prompts=prompts
        )

    def chunk_documents(
        self,
        documents: Sequence[Document],
        stats: ExtractionStats | None = None,
    ) -> list[list[Chunk]]:
        """Split each document and drop repeated chunks within it."""
        chunked: list[list[Chunk]] = []
        for index, document in enumerate(documents):
            chunks = chunk_document(document, self.splitter)
            unique = dedupe_chunks(chunks)
            if stats is not None:
                stats.chunks += len(unique)
                stats.duplicate_chunks += len(chunks) - len(unique)
            if not unique:
                logger.warning("Document produced no chunks", extra=log_context(document=index))
            chunked.append(unique)
        return chunked

    async def run(
        self,
        documents: Sequence[Document],
        prompt_args: Mapping[str, Any],
        entity_types: Sequence[str] | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> PipelineRun:
        """Extract one merged graph per document.

        A failed document is reported with status ``error`` and no graph;
        it does not affect the other documents.
        """
        run = PipelineRun(started_at=now_ms())
        types = list(entity_types) if entity_types is not None else list(self.settings.entity_types)
        chunked = self.chunk_documents(documents, stats=run.stats)
        logger.info("Extracting %s documents (%s chunks)", len(chunked), run.stats.chunks)

        handles = self.orchestrator.extract_all(chunked, prompt_args, types, cancel_event=cancel_event)
        outcomes = await asyncio.gather(*handles, return_exceptions=True)

        for index, (chunks, outcome) in enumerate(zip(chunked, outcomes)):
            if isinstance(outcome, WorkerFailure):
                logger.error(
                    "Document extraction failed: %s",
                    outcome,
                    extra=log_context(document=index, chunk_id=outcome.chunk_id),
                )
                run.stats.failed += 1
                run.results.append(
                    DocumentResult(
                        index=index,
                        status="error",
                        chunk_count=len(chunks),
                        detail=str(outcome),
                        failed_chunk=outcome.chunk_id,
                    )
                )
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                run.stats.processed += 1
                run.results.append(
                    DocumentResult(index=index, status="processed", chunk_count=len(chunks), graph=outcome)
                )
        return run


__all__ = ["DocumentResult", "GraphGleanPipeline", "PipelineRun"]
