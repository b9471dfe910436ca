"""Concurrent extraction over the chunks of many documents."""

from __future__ import annotations

import asyncio
import copy
from typing import Any, Mapping, Sequence

from graph_glean.core.config import Settings
from graph_glean.core.errors import ResponseDecodeError, WorkerFailure
from graph_glean.core.logging import get_logger, log_context
from graph_glean.core.metrics import EXTRACTION_DURATION, MODEL_CALLS
from graph_glean.extraction.merge import GraphMerger
from graph_glean.extraction.worker import ExtractionWorker, send_with_cancel
from graph_glean.ingest.types import Chunk
from graph_glean.llm.base import ModelClient, ResponseKind
from graph_glean.llm.prompts import QUERY_ENTITY_EXTRACTION, PromptRegistry
from graph_glean.models.graph import Graph, QueryEntities
from graph_glean.utils.time import monotonic_s

logger = get_logger(__name__)


class _ChunkResultCollector:
    """Per-document result sink shared by that document's workers."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self.graphs: list[Graph] = []
        self.error: WorkerFailure | None = None

    async def add_graph(self, graph: Graph) -> None:
        async with self._lock:
            self.graphs.append(graph)

    async def set_error(self, error: WorkerFailure) -> None:
        async with self._lock:
            if self.error is None:
                self.error = error


class ExtractionOrchestrator:
    """Fan chunks out to workers and merge each document's results.

    Every document is extracted independently; within a document the first
    failing chunk (by completion order) fails the whole document and no
    partial graph is returned.
    """

    def __init__(
        self,
        client: ModelClient,
        prompts: PromptRegistry | None = None,
        max_gleaning_steps: int = 1,
        max_concurrency: int | None = None,
        merger: GraphMerger | None = None,
    ) -> None:
        if max_concurrency is not None and max_concurrency <= 0:
            raise ValueError("max_concurrency must be positive")
        self.client = client
        self.prompts = prompts or PromptRegistry()
        self.worker = ExtractionWorker(client, self.prompts, max_gleaning_steps=max_gleaning_steps)
        self.merger = merger or GraphMerger()
        self.max_concurrency = max_concurrency

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: ModelClient,
        prompts: PromptRegistry | None = None,
    ) -> "ExtractionOrchestrator":
        return cls(
            client,
            prompts=prompts,
            max_gleaning_steps=settings.max_gleaning_steps,
            max_concurrency=settings.max_concurrency,
        )

    def extract_all(
        self,
        documents: Sequence[Sequence[Chunk]],
        prompt_args: Mapping[str, Any],
        entity_types: Sequence[str],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> list[asyncio.Task[Graph]]:
        """Start one extraction task per document and return the task handles.

        Must be called from a running event loop. Awaiting a handle yields the
        merged graph or raises the document's first ``WorkerFailure``.
        """
        return [
            asyncio.create_task(
                self.extract_document(
                    chunks,
                    copy.deepcopy(dict(prompt_args)),
                    list(entity_types),
                    cancel_event=cancel_event,
                ),
                name=f"extract-document-{index}",
            )
            for index, chunks in enumerate(documents)
        ]

    async def extract_document(
        self,
        chunks: Sequence[Chunk],
        prompt_args: Mapping[str, Any],
        entity_types: Sequence[str],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> Graph:
        """Extract and merge the graph of a single document."""
        started = monotonic_s()
        collector = _ChunkResultCollector()
        semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None
        entity_types = list(entity_types)

        async def run_one(chunk: Chunk) -> None:
            try:
                if semaphore is None:
                    graph = await self.worker.extract(
                        chunk, prompt_args, entity_types, cancel_event=cancel_event
                    )
                else:
                    async with semaphore:
                        graph = await self.worker.extract(
                            chunk, prompt_args, entity_types, cancel_event=cancel_event
                        )
            except WorkerFailure as exc:
                await collector.set_error(exc)
                return
            await collector.add_graph(graph)

        outcomes = await asyncio.gather(
            *(run_one(chunk) for chunk in chunks), return_exceptions=True
        )
        # Non-domain errors surface only after every chunk task has finished.
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                EXTRACTION_DURATION.labels(status="error").observe(monotonic_s() - started)
                raise outcome

        if collector.error is not None:
            EXTRACTION_DURATION.labels(status="error").observe(monotonic_s() - started)
            logger.warning(
                "Document extraction failed after %s chunks: %s",
                len(chunks),
                collector.error,
                extra=log_context(chunk_id=collector.error.chunk_id),
            )
            raise collector.error

        graph = self.merger.merge(collector.graphs)
        EXTRACTION_DURATION.labels(status="processed").observe(monotonic_s() - started)
        logger.info(
            "Extracted %s entities and %s relationships from %s chunks",
            len(graph.entities),
            len(graph.relationships),
            len(chunks),
        )
        return graph

    async def extract_entities_from_query(
        self,
        query: str,
        prompt_args: Mapping[str, Any] | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> list[str]:
        """Return the named and generic entities mentioned in ``query``."""
        args = dict(prompt_args or {})
        args["query"] = query
        args.setdefault("domain", "")
        prompt = self.prompts.render(QUERY_ENTITY_EXTRACTION, args)
        MODEL_CALLS.labels(kind=ResponseKind.QUERY_ENTITIES.value).inc()
        result = await send_with_cancel(
            self.client.send(prompt, ResponseKind.QUERY_ENTITIES), cancel_event
        )
        if not isinstance(result, QueryEntities):
            raise ResponseDecodeError(
                f"expected QueryEntities for query request, got {type(result).__name__}"
            )
        return [*result.named, *result.generic]


__all__ = ["ExtractionOrchestrator"]
