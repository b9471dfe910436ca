"""Single-chunk extraction with gleaning.

One worker call turns one chunk into one graph:

    1. Initial extraction with the chunk text and a worked example
    2. Up to ``max_gleaning_steps`` rounds of "continue" + "are you done?"
    3. Entity type normalization against the allowed set
    4. Provenance tagging of every relation with the chunk id

Any domain error along the way is raised as a ``WorkerFailure`` carrying the
chunk id. Nothing is retried here; retries belong to the model client.
"""

from __future__ import annotations

import asyncio
import copy
from typing import Any, Awaitable, Iterable, Mapping, Sequence

from graph_glean.core.errors import (
    ExtractionCancelled,
    GraphGleanError,
    ResponseDecodeError,
    WorkerFailure,
)
from graph_glean.core.logging import get_logger, log_context
from graph_glean.core.metrics import CHUNKS_EXTRACTED, GLEANING_ROUNDS, MODEL_CALLS, WORKER_FAILURES
from graph_glean.ingest.types import Chunk
from graph_glean.llm.base import Message, ModelClient, ModelResult, ResponseKind
from graph_glean.llm.prompts import (
    CONTINUE_EXTRACTION,
    ENTITY_RELATIONSHIP_EXTRACTION,
    EXTRACTION_EXAMPLE,
    GLEANING_DONE,
    PromptRegistry,
)
from graph_glean.models.graph import (
    UNKNOWN_ENTITY_TYPE,
    GleaningStatus,
    GleaningStatusKind,
    Graph,
    QueryEntities,
)
from graph_glean.utils.text import normalize_type_label

logger = get_logger(__name__)

_EXPECTED_TYPES: dict[ResponseKind, type] = {
    ResponseKind.TEXT: str,
    ResponseKind.GRAPH: Graph,
    ResponseKind.GLEANING_STATUS: GleaningStatus,
    ResponseKind.QUERY_ENTITIES: QueryEntities,
}


def normalize_entity_types(graph: Graph, entity_types: Iterable[str]) -> None:
    """Map every entity type onto the allowed set, or UNKNOWN."""
    allowed = {normalize_type_label(label) for label in entity_types}
    for entity in graph.entities:
        label = normalize_type_label(entity.type)
        entity.type = label if label in allowed else UNKNOWN_ENTITY_TYPE


def tag_provenance(graph: Graph, chunk_id: int) -> None:
    """Record ``chunk_id`` on every relation of ``graph``."""
    for relation in graph.relationships:
        relation.chunks.append(chunk_id)
    for relation in graph.other_relationships:
        relation.chunks.append(chunk_id)


async def send_with_cancel(
    call: Awaitable[ModelResult],
    cancel_event: asyncio.Event | None,
) -> ModelResult:
    """Await a model call, abandoning it as soon as ``cancel_event`` is set."""
    if cancel_event is None:
        return await call
    task = asyncio.ensure_future(call)
    if cancel_event.is_set():
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise ExtractionCancelled("extraction cancelled before model call")

    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if task.done():
        return task.result()
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    raise ExtractionCancelled("extraction cancelled during model call")


class ExtractionWorker:
    """Drives one chunk through extraction, gleaning and normalization."""

    def __init__(
        self,
        client: ModelClient,
        prompts: PromptRegistry | None = None,
        max_gleaning_steps: int = 1,
    ) -> None:
        if max_gleaning_steps < 0:
            raise ValueError("max_gleaning_steps must be >= 0")
        self.client = client
        self.prompts = prompts or PromptRegistry()
        self.max_gleaning_steps = max_gleaning_steps

    async def extract(
        self,
        chunk: Chunk,
        prompt_args: Mapping[str, Any],
        entity_types: Sequence[str],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> Graph:
        """Extract the graph for one chunk.

        Raises:
            WorkerFailure: wrapping the model, decode, template or cancellation error
        """
        log_extra = log_context(chunk_id=chunk.id)
        logger.debug("Extracting chunk", extra=log_extra)
        try:
            graph = await self._extract(chunk, prompt_args, entity_types, cancel_event)
        except GraphGleanError as exc:
            WORKER_FAILURES.labels(kind=type(exc).__name__).inc()
            logger.warning("Chunk extraction failed: %s", exc, extra=log_extra)
            raise WorkerFailure(chunk.id, exc) from exc
        CHUNKS_EXTRACTED.inc()
        logger.debug(
            "Extracted %s entities and %s relationships",
            len(graph.entities),
            len(graph.relationships),
            extra=log_extra,
        )
        return graph

    async def _extract(
        self,
        chunk: Chunk,
        prompt_args: Mapping[str, Any],
        entity_types: Sequence[str],
        cancel_event: asyncio.Event | None,
    ) -> Graph:
        args = copy.deepcopy(dict(prompt_args))
        args["input_text"] = chunk.content
        args["example"] = EXTRACTION_EXAMPLE
        args.setdefault("domain", "")
        args.setdefault("example_queries", "")
        args.setdefault("entity_types", ", ".join(entity_types))

        history: list[Message] = []
        prompt = self.prompts.render(ENTITY_RELATIONSHIP_EXTRACTION, args)
        graph = await self._request(prompt, ResponseKind.GRAPH, history, cancel_event)
        await self._glean(graph, history, cancel_event)

        normalize_entity_types(graph, entity_types)
        tag_provenance(graph, chunk.id)
        return graph

    async def _glean(
        self,
        graph: Graph,
        history: list[Message],
        cancel_event: asyncio.Event | None,
    ) -> None:
        continue_prompt = self.prompts.render(CONTINUE_EXTRACTION, {})
        done_prompt = self.prompts.render(GLEANING_DONE, {})
        for _ in range(self.max_gleaning_steps):
            GLEANING_ROUNDS.inc()
            gleaned = await self._request(continue_prompt, ResponseKind.GRAPH, history, cancel_event)
            graph.extend(gleaned)
            status = await self._request(done_prompt, ResponseKind.GLEANING_STATUS, history, cancel_event)
            if status.status is GleaningStatusKind.DONE:
                return

    async def _request(
        self,
        prompt: str,
        kind: ResponseKind,
        history: list[Message],
        cancel_event: asyncio.Event | None,
    ) -> Any:
        MODEL_CALLS.labels(kind=kind.value).inc()
        call = self.client.send(prompt, kind, history=tuple(history))
        result = await send_with_cancel(call, cancel_event)
        expected = _EXPECTED_TYPES[kind]
        if not isinstance(result, expected):
            raise ResponseDecodeError(
                f"expected {expected.__name__} for {kind.value} request, got {type(result).__name__}"
            )
        history.append({"role": "user", "content": prompt})
        history.append({"role": "assistant", "content": _as_text(result)})
        return result


def _as_text(result: ModelResult) -> str:
    if isinstance(result, str):
        return result
    return result.model_dump_json()


__all__ = [
    "ExtractionWorker",
    "normalize_entity_types",
    "send_with_cancel",
    "tag_provenance",
]
