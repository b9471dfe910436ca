"""Tests for document-level extraction orchestration."""

from __future__ import annotations

import asyncio

import pytest
from conftest import FakeModelClient, make_chunk, scrooge_graph

from graph_glean.core.config import Settings
from graph_glean.core.errors import ModelInvocationError, ResponseDecodeError, WorkerFailure
from graph_glean.extraction.orchestrator import ExtractionOrchestrator
from graph_glean.llm.base import ResponseKind
from graph_glean.models.graph import GleaningStatus, Graph, QueryEntities

ENTITY_TYPES = ["Character", "Place"]


def _handler_with_delays(delays: dict[str, float], failing: set[str] = frozenset()):
    """Scrooge graph per chunk, with per-chunk latency and optional failures."""

    async def handler(prompt: str, kind: ResponseKind):
        if kind is ResponseKind.GLEANING_STATUS:
            return GleaningStatus(status="done")
        for marker, delay in delays.items():
            if marker in prompt:
                await asyncio.sleep(delay)
                if marker in failing:
                    raise ModelInvocationError(f"failed on {marker}")
        return scrooge_graph()

    return handler


@pytest.mark.asyncio
async def test_document_graphs_are_merged(fake_client: FakeModelClient) -> None:
    chunks = [make_chunk("Stave one."), make_chunk("Stave two.")]
    orchestrator = ExtractionOrchestrator(fake_client, max_gleaning_steps=0)

    graph = await orchestrator.extract_document(chunks, {"domain": "Carol"}, ENTITY_TYPES)

    assert [entity.name for entity in graph.entities] == ["Scrooge", "Marley"]
    assert len(graph.relationships) == 1
    assert sorted(graph.relationships[0].chunks) == sorted(chunk.id for chunk in chunks)


@pytest.mark.asyncio
async def test_provenance_follows_completion_order() -> None:
    slow, fast = make_chunk("SLOW chunk."), make_chunk("FAST chunk.")
    client = FakeModelClient(_handler_with_delays({"SLOW": 0.05, "FAST": 0.0}))
    orchestrator = ExtractionOrchestrator(client, max_gleaning_steps=0)

    graph = await orchestrator.extract_document([slow, fast], {"domain": "Carol"}, ENTITY_TYPES)

    assert graph.relationships[0].chunks == [fast.id, slow.id]


@pytest.mark.asyncio
async def test_any_failed_chunk_fails_the_document() -> None:
    chunks = [make_chunk("OK one."), make_chunk("BOOM two."), make_chunk("OK three.")]
    client = FakeModelClient(_handler_with_delays({"BOOM": 0.0}, failing={"BOOM"}))
    orchestrator = ExtractionOrchestrator(client, max_gleaning_steps=0)

    with pytest.raises(WorkerFailure) as excinfo:
        await orchestrator.extract_document(chunks, {"domain": "Carol"}, ENTITY_TYPES)

    assert excinfo.value.chunk_id == chunks[1].id
    assert isinstance(excinfo.value.cause, ModelInvocationError)
    assert len(client.calls) == 3


@pytest.mark.asyncio
async def test_first_error_by_completion_order_wins() -> None:
    late, early = make_chunk("LATE fails."), make_chunk("EARLY fails.")
    client = FakeModelClient(
        _handler_with_delays({"LATE": 0.05, "EARLY": 0.0}, failing={"LATE", "EARLY"})
    )
    orchestrator = ExtractionOrchestrator(client, max_gleaning_steps=0)

    with pytest.raises(WorkerFailure) as excinfo:
        await orchestrator.extract_document([late, early], {"domain": "Carol"}, ENTITY_TYPES)

    assert excinfo.value.chunk_id == early.id


@pytest.mark.asyncio
async def test_documents_are_extracted_independently() -> None:
    good = [make_chunk("OK one."), make_chunk("OK two.")]
    bad = [make_chunk("BOOM one.")]
    client = FakeModelClient(_handler_with_delays({"BOOM": 0.0}, failing={"BOOM"}))
    orchestrator = ExtractionOrchestrator(client, max_gleaning_steps=0)

    handles = orchestrator.extract_all([good, bad], {"domain": "Carol"}, ENTITY_TYPES)
    outcomes = await asyncio.gather(*handles, return_exceptions=True)

    assert len(handles) == 2
    assert isinstance(outcomes[0], Graph)
    assert isinstance(outcomes[1], WorkerFailure)


@pytest.mark.asyncio
async def test_prompt_args_are_snapshotted_at_dispatch(fake_client: FakeModelClient) -> None:
    args = {"domain": "original domain"}
    orchestrator = ExtractionOrchestrator(fake_client, max_gleaning_steps=0)

    handles = orchestrator.extract_all([[make_chunk("text")]], args, ENTITY_TYPES)
    args["domain"] = "changed after dispatch"
    await asyncio.gather(*handles)

    assert "original domain" in fake_client.calls[0].prompt
    assert "changed after dispatch" not in fake_client.calls[0].prompt


@pytest.mark.asyncio
async def test_unbounded_dispatch_runs_all_chunks_at_once() -> None:
    chunks = [make_chunk(f"PART {i}.") for i in range(5)]
    client = FakeModelClient(_handler_with_delays({"PART": 0.02}))
    orchestrator = ExtractionOrchestrator(client, max_gleaning_steps=0)

    await orchestrator.extract_document(chunks, {"domain": "Carol"}, ENTITY_TYPES)

    assert client.peak_in_flight == 5


@pytest.mark.asyncio
async def test_concurrency_bound_is_respected() -> None:
    chunks = [make_chunk(f"PART {i}.") for i in range(5)]
    client = FakeModelClient(_handler_with_delays({"PART": 0.02}))
    orchestrator = ExtractionOrchestrator(client, max_gleaning_steps=0, max_concurrency=2)

    graph = await orchestrator.extract_document(chunks, {"domain": "Carol"}, ENTITY_TYPES)

    assert client.peak_in_flight == 2
    assert len(graph.relationships[0].chunks) == 5


@pytest.mark.asyncio
async def test_empty_document_gives_empty_graph(fake_client: FakeModelClient) -> None:
    orchestrator = ExtractionOrchestrator(fake_client)
    assert await orchestrator.extract_document([], {"domain": "Carol"}, ENTITY_TYPES) == Graph()
    assert fake_client.calls == []


@pytest.mark.asyncio
async def test_cancellation_fails_the_document() -> None:
    client = FakeModelClient(_handler_with_delays({"PART": 30}))
    orchestrator = ExtractionOrchestrator(client, max_gleaning_steps=0)
    cancel = asyncio.Event()

    handles = orchestrator.extract_all(
        [[make_chunk("PART 1."), make_chunk("PART 2.")]],
        {"domain": "Carol"},
        ENTITY_TYPES,
        cancel_event=cancel,
    )
    await asyncio.sleep(0.01)
    cancel.set()

    with pytest.raises(WorkerFailure):
        await asyncio.wait_for(handles[0], timeout=2)


@pytest.mark.asyncio
async def test_entities_from_query() -> None:
    def handler(prompt: str, kind: ResponseKind):
        assert kind is ResponseKind.QUERY_ENTITIES
        assert "Who visits Scrooge?" in prompt
        return QueryEntities(named=["Scrooge"], generic=["ghost"])

    orchestrator = ExtractionOrchestrator(FakeModelClient(handler))

    assert await orchestrator.extract_entities_from_query("Who visits Scrooge?") == ["Scrooge", "ghost"]


@pytest.mark.asyncio
async def test_entities_from_query_rejects_wrong_shape() -> None:
    orchestrator = ExtractionOrchestrator(FakeModelClient(lambda prompt, kind: Graph()))

    with pytest.raises(ResponseDecodeError):
        await orchestrator.extract_entities_from_query("Who visits Scrooge?")


def test_from_settings_copies_extraction_limits(fake_client: FakeModelClient) -> None:
    settings = Settings(max_gleaning_steps=4, max_concurrency=3)
    orchestrator = ExtractionOrchestrator.from_settings(settings, fake_client)
    assert orchestrator.worker.max_gleaning_steps == 4
    assert orchestrator.max_concurrency == 3


def test_invalid_concurrency_rejected(fake_client: FakeModelClient) -> None:
    with pytest.raises(ValueError):
        ExtractionOrchestrator(fake_client, max_concurrency=0)


@pytest.mark.asyncio
async def test_unexpected_error_is_raised_after_all_chunks_finish() -> None:
    finished: list[str] = []

    async def handler(prompt: str, kind: ResponseKind):
        if "BUG" in prompt:
            raise RuntimeError("client bug")
        await asyncio.sleep(0.05)
        finished.append(prompt)
        return scrooge_graph()

    client = FakeModelClient(handler)
    orchestrator = ExtractionOrchestrator(client, max_gleaning_steps=0)

    with pytest.raises(RuntimeError, match="client bug"):
        await orchestrator.extract_document(
            [make_chunk("BUG here."), make_chunk("SLOW here.")], {"domain": "Carol"}, ENTITY_TYPES
        )

    assert len(finished) == 1
    assert client.in_flight == 0
