"""Test fixtures for graph-glean."""

from __future__ import annotations

import asyncio
import inspect
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Sequence

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from graph_glean.core.config import get_settings  # noqa: E402
from graph_glean.ingest.types import Chunk  # noqa: E402
from graph_glean.llm.base import Message, ModelClient, ModelResult, ResponseKind  # noqa: E402
from graph_glean.models.graph import Entity, GleaningStatus, Graph, Relation  # noqa: E402
from graph_glean.utils.hashing import content_id64  # noqa: E402


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset cached settings and environment between tests."""
    for key in list(os.environ):
        if key.startswith("GLEAN_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(
        "graph_glean.core.config.DEFAULT_CONFIG_PATH", tmp_path / "missing-config.yaml"
    )
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@dataclass
class SentCall:
    prompt: str
    kind: ResponseKind
    history: tuple[Message, ...]


class FakeModelClient(ModelClient):
    """Model client driven by a handler ``(prompt, kind) -> result``.

    The handler may be sync or async and may raise to simulate failures.
    """

    def __init__(self, handler: Callable[[str, ResponseKind], Any]) -> None:
        self.handler = handler
        self.calls: list[SentCall] = []
        self.in_flight = 0
        self.peak_in_flight = 0

    async def send(
        self,
        prompt: str,
        kind: ResponseKind,
        *,
        history: Sequence[Message] = (),
    ) -> ModelResult:
        self.calls.append(SentCall(prompt, kind, tuple(history)))
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            result = self.handler(prompt, kind)
            if inspect.isawaitable(result):
                result = await result
            else:
                await asyncio.sleep(0)
            return result
        finally:
            self.in_flight -= 1

    def prompts_for(self, kind: ResponseKind) -> list[str]:
        return [call.prompt for call in self.calls if call.kind is kind]


def make_chunk(content: str, **metadata: Any) -> Chunk:
    return Chunk(id=content_id64(content), content=content, metadata=dict(metadata))


def scrooge_graph() -> Graph:
    return Graph(
        entities=[
            Entity(name="Scrooge", type="Character", description="A miser."),
            Entity(name="Marley", type="Character", description="Scrooge's dead partner."),
        ],
        relationships=[
            Relation(source="Scrooge", target="Marley", description="Business partners."),
        ],
    )


def done_after_first_graph(prompt: str, kind: ResponseKind) -> ModelResult:
    """Handler returning the Scrooge graph and reporting gleaning done."""
    if kind is ResponseKind.GLEANING_STATUS:
        return GleaningStatus(status="done")
    if prompt.startswith("MANY entities were missed"):
        return Graph()
    return scrooge_graph()


@pytest.fixture
def fake_client() -> FakeModelClient:
    return FakeModelClient(done_after_first_graph)


@pytest.fixture(scope="session")
def sample_text() -> str:
    return "Alpha beta gamma. Delta epsilon zeta. Eta theta iota. Kappa lambda mu. Nu xi omicron."
