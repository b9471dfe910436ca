"""Model client interface and a JSON-decoding adapter base.

The model itself is an external collaborator. Callers tag every request
with a ``ResponseKind``; the kind alone decides which decode path runs,
so a client never has to inspect the caller's types.

Example:
    >>> class MyClient(JsonModelClient):
    ...     async def complete(self, prompt, *, schema=None, history=()):
    ...         return await my_sdk.generate(prompt, response_schema=schema)
    >>> graph = await MyClient().send(prompt, ResponseKind.GRAPH)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Sequence, TypedDict, Union

from pydantic import BaseModel, ValidationError

from graph_glean.core.errors import GraphGleanError, ModelInvocationError, ResponseDecodeError
from graph_glean.models.graph import GleaningStatus, Graph, QueryEntities


class ResponseKind(str, Enum):
    TEXT = "text"
    GRAPH = "graph"
    GLEANING_STATUS = "gleaning_status"
    QUERY_ENTITIES = "query_entities"


class Message(TypedDict):
    role: str
    content: str


ModelResult = Union[str, Graph, GleaningStatus, QueryEntities]

RESPONSE_MODELS: dict[ResponseKind, type[BaseModel]] = {
    ResponseKind.GRAPH: Graph,
    ResponseKind.GLEANING_STATUS: GleaningStatus,
    ResponseKind.QUERY_ENTITIES: QueryEntities,
}


class ModelClient(ABC):
    """Abstract interface for the language model collaborator."""

    @abstractmethod
    async def send(
        self,
        prompt: str,
        kind: ResponseKind,
        *,
        history: Sequence[Message] = (),
    ) -> ModelResult:
        """Send a rendered prompt and return a result of the requested kind.

        Raises:
            ModelInvocationError: the call itself failed
            ResponseDecodeError: the output did not match ``kind``
        """
        ...


def decode_response(kind: ResponseKind, raw: str) -> ModelResult:
    """Decode raw model output along the fixed path selected by ``kind``."""
    if kind is ResponseKind.TEXT:
        return raw
    model = RESPONSE_MODELS[kind]
    try:
        return model.model_validate_json(raw)
    except ValidationError as exc:
        raise ResponseDecodeError(
            f"model output is not a valid {model.__name__}: {exc.error_count()} errors",
            raw=raw,
        ) from exc


def response_schema(kind: ResponseKind) -> dict[str, Any] | None:
    """JSON schema the model must follow for ``kind``, or None for plain text."""
    model = RESPONSE_MODELS.get(kind)
    return model.model_json_schema() if model is not None else None


class JsonModelClient(ModelClient):
    """Base for concrete clients that return raw text or JSON.

    Subclasses implement :meth:`complete`; this class handles schema
    selection, decoding and error translation.
    """

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        *,
        schema: dict[str, Any] | None = None,
        history: Sequence[Message] = (),
    ) -> str:
        """Return the model's raw output for ``prompt``."""
        ...

    async def send(
        self,
        prompt: str,
        kind: ResponseKind,
        *,
        history: Sequence[Message] = (),
    ) -> ModelResult:
        try:
            raw = await self.complete(prompt, schema=response_schema(kind), history=history)
        except GraphGleanError:
            raise
        except Exception as exc:
            raise ModelInvocationError(f"model call failed: {exc}") from exc
        return decode_response(kind, raw)


__all__ = [
    "ResponseKind",
    "Message",
    "ModelResult",
    "RESPONSE_MODELS",
    "ModelClient",
    "JsonModelClient",
    "decode_response",
    "response_schema",
]
