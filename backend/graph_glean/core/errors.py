"""Error types raised by the extraction pipeline."""

from __future__ import annotations


class GraphGleanError(Exception):
    """Base class for all pipeline errors."""


class ModelInvocationError(GraphGleanError):
    """The external model call failed (transport, rate limit, auth)."""


class ResponseDecodeError(GraphGleanError):
    """The model output did not match the requested response shape."""

    def __init__(self, message: str, raw: str | None = None) -> None:
        super().__init__(message)
        self.raw = raw


class TemplateRenderError(GraphGleanError):
    """A prompt template could not be rendered."""

    def __init__(self, template: str, message: str) -> None:
        super().__init__(f"cannot render prompt {template!r}: {message}")
        self.template = template


class ExtractionCancelled(GraphGleanError):
    """The caller's cancellation signal fired during a model call."""


class WorkerFailure(GraphGleanError):
    """Failure of a single chunk extraction, tagged with the chunk id."""

    def __init__(self, chunk_id: int, cause: GraphGleanError) -> None:
        super().__init__(f"chunk {chunk_id:016x} failed: {cause}")
        self.chunk_id = chunk_id
        self.cause = cause

    @property
    def kind(self) -> str:
        return type(self.cause).__name__


__all__ = [
    "GraphGleanError",
    "ModelInvocationError",
    "ResponseDecodeError",
    "TemplateRenderError",
    "ExtractionCancelled",
    "WorkerFailure",
]
