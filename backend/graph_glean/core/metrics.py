"""Prometheus metrics instrumentation."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

REGISTRY = CollectorRegistry()

MODEL_CALLS = Counter(
    "glean_model_calls_total",
    "External model invocations",
    labelnames=("kind",),
    registry=REGISTRY,
)

GLEANING_ROUNDS = Counter(
    "glean_gleaning_rounds_total",
    "Gleaning rounds executed across all chunks",
    registry=REGISTRY,
)

CHUNKS_EXTRACTED = Counter(
    "glean_chunks_extracted_total",
    "Chunks that produced a graph",
    registry=REGISTRY,
)

WORKER_FAILURES = Counter(
    "glean_worker_failures_total",
    "Chunk extractions that failed",
    labelnames=("kind",),
    registry=REGISTRY,
)

EXTRACTION_DURATION = Histogram(
    "glean_document_extraction_seconds",
    "Duration of a document-level extraction",
    labelnames=("status",),
    registry=REGISTRY,
)


def metrics_payload() -> bytes:
    """Return the Prometheus exposition text for the package registry."""
    return generate_latest(REGISTRY)


__all__ = [
    "REGISTRY",
    "MODEL_CALLS",
    "GLEANING_ROUNDS",
    "CHUNKS_EXTRACTED",
    "WORKER_FAILURES",
    "EXTRACTION_DURATION",
    "metrics_payload",
]
