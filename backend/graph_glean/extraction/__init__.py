"""Graph extraction components."""

from .merge import GraphMerger, merge_graphs
from .orchestrator import ExtractionOrchestrator
from .worker import ExtractionWorker, normalize_entity_types, tag_provenance

__all__ = [
    "ExtractionOrchestrator",
    "ExtractionWorker",
    "GraphMerger",
    "merge_graphs",
    "normalize_entity_types",
    "tag_provenance",
]
