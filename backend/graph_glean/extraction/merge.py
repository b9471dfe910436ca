"""Merge per-chunk graphs into one document graph.

Dedup keys:
    entity    -> name_key(name)
    relation  -> (name_key(source), name_key(target)), direction preserved

The first occurrence of a key fixes the node's display name. Descriptions are
kept in encounter order with exact repeats dropped and joined with
``DESCRIPTION_SEPARATOR``. Relation provenance lists are concatenated in graph
order without removing repeats.
"""

from __future__ import annotations

from typing import Iterable

from graph_glean.models.graph import UNKNOWN_ENTITY_TYPE, Entity, Graph, Relation
from graph_glean.utils.text import name_key

DESCRIPTION_SEPARATOR = "\n"


def entity_key(entity: Entity) -> str:
    return name_key(entity.name)


def relation_key(relation: Relation) -> tuple[str, str]:
    return name_key(relation.source), name_key(relation.target)


def _combine_descriptions(parts: list[str]) -> str:
    seen: set[str] = set()
    kept: list[str] = []
    for part in parts:
        text = part.strip()
        if not text or text in seen:
            continue
        seen.add(text)
        kept.append(text)
    return DESCRIPTION_SEPARATOR.join(kept)


class GraphMerger:
    """Combine chunk-level graphs by entity name and (source, target) pair."""

    def merge(self, graphs: Iterable[Graph]) -> Graph:
        graphs = list(graphs)
        return Graph(
            entities=self._merge_entities(
                entity for graph in graphs for entity in graph.entities
            ),
            relationships=self._merge_relations(
                relation for graph in graphs for relation in graph.relationships
            ),
            other_relationships=self._merge_relations(
                relation for graph in graphs for relation in graph.other_relationships
            ),
        )

    def _merge_entities(self, entities: Iterable[Entity]) -> list[Entity]:
        merged: dict[str, Entity] = {}
        descriptions: dict[str, list[str]] = {}
        for entity in entities:
            key = entity_key(entity)
            current = merged.get(key)
            if current is None:
                merged[key] = Entity(name=entity.name, type=entity.type)
                descriptions[key] = [entity.description]
                continue
            if current.type == UNKNOWN_ENTITY_TYPE and entity.type != UNKNOWN_ENTITY_TYPE:
                current.type = entity.type
            descriptions[key].append(entity.description)
        for key, entity in merged.items():
            entity.description = _combine_descriptions(descriptions[key])
        return list(merged.values())

    def _merge_relations(self, relations: Iterable[Relation]) -> list[Relation]:
        merged: dict[tuple[str, str], Relation] = {}
        descriptions: dict[tuple[str, str], list[str]] = {}
        for relation in relations:
            key = relation_key(relation)
            current = merged.get(key)
            if current is None:
                merged[key] = Relation(
                    source=relation.source,
                    target=relation.target,
                    chunks=list(relation.chunks),
                )
                descriptions[key] = [relation.description]
                continue
            current.chunks.extend(relation.chunks)
            descriptions[key].append(relation.description)
        for key, relation in merged.items():
            relation.description = _combine_descriptions(descriptions[key])
        return list(merged.values())


def merge_graphs(graphs: Iterable[Graph]) -> Graph:
    """Convenience wrapper around ``GraphMerger().merge``."""
    return GraphMerger().merge(graphs)


__all__ = ["DESCRIPTION_SEPARATOR", "GraphMerger", "entity_key", "merge_graphs", "relation_key"]
