"""Pydantic models for graphs exchanged with the language model."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

UNKNOWN_ENTITY_TYPE = "UNKNOWN"


class Entity(BaseModel):
    name: str
    type: str
    description: str = ""


class Relation(BaseModel):
    source: str
    target: str
    description: str = ""
    chunks: list[int] = Field(default_factory=list)


class Graph(BaseModel):
    entities: list[Entity] = Field(default_factory=list)
    relationships: list[Relation] = Field(default_factory=list)
    other_relationships: list[Relation] = Field(default_factory=list)

    def extend(self, other: "Graph") -> None:
        """Append another graph's nodes and edges to this one."""
        self.entities.extend(other.entities)
        self.relationships.extend(other.relationships)
        self.other_relationships.extend(other.other_relationships)


class GleaningStatusKind(str, Enum):
    DONE = "done"
    CONTINUE = "continue"


class GleaningStatus(BaseModel):
    status: GleaningStatusKind


class QueryEntities(BaseModel):
    """Entities mentioned in a user query."""

    named: list[str] = Field(default_factory=list)
    generic: list[str] = Field(default_factory=list)


__all__ = [
    "UNKNOWN_ENTITY_TYPE",
    "Entity",
    "Relation",
    "Graph",
    "GleaningStatusKind",
    "GleaningStatus",
    "QueryEntities",
]
