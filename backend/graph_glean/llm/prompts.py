"""Prompt templates and rendering."""

from __future__ import annotations

from string import Formatter
from typing import Any, Mapping

import orjson

from graph_glean.core.errors import TemplateRenderError

ENTITY_RELATIONSHIP_EXTRACTION = "entity_relationship_extraction"
CONTINUE_EXTRACTION = "entity_relationship_continue_extraction"
GLEANING_DONE = "entity_relationship_gleaning_done_extraction"
QUERY_ENTITY_EXTRACTION = "entity_extraction_query"

_EXTRACTION_TEMPLATE = """\
# DOMAIN PROMPT
{domain}

# GOAL
Build a knowledge graph from the input text. Identify every entity of the
allowed types and every relationship between those entities that the text
supports, keeping in mind the domain above and the questions it must answer.

# ENTITY TYPES
Only use these types: {entity_types}.
If an entity does not fit any of them, give its type as UNKNOWN.

# EXAMPLE QUERIES
The graph will be used to answer questions such as:
{example_queries}

# STEPS
1. List the entities. For each give its name exactly as written in the text,
   its type, and a short description of what the text says about it.
2. List the relationships between the listed entities. For each give the
   source entity name, the target entity name, and a description of how they
   are related according to the text.
3. Put relationships that connect a listed entity to something that is not a
   listed entity under other_relationships.

# EXAMPLE
{example}

# INPUT
{input_text}

# OUTPUT
"""

_CONTINUE_TEMPLATE = (
    "MANY entities were missed in the last extraction. "
    "Add them below using the same format:"
)

_GLEANING_DONE_TEMPLATE = (
    "Retrospectively check if all entities have been correctly identified: "
    "answer done if so, or continue if there are still entities that need to be added."
)

_QUERY_TEMPLATE = """\
Given the query below, list the entities it mentions. Put proper names under
"named" and generic concepts under "generic".

# DOMAIN
{domain}

# QUERY
{query}

# OUTPUT
"""

EXTRACTION_EXAMPLE = orjson.dumps(
    {
        "input": (
            "Marley was dead: to begin with. Scrooge signed the register of his burial, "
            "and Scrooge's name was good upon 'Change for anything he chose to put his hand to."
        ),
        "output": {
            "entities": [
                {
                    "name": "Marley",
                    "type": "Character",
                    "description": "Scrooge's late business partner, dead at the start of the story.",
                },
                {
                    "name": "Scrooge",
                    "type": "Character",
                    "description": "Signed the register of Marley's burial; his name carries weight on 'Change.",
                },
                {
                    "name": "'Change",
                    "type": "Place",
                    "description": "The exchange where Scrooge's name is trusted.",
                },
            ],
            "relationships": [
                {
                    "source": "Scrooge",
                    "target": "Marley",
                    "description": "Scrooge signed the register of Marley's burial.",
                },
                {
                    "source": "Scrooge",
                    "target": "'Change",
                    "description": "Scrooge's name is good upon 'Change.",
                },
            ],
            "other_relationships": [],
        },
    },
    option=orjson.OPT_INDENT_2,
).decode("utf-8")

DEFAULT_PROMPTS: dict[str, str] = {
    ENTITY_RELATIONSHIP_EXTRACTION: _EXTRACTION_TEMPLATE,
    CONTINUE_EXTRACTION: _CONTINUE_TEMPLATE,
    GLEANING_DONE: _GLEANING_DONE_TEMPLATE,
    QUERY_ENTITY_EXTRACTION: _QUERY_TEMPLATE,
}


def stringify(value: Any) -> str:
    """Render a prompt argument value as text."""
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return "\n".join(f"- {stringify(item)}" for item in value)
    if isinstance(value, Mapping):
        return orjson.dumps(value, default=str).decode("utf-8")
    return str(value)


class PromptRegistry:
    """Named templates rendered with ``str.format`` placeholders."""

    def __init__(self, templates: Mapping[str, str] | None = None) -> None:
        self._templates = dict(DEFAULT_PROMPTS)
        if templates:
            self._templates.update(templates)
        self._formatter = Formatter()

    def __contains__(self, name: str) -> bool:
        return name in self._templates

    def render(self, name: str, args: Mapping[str, Any] | None = None) -> str:
        """Render template ``name`` with ``args``.

        Raises:
            TemplateRenderError: unknown template, missing argument or malformed template
        """
        template = self._templates.get(name)
        if template is None:
            raise TemplateRenderError(name, "unknown template")
        values = {key: stringify(value) for key, value in (args or {}).items()}
        try:
            return self._formatter.vformat(template, (), values)
        except KeyError as exc:
            raise TemplateRenderError(name, f"missing argument {exc.args[0]!r}") from exc
        except (AttributeError, IndexError, ValueError) as exc:
            raise TemplateRenderError(name, str(exc)) from exc


__all__ = [
    "ENTITY_RELATIONSHIP_EXTRACTION",
    "CONTINUE_EXTRACTION",
    "GLEANING_DONE",
    "QUERY_ENTITY_EXTRACTION",
    "EXTRACTION_EXAMPLE",
    "DEFAULT_PROMPTS",
    "PromptRegistry",
    "stringify",
]
