"""Text processing helpers."""

from __future__ import annotations

import re


WHITESPACE_RE = re.compile(r"\s+")
CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f-\x9f]")
CONTROL_CHARS_KEEP_LINES_RE = re.compile(r"[\x00-\x09\x0b\x0c\x0e-\x1f\x7f-\x9f]")


def normalize(text: str) -> str:
    """Collapse whitespace and strip."""
    return WHITESPACE_RE.sub(" ", text).strip()


def sanitize(text: str, keep_line_breaks: bool = False) -> str:
    """Strip C0 and C1 control characters."""
    pattern = CONTROL_CHARS_KEEP_LINES_RE if keep_line_breaks else CONTROL_CHARS_RE
    return pattern.sub("", text)


def normalize_type_label(label: str) -> str:
    """Uppercase an entity type label and drop its spaces."""
    return label.replace(" ", "").upper()


def name_key(name: str) -> str:
    """Key used to decide whether two entity names denote the same node."""
    return normalize(name).casefold()
