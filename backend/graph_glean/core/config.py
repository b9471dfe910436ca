"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "GLEAN_"
DEFAULT_CONFIG_PATH = Path("~/.config/graph-glean/config.yaml")
TOKEN_TO_CHAR_RATIO = 4

DEFAULT_SEPARATORS: tuple[str, ...] = (
    # Paragraph and page breaks
    "\n\n\n",
    "\n\n",
    "\r\n\r\n",
    # Sentence terminators
    "。",
    "．",
    ".",
    "！",
    "!",
    "？",
    "?",
)

DEFAULT_ENTITY_TYPES: tuple[str, ...] = (
    "Character",
    "Animal",
    "Place",
    "Object",
    "Activity",
    "Event",
)

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("chunking", "token_size"): "chunk_token_size",
    ("chunking", "token_overlap"): "chunk_token_overlap",
    ("chunking", "separators"): "separators",
    ("chunking", "keep_line_breaks"): "keep_line_breaks",
    ("extraction", "max_gleaning_steps"): "max_gleaning_steps",
    ("extraction", "max_concurrency"): "max_concurrency",
    ("extraction", "entity_types"): "entity_types",
    ("logging", "level"): "log_level",
    ("logging", "json"): "log_json",
}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    chunk_token_size: int = Field(default=800, gt=0)
    chunk_token_overlap: int = Field(default=100, ge=0)
    separators: list[str] = Field(default_factory=lambda: list(DEFAULT_SEPARATORS))
    keep_line_breaks: bool = False
    max_gleaning_steps: int = Field(default=1, ge=0)
    max_concurrency: int | None = Field(default=None, gt=0)
    entity_types: list[str] = Field(default_factory=lambda: list(DEFAULT_ENTITY_TYPES))
    log_level: str = "INFO"
    log_json: bool = True

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("entity_types", mode="before")
    @classmethod
    def _split_entity_types(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @field_validator("separators")
    @classmethod
    def _require_separators(cls, value: list[str]) -> list[str]:
        if not value or any(sep == "" for sep in value):
            raise ValueError("separators must be a non-empty list of non-empty strings")
        return value

    @property
    def chunk_size(self) -> int:
        """Target chunk size in characters."""
        return self.chunk_token_size * TOKEN_TO_CHAR_RATIO

    @property
    def chunk_overlap(self) -> int:
        """Overlap size in characters."""
        return self.chunk_token_overlap * TOKEN_TO_CHAR_RATIO

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Load YAML config and overlay env vars; fall back to defaults."""
        config_path = cls._resolve_config_path(path)
        data: dict[str, Any] = {}
        if config_path and config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            data.update(_flatten_yaml(raw))
        data.update(_load_env_overrides())
        return cls(**data)

    @staticmethod
    def _resolve_config_path(path: Path | None) -> Path | None:
        if path is not None:
            return path.expanduser()
        env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        resolved_default = DEFAULT_CONFIG_PATH.expanduser()
        return resolved_default if resolved_default.exists() else None


def _flatten_yaml(raw: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> dict[str, Any]:
    """Flatten nested YAML configuration to Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        next_prefix = prefix + (key,)
        if isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, prefix=next_prefix))
        else:
            mapped_key = _YAML_KEY_MAP.get(next_prefix)
            if mapped_key:
                flat[mapped_key] = value
            elif key in Settings.model_fields:
                flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map environment variables with GLEAN_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields:
            overrides[field_name] = value
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor."""
    return Settings.from_yaml()


__all__ = [
    "DEFAULT_ENTITY_TYPES",
    "DEFAULT_SEPARATORS",
    "TOKEN_TO_CHAR_RATIO",
    "Settings",
    "get_settings",
]
