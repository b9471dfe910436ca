"""CLI entrypoint for graph-glean."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError

from graph_glean.core.config import Settings
from graph_glean.core.logging import configure_logging
from graph_glean.ingest.chunker import TextSplitter, chunk_document
from graph_glean.ingest.dedupe import dedupe_chunks
from graph_glean.ingest.types import Document

app = typer.Typer(name="glean", help="graph-glean command-line interface")


def _load_settings(config: Optional[Path]) -> Settings:
    settings = Settings.from_yaml(config)
    configure_logging(settings.log_level, use_json=settings.log_json)
    return settings


@app.command()
def chunk(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="UTF-8 text file to split"),
    config: Optional[Path] = typer.Option(None, "--config", help="YAML config file"),
    token_size: Optional[int] = typer.Option(None, "--token-size", help="Override chunk size in tokens"),
    token_overlap: Optional[int] = typer.Option(None, "--token-overlap", help="Override overlap in tokens"),
    preview: int = typer.Option(80, "--preview", help="Characters of each chunk to show"),
) -> None:
    """Split a document and print its unique chunks."""
    settings = _load_settings(config)
    try:
        if token_size is not None:
            settings.chunk_token_size = token_size
        if token_overlap is not None:
            settings.chunk_token_overlap = token_overlap
        splitter = TextSplitter.from_settings(settings)
    except (ValidationError, ValueError) as exc:
        typer.echo(f"Invalid chunking configuration: {exc}", err=True)
        raise typer.Exit(code=1)

    text = path.read_text(encoding="utf-8", errors="ignore")
    document = Document(data=text, metadata={"path": str(path)})
    chunks = chunk_document(document, splitter)
    unique = dedupe_chunks(chunks)
    payload = {
        "path": str(path),
        "chunk_count": len(unique),
        "duplicates_dropped": len(chunks) - len(unique),
        "chunks": [
            {
                "id": f"{item.id:016x}",
                "length": len(item.content),
                "preview": item.content[:preview],
            }
            for item in unique
        ],
    }
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


@app.command("settings")
def show_settings(
    config: Optional[Path] = typer.Option(None, "--config", help="YAML config file"),
) -> None:
    """Print the effective settings."""
    settings = _load_settings(config)
    payload = settings.model_dump()
    payload["chunk_size_chars"] = settings.chunk_size
    payload["chunk_overlap_chars"] = settings.chunk_overlap
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    app()
