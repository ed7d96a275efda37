"""Shared helpers for CLI subcommands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer

from schemas.internal.changes import DocumentEntityChange


def emit_json(data: Any) -> None:
    typer.echo(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def read_text(path: Path) -> str:
    if not path.exists():
        raise typer.BadParameter(f"File not found: {path}")
    return path.read_text(encoding="utf-8")


def load_changes(path: Path | None) -> list[DocumentEntityChange]:
    """Load proposals from a JSON list, or an object with ``changes``/``steps``."""
    if path is None:
        return []
    payload = json.loads(read_text(path))
    if isinstance(payload, dict):
        if "steps" in payload:
            items: list[Any] = []
            for step in payload.get("steps") or []:
                items.extend(step.get("documentChanges") or step.get("document_changes") or [])
            payload = items
        else:
            payload = payload.get("changes") or payload.get("documentChanges") or []
    if not isinstance(payload, list):
        raise typer.BadParameter(f"Expected a list of changes in {path}")
    return [DocumentEntityChange.model_validate(item) for item in payload]


def write_or_echo(text: str, output: Path | None) -> None:
    if output is None:
        typer.echo(text, nl=False)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    typer.echo(f"Wrote: {output}")


def preview(text: str, limit: int = 220) -> str:
    collapsed = " ".join(text.split())
    if len(collapsed) <= limit:
        return collapsed
    return collapsed[: limit - 3] + "..."
