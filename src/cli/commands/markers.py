"""Marker encoding, parsing and reconciliation commands."""

from __future__ import annotations

from pathlib import Path

import typer

from changes.markers import build_decision_units, encode_changes, parse_markers
from changes.reconcile import ChangeReconciler
from core.errors import ChangeNotFound, MalformedMarkers
from .shared import emit_json, load_changes, read_text, write_or_echo


app = typer.Typer(
    help="Encode, inspect and resolve change markers",
    context_settings={"help_option_names": ["-h", "--help"]},
    add_completion=False,
    no_args_is_help=True,
)


@app.command("encode", help="Embed proposed changes into a document as markers")
def encode(
    document: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    changes_file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write the result here"),
) -> None:
    text = read_text(document)
    changes = load_changes(changes_file)
    try:
        encoded = encode_changes(text, changes)
    except MalformedMarkers as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)
    write_or_echo(encoded, output)


@app.command("parse", help="List marker spans and violations in a document")
def parse(
    document: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    with_content: bool = typer.Option(True, "--content/--no-content", help="Include span content"),
) -> None:
    text = read_text(document)
    result = parse_markers(text)
    spans = []
    for span in result.spans:
        item = span.model_dump(by_alias=True)
        if with_content:
            item["text"] = span.content_text(text)
        spans.append(item)
    emit_json(
        {
            "spans": spans,
            "violations": [item.model_dump(by_alias=True) for item in result.violations],
        }
    )


@app.command("units", help="Group marker spans into accept/reject units")
def units(
    document: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    changes_file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
) -> None:
    plan = build_decision_units(read_text(document), load_changes(changes_file))
    emit_json(plan.model_dump(by_alias=True))


@app.command("resolve", help="Accept or reject a change (its whole group when grouped)")
def resolve(
    document: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    change_id: str | None = typer.Argument(None, help="Change id; omit with --all"),
    decision: str = typer.Option("accept", "--decision", "-d", help="accept|reject"),
    changes_file: Path | None = typer.Option(
        None, "--changes", help="Proposals JSON used to expand groups"
    ),
    resolve_all: bool = typer.Option(False, "--all", help="Resolve every pending change"),
    in_place: bool = typer.Option(False, "--in-place", help="Rewrite the document file"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write the result here"),
) -> None:
    normalized = decision.strip().lower()
    if normalized not in {"accept", "reject"}:
        raise typer.BadParameter("--decision must be accept or reject")
    if change_id is None and not resolve_all:
        raise typer.BadParameter("Provide a change id or --all")

    text = read_text(document)
    reconciler = ChangeReconciler(load_changes(changes_file))
    try:
        if resolve_all:
            result = reconciler.resolve_all(text, normalized)  # type: ignore[arg-type]
        else:
            result = reconciler.resolve(text, str(change_id), normalized)  # type: ignore[arg-type]
    except (ChangeNotFound, MalformedMarkers) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    write_or_echo(result.text, document if in_place else output)
