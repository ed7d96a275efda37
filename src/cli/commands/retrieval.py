"""Retrieval debug commands over a JSON block file."""

from __future__ import annotations

import json
from pathlib import Path

import typer

from core.config import get_settings
from core.errors import AccessDenied, ProviderTimeout, RetrievalFailed
from retrieval.contracts import EmbeddingProvider
from retrieval.search import RetrievalEngine
from retrieval.stores import InMemoryBlockStore, StaticAccessChecker, StaticEmbeddingProvider
from schemas.internal.blocks import RetrievalResult
from .shared import emit_json, preview


app = typer.Typer(
    help="Semantic and table retrieval over stored blocks",
    context_settings={"help_option_names": ["-h", "--help"]},
    add_completion=False,
    no_args_is_help=True,
)


@app.command("search", help="Rank a document's blocks against a query")
def search(
    blocks_file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    document_id: str = typer.Argument(..., help="Document id"),
    query: str = typer.Argument(..., help="Query text"),
    top_k: int = typer.Option(5, "--top-k", help="Number of results"),
    vector: str | None = typer.Option(
        None,
        "--vector",
        help="Query embedding as a JSON list; skips the embedding provider",
    ),
    user_id: str = typer.Option("cli", "--user", help="User id for the access check"),
    json_out: bool = typer.Option(False, "--json", help="Emit JSON"),
) -> None:
    engine = _engine(blocks_file, _embedding_provider(vector))
    try:
        results = engine.search(document_id, user_id, query, top_k)
    except (AccessDenied, ProviderTimeout, RetrievalFailed) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)
    _emit_results(results, json_out=json_out)


@app.command("tables", help="List a document's table rows in line order")
def tables(
    blocks_file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    document_id: str = typer.Argument(..., help="Document id"),
    user_id: str = typer.Option("cli", "--user", help="User id for the access check"),
    json_out: bool = typer.Option(False, "--json", help="Emit JSON"),
) -> None:
    # Table search never embeds, a zero vector keeps the engine's contract satisfied.
    engine = _engine(blocks_file, StaticEmbeddingProvider([0.0]))
    try:
        results = engine.search_tables(document_id, user_id)
    except (AccessDenied, RetrievalFailed) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)
    _emit_results(results, json_out=json_out)


def _engine(blocks_file: Path, embeddings: EmbeddingProvider) -> RetrievalEngine:
    return RetrievalEngine.from_settings(
        get_settings(),
        embeddings=embeddings,
        blocks=InMemoryBlockStore.from_json_file(blocks_file),
        access=StaticAccessChecker(),
    )


def _embedding_provider(vector: str | None) -> EmbeddingProvider:
    if vector is None:
        from retrieval.embeddings import build_embedding_provider

        return build_embedding_provider(get_settings())
    try:
        values = json.loads(vector)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"--vector is not valid JSON: {exc}") from exc
    if not isinstance(values, list) or not values:
        raise typer.BadParameter("--vector must be a non-empty JSON list of numbers")
    return StaticEmbeddingProvider(values)


def _emit_results(results: list[RetrievalResult], *, json_out: bool) -> None:
    if json_out:
        emit_json([item.model_dump(by_alias=True) for item in results])
        return
    if not results:
        typer.echo("(no results)")
        return
    for rank, item in enumerate(results, start=1):
        typer.echo(
            f"{rank:>2}. {item.block_id} lines {item.start_line}-{item.end_line} "
            f"[{item.block_type}] score={item.score:.4f}"
        )
        typer.echo(f"    {preview(item.raw_text)}")
