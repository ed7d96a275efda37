"""Agent audit log commands."""

from __future__ import annotations

from pathlib import Path

import typer

from core.config import get_settings
from persistence.agent_log import SqliteAgentLogStore
from .shared import emit_json, preview


app = typer.Typer(
    help="Inspect the agent audit log",
    context_settings={"help_option_names": ["-h", "--help"]},
    add_completion=False,
    no_args_is_help=True,
)


@app.callback()
def logs() -> None:
    # A group callback keeps "list" a subcommand when this app runs on its own.
    pass


@app.command("list", help="List log entries for a document and user")
def list_entries(
    document_id: str = typer.Argument(..., help="Document id"),
    user_id: str = typer.Argument(..., help="User id"),
    chat_id: str | None = typer.Option(None, "--chat", help="Filter by chat session"),
    limit: int | None = typer.Option(None, "--limit", min=1, help="Maximum entries"),
    db: Path | None = typer.Option(None, "--db", help="SQLite log path (default from settings)"),
    json_out: bool = typer.Option(False, "--json", help="Emit JSON"),
) -> None:
    path = db or Path(get_settings().agent_log_db)
    if not path.exists():
        typer.echo(f"Error: log database not found: {path}", err=True)
        raise typer.Exit(code=1)
    entries = SqliteAgentLogStore(path).list_entries(
        document_id=document_id,
        user_id=user_id,
        chat_session_id=chat_id,
        limit=limit,
    )
    if json_out:
        emit_json([entry.model_dump(mode="json", by_alias=True) for entry in entries])
        return
    if not entries:
        typer.echo("(no entries)")
        return
    for entry in entries:
        step = f" step={entry.step_number}" if entry.step_number is not None else ""
        typer.echo(
            f"{entry.timestamp.isoformat()} [{entry.log_type}] "
            f"iter={entry.iteration_number}{step} {preview(entry.content, 160)}"
        )
