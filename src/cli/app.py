"""Typer CLI entrypoint for document agent runs and marker tooling."""

from __future__ import annotations

import json
import logging
import os
import shlex
import sys
from importlib import import_module
from pathlib import Path

import typer

from docedit import __version__

_SUBCOMMAND_SPECS: list[tuple[str, str, str]] = [
    ("config", "cli.commands.config", "Inspect effective configuration"),
    ("markers", "cli.commands.markers", "Encode, inspect and resolve change markers"),
    ("retrieval", "cli.commands.retrieval", "Semantic and table retrieval over stored blocks"),
    ("logs", "cli.commands.logs", "Inspect the agent audit log"),
]
_SUBCOMMAND_NAMES = {name for name, _, _ in _SUBCOMMAND_SPECS}
_SUBCOMMANDS_REGISTERED = False

app = typer.Typer(
    help=(
        "Document editing agent\n\n"
        "Runs the editing agent against a markdown document and debugs markers, "
        "retrieval and the audit log.\n"
    ),
    context_settings={"help_option_names": ["-h", "--help"]},
    invoke_without_command=True,
    add_completion=True,
)


@app.callback()
def root(
    ctx: typer.Context,
    version_flag: bool = typer.Option(
        False,
        "-v",
        "--version",
        help="Print the version and exit",
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    if version_flag:
        typer.echo(__version__)
        raise typer.Exit()
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


@app.command(help="Run the editing agent on a markdown document")
def run(
    document: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    message: str = typer.Option(..., "--message", "-m", help="User request"),
    document_id: str | None = typer.Option(
        None, "--document-id", help="Document id (default: file stem)"
    ),
    blocks_file: Path | None = typer.Option(
        None, "--blocks", help="JSON block file used for retrieval"
    ),
    user_id: str = typer.Option("cli", "--user", help="User id"),
    chat_id: str | None = typer.Option(None, "--chat", help="Chat session id"),
    mode: str = typer.Option("agent", "--mode", help="agent|ask"),
    start_line: int | None = typer.Option(None, "--start-line", help="Focus range start"),
    end_line: int | None = typer.Option(None, "--end-line", help="Focus range end"),
    max_iterations: int | None = typer.Option(None, "--max-iterations", min=1),
    deadline: float | None = typer.Option(None, "--deadline", help="Overall deadline (seconds)"),
    encode_output: Path | None = typer.Option(
        None, "--encode", help="Write the document with proposals encoded as markers"
    ),
    log: bool = typer.Option(True, "--log/--no-log", help="Write the SQLite audit log"),
    json_out: bool = typer.Option(False, "--json", help="Emit the response as JSON"),
) -> None:
    from changes.markers import encode_changes
    from core.config import get_settings
    from core.errors import AccessDenied, SessionBusy
    from persistence.agent_log import SqliteAgentLogStore
    from pipelines.graphs.nodes import reasoning
    from retrieval import embeddings
    from retrieval.search import RetrievalEngine
    from retrieval.stores import InMemoryBlockStore, InMemoryDocumentSource, StaticAccessChecker
    from schemas.requests import AgentRequest, AgentRunOptions
    from services.agent_runner import AgentOrchestrator

    settings = get_settings()
    doc_id = document_id or document.stem
    text = document.read_text(encoding="utf-8")
    blocks = (
        InMemoryBlockStore.from_json_file(blocks_file) if blocks_file else InMemoryBlockStore()
    )
    access = StaticAccessChecker()
    engine = RetrievalEngine.from_settings(
        settings,
        embeddings=embeddings.build_embedding_provider(settings),
        blocks=blocks,
        access=access,
    )
    orchestrator = AgentOrchestrator.from_settings(
        settings,
        retrieval=engine,
        documents=InMemoryDocumentSource(
            {doc_id: text}, access=access, names={doc_id: document.stem}
        ),
        reasoner=reasoning.build_reasoner(settings),
        log_sink=SqliteAgentLogStore(settings.agent_log_db) if log else None,
    )
    request = AgentRequest(
        document_id=doc_id,
        user_message=message,
        start_line=start_line,
        end_line=end_line,
        chat_id=chat_id,
        mode=mode,
    )
    try:
        response = orchestrator.run(
            request,
            user_id,
            deadline_seconds=deadline,
            options=AgentRunOptions(max_iterations=max_iterations),
            on_step=None if json_out else _echo_step,
        )
    except (AccessDenied, SessionBusy) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    if json_out:
        typer.echo(
            json.dumps(response.model_dump(by_alias=True), ensure_ascii=False, indent=2)
        )
    else:
        typer.echo(response.final_message)

    if encode_output is not None:
        encode_output.parent.mkdir(parents=True, exist_ok=True)
        encode_output.write_text(encode_changes(text, response.document_changes), encoding="utf-8")
        typer.echo(f"Wrote: {encode_output}", err=json_out)

    if not response.is_complete:
        raise typer.Exit(code=2)


def _echo_step(step) -> None:
    tools = ", ".join(call.tool_name for call in step.tool_calls)
    typer.echo(f"[step {step.step_number}] {step.description} ({tools})")


def _parse_invoked_subcommand() -> str | None:
    completion_args = os.getenv("_TYPER_COMPLETE_ARGS")
    tokens: list[str]
    if completion_args:
        try:
            tokens = shlex.split(completion_args)
        except ValueError:
            tokens = completion_args.split()
        if tokens:
            tokens = tokens[1:]
    else:
        tokens = sys.argv[1:]

    for token in tokens:
        if token in _SUBCOMMAND_NAMES:
            return token
        if token.startswith("-"):
            continue
        break
    return None


def _register_subcommands(*, eager: bool = False) -> None:
    global _SUBCOMMANDS_REGISTERED
    if _SUBCOMMANDS_REGISTERED:
        return

    selected = _parse_invoked_subcommand()
    for name, module_path, help_text in _SUBCOMMAND_SPECS:
        if eager or selected == name:
            module = import_module(module_path)
            app.add_typer(module.app, name=name)
            continue
        app.add_typer(
            typer.Typer(help=help_text, add_completion=False, no_args_is_help=True),
            name=name,
        )

    _SUBCOMMANDS_REGISTERED = True


def main() -> None:
    _register_subcommands()
    app()


__all__ = ["app", "main"]
