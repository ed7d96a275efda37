"""Configuration inspection commands."""

from __future__ import annotations

from typing import Any

import typer

from core.config import Settings, get_settings
from schemas.requests import AgentRunOptions
from .shared import emit_json


app = typer.Typer(
    help="Inspect effective configuration",
    context_settings={"help_option_names": ["-h", "--help"]},
    add_completion=False,
    no_args_is_help=True,
)

_SECRET_FIELDS = {"langsmith_api_key"}


@app.command("show", help="Show the effective settings")
def show_config(
    json_out: bool = typer.Option(True, "--json/--no-json", help="Emit JSON"),
) -> None:
    payload = _redacted(get_settings().model_dump())
    if json_out:
        emit_json(payload)
        return
    for key, value in payload.items():
        typer.echo(f"{key}={value}")


@app.command("diff", help="Show settings that differ from their defaults")
def diff_config() -> None:
    current = _redacted(get_settings().model_dump())
    defaults = _settings_defaults()
    diff: dict[str, dict[str, Any]] = {}
    for key, value in current.items():
        default = defaults.get(key)
        if value != default:
            diff[key] = {"value": value, "default": default}
    emit_json(diff)


@app.command("options", help="Show the per-run options schema")
def run_options_schema() -> None:
    emit_json(AgentRunOptions.model_json_schema())


def _settings_defaults() -> dict[str, Any]:
    return {name: field.default for name, field in Settings.model_fields.items()}


def _redacted(payload: dict[str, Any]) -> dict[str, Any]:
    return {
        key: ("***" if key in _SECRET_FIELDS and value else value)
        for key, value in payload.items()
    }
