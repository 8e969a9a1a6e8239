"""
Command‑line interface for the persisted storage configuration.

    ainotes config show
    ainotes config set --backend remote --supabase-url https://x.supabase.co --supabase-key ...
    ainotes config set --backend local --db-path ~/notes.db

Values passed to `set` are merged into the currently effective config and
validated before anything is written.
"""

import json
from dataclasses import replace
from typing import Any, Dict, Optional

import typer

from ainotes.config import config_path, load_config, save_config
from ainotes.errors import ConfigurationError

config_app = typer.Typer(help="Show or change which storage backend is used.")


@config_app.command("show")
def show_command() -> None:
    """Print the effective configuration (API key masked)."""
    try:
        config = load_config()
    except ConfigurationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(json.dumps(config.describe(), indent=2))


@config_app.command("set")
def set_command(
    backend: Optional[str] = typer.Option(None, "--backend", help="local or remote."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="SQLite file for the local backend."),
    supabase_url: Optional[str] = typer.Option(None, "--supabase-url", help="Supabase project URL."),
    supabase_key: Optional[str] = typer.Option(None, "--supabase-key", help="Supabase API key."),
    table: Optional[str] = typer.Option(None, "--table", help="Supabase table name."),
) -> None:
    """Update and persist the storage configuration."""
    changes: Dict[str, Any] = {
        "backend": backend,
        "local_path": db_path,
        "supabase_url": supabase_url,
        "supabase_key": supabase_key,
        "table": table,
    }
    changes = {k: v for k, v in changes.items() if v is not None}

    if not changes:
        typer.echo("Nothing to change.")
        raise typer.Exit(code=1)

    try:
        config = replace(load_config(), **changes)
        path = save_config(config)
    except ConfigurationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Saved configuration to {path}")
    typer.echo(json.dumps(config.describe(), indent=2))


@config_app.command("path")
def path_command() -> None:
    """Print where the configuration file lives."""
    typer.echo(str(config_path()))
