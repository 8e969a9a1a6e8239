"""
Root entrypoint for the ainotes CLI.

Mounts the sub‑applications defined under ainotes/cli/:

    • ainotes/cli/notes_cli.py   →  `ainotes notes ...`
    • ainotes/cli/config_cli.py  →  `ainotes config ...`

Global options (--verbose, --debug) are handled by the root callback and
passed to sub-commands through the Typer context.
"""

from dotenv import load_dotenv
import typer

from ainotes.logging_utils import configure_logging

from .config_cli import config_app
from .notes_cli import notes_app

# Load environment variables
load_dotenv()

cli = typer.Typer(
    help=(
        "Capture text fragments, auto-tag and embed them, and find them again "
        "by keyword, tag, similarity or question.\n\n"
        "Storage is either a local SQLite file or a Supabase project; see "
        "`ainotes config`."
    )
)


@cli.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Show high‑level progress logs."),
    debug: bool = typer.Option(False, "--debug", help="Show full records and debug logging."),
) -> None:
    ctx.obj = {"verbose": verbose, "debug": debug}
    configure_logging(debug)


cli.add_typer(notes_app, name="notes")
cli.add_typer(config_app, name="config")

if __name__ == "__main__":
    cli()
