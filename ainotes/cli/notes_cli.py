"""
Command‑line interface for working with notes.

Mounted by ainotes/cli/main.py under the "notes" group:

    ainotes notes save "some text" --url https://example.com --title "Example"
    ainotes notes search "keyword"
    ainotes notes similar "free text" --limit 5
    ainotes notes ask "what did I save about X?"
    ainotes notes recent --limit 10
    ainotes notes tags
    ainotes notes by-tag python
    ainotes notes retag <id> python asyncio
    ainotes notes delete <id>
    ainotes notes clear --yes

Every command builds a NoteService for the persisted configuration, runs one
coroutine against it and shuts the backend down before exiting.
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import typer

from ainotes.ai_client import create_ai_client
from ainotes.config import AIConfig, load_config
from ainotes.errors import ConfigurationError, StorageError
from ainotes.logging_utils import log_verbose
from ainotes.service import NoteService
from ainotes.storage.selector import BackendSelector
from ainotes.types import NoteRecord

R = TypeVar("R")

notes_app = typer.Typer(help="Save, search and manage captured notes.")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def build_service() -> NoteService:
    """NoteService for the persisted configuration and the configured AI provider."""
    selector = BackendSelector(load_config())
    return NoteService(selector=selector, ai=create_ai_client(AIConfig.from_env()))


def run_with_service(action: Callable[[NoteService], Awaitable[R]]) -> R:
    """
    Run `action` against a fresh service and always release the backend.

    Storage, configuration and validation errors are reported on stderr and
    turned into exit code 1.
    """

    async def _runner() -> R:
        service = build_service()
        try:
            return await action(service)
        finally:
            await service.selector.reset()

    try:
        return asyncio.run(_runner())
    except (StorageError, ConfigurationError, ValueError, NotImplementedError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


def _public(note: NoteRecord, with_embedding: bool = False) -> Dict[str, Any]:
    data: Dict[str, Any] = dict(note)
    if not with_embedding:
        data.pop("embedding", None)
    return data


def _flag(ctx: typer.Context, name: str) -> bool:
    return bool((ctx.obj or {}).get(name))


def print_notes(ctx: typer.Context, notes: List[NoteRecord], as_json: bool) -> None:
    if as_json or _flag(ctx, "debug"):
        typer.echo(json.dumps([_public(n) for n in notes], indent=2))
        return

    if not notes:
        typer.echo("No notes found.")
        return

    for note in notes:
        preview = note["content"].replace("\n", " ")
        if len(preview) > 80:
            preview = preview[:77] + "..."
        tags = ", ".join(note["tags"])
        typer.echo(f"{note['id']}  [{tags}]  {preview}")


JSON_OPTION = typer.Option(False, "--json", help="Print full JSON records.")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@notes_app.command("save")
def save_command(
    ctx: typer.Context,
    content: str = typer.Argument(..., help="Text to capture."),
    url: str = typer.Option("", "--url", help="Page the text was captured from."),
    title: str = typer.Option("Untitled", "--title", help="Title of that page."),
) -> None:
    """Embed, tag and save a text fragment."""
    verbose = _flag(ctx, "verbose")
    log_verbose("Generating embedding and tags...", verbose)

    note = run_with_service(lambda service: service.capture(content, url=url, title=title))

    log_verbose("Note saved.", verbose)
    typer.echo(note["id"])
    if _flag(ctx, "debug"):
        typer.echo(json.dumps(_public(note), indent=2))


@notes_app.command("show")
def show_command(
    ctx: typer.Context,
    note_id: str = typer.Argument(..., help="Note id."),
    with_embedding: bool = typer.Option(False, "--embedding", help="Include the embedding."),
) -> None:
    """Print a single note as JSON."""
    note = run_with_service(lambda service: service.get(note_id))

    if note is None:
        typer.echo(f"Note not found: {note_id}", err=True)
        raise typer.Exit(code=1)

    typer.echo(json.dumps(_public(note, with_embedding), indent=2))


@notes_app.command("search")
def search_command(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Text to look for."),
    as_json: bool = JSON_OPTION,
) -> None:
    """Keyword search over note content."""
    notes = run_with_service(lambda service: service.search(query))
    print_notes(ctx, notes, as_json)


@notes_app.command("similar")
def similar_command(
    ctx: typer.Context,
    text: str = typer.Argument(..., help="Text to compare against."),
    limit: int = typer.Option(10, "--limit", min=1, help="Maximum number of results."),
    as_json: bool = JSON_OPTION,
) -> None:
    """Semantic search: notes whose embeddings are close to TEXT."""
    notes = run_with_service(lambda service: service.similar(text, limit))
    print_notes(ctx, notes, as_json)


@notes_app.command("ask")
def ask_command(
    ctx: typer.Context,
    question: str = typer.Argument(..., help="Question about your notes."),
    limit: int = typer.Option(5, "--limit", min=1, help="Notes used as context."),
    as_json: bool = JSON_OPTION,
) -> None:
    """Answer a question using the most relevant notes as context."""
    log_verbose("Searching notes for context...", _flag(ctx, "verbose"))
    result = run_with_service(lambda service: service.ask(question, limit))

    if as_json:
        typer.echo(json.dumps(result, indent=2))
        return

    typer.echo(result["answer"])
    if result["sources"]:
        typer.echo("\nSources:")
        for source in result["sources"]:
            typer.echo(f"  {source['id']}  [{', '.join(source['tags'])}]")


@notes_app.command("recent")
def recent_command(
    ctx: typer.Context,
    limit: int = typer.Option(10, "--limit", min=1, help="Number of notes."),
    as_json: bool = JSON_OPTION,
) -> None:
    """List the most recently saved notes."""
    notes = run_with_service(lambda service: service.recent(limit))
    print_notes(ctx, notes, as_json)


@notes_app.command("tags")
def tags_command(ctx: typer.Context) -> None:
    """List every tag in use, alphabetically."""
    tags = run_with_service(lambda service: service.tags())

    if not tags:
        typer.echo("No tags yet.")
        return

    for tag in tags:
        typer.echo(tag)


@notes_app.command("by-tag")
def by_tag_command(
    ctx: typer.Context,
    tag: str = typer.Argument(..., help="Exact tag."),
    as_json: bool = JSON_OPTION,
) -> None:
    """List notes carrying TAG."""
    notes = run_with_service(lambda service: service.by_tag(tag))
    print_notes(ctx, notes, as_json)


@notes_app.command("retag")
def retag_command(
    ctx: typer.Context,
    note_id: str = typer.Argument(..., help="Note id."),
    tags: Optional[List[str]] = typer.Argument(None, help="New tags (replaces the old ones)."),
) -> None:
    """Replace the tags of a note."""
    note = run_with_service(lambda service: service.update(note_id, tags=tags or []))
    typer.echo(f"{note['id']}  [{', '.join(note['tags'])}]")


@notes_app.command("delete")
def delete_command(
    ctx: typer.Context,
    note_id: str = typer.Argument(..., help="Note id."),
) -> None:
    """Permanently delete a note."""
    run_with_service(lambda service: service.delete(note_id))
    log_verbose(f"Deleted {note_id}.", _flag(ctx, "verbose"))


@notes_app.command("clear")
def clear_command(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt."),
) -> None:
    """Delete every note in the active backend. Irreversible."""
    if not yes:
        typer.confirm("Delete ALL notes? This cannot be undone.", abort=True)

    count = run_with_service(lambda service: service.delete_all())
    typer.echo(f"Deleted {count} note(s).")
