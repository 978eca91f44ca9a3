"""Backbone CLI - script revision reconciliation from the terminal.

Commands:
- init: Initialize database schema
- create-script: Register the first version of a script
- create-revision: Register a new draft of a READY script
- process-revision: Run detection output through the reconciliation pass
- confirm-review: Confirm the initial element review of a first version
- matches: Show unresolved revision matches
- resolve: Apply a decision set from a JSON file
- versions: Show the version history of a lineage
- web serve: Run the HTTP API
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from uuid import UUID

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from backbone.config import get_config
from backbone.core.logging import configure_logging
from backbone.db.connection import close_db, get_session, init_db
from backbone.detection import JsonDetectionSource
from backbone.reconciliation import (
    ReconciliationError,
    fetch_unresolved_records,
    resolve_revision_matches,
)
from backbone.reconciliation.errors import ScriptNotFound
from backbone.reconciliation.repository import fetch_script
from backbone.revisions import (
    confirm_script_review,
    create_revision,
    create_script,
    list_versions,
    process_uploaded_script,
)
from backbone.web.models import ResolveRequest

app = typer.Typer(
    name="backbone",
    help="Backbone - script revision reconciliation",
    no_args_is_help=True,
)

web_cli = typer.Typer(help="Web API")
app.add_typer(web_cli, name="web")

console = Console()


@app.callback()
def main_options(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show info-level logs"),
):
    """Backbone - script revision reconciliation."""
    configure_logging(level="INFO" if verbose else "WARNING")


def _run(coro) -> None:
    """Run an async command, disposing the engine afterwards."""

    async def _wrapped():
        try:
            await coro
        finally:
            await close_db()

    try:
        asyncio.run(_wrapped())
    except ReconciliationError as exc:
        console.print(f"[bold red]✗[/bold red] {exc.message} [dim]({exc.code})[/dim]")
        raise typer.Exit(code=1) from exc


def load_decisions_file(path: Path) -> ResolveRequest:
    """Parse a decisions file: ``{"decisions": [...], "resolvedBy": ...}`` or a bare list."""
    raw = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(raw, list):
        raw = {"decisions": raw}
    return ResolveRequest.model_validate(raw)


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")
    if drop:
        console.print("[yellow]Dropping existing tables...[/yellow]")

    _run(init_db(drop=drop))
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command(name="create-script")
def create_script_cmd(
    production_id: str = typer.Argument(..., help="Production ID"),
    title: str = typer.Argument(..., help="Script title"),
    file_name: str | None = typer.Option(None, "--file-name", help="Uploaded file name"),
):
    """Register the first version of a script (status PROCESSING)."""

    async def _create():
        async with get_session() as session:
            script = await create_script(session, production_id, title, file_name=file_name)
        console.print(f"[bold green]✓[/bold green] Script {script.id} (v1) created")

    _run(_create())


@app.command(name="create-revision")
def create_revision_cmd(
    parent_id: UUID = typer.Argument(..., help="READY script the draft replaces"),
    title: str | None = typer.Option(None, "--title", help="Title (defaults to parent's)"),
    file_name: str | None = typer.Option(None, "--file-name", help="Uploaded file name"),
):
    """Register a revised draft as the next version of the lineage."""

    async def _create():
        async with get_session() as session:
            revision = await create_revision(session, parent_id, title=title, file_name=file_name)
        console.print(
            f"[bold green]✓[/bold green] Revision {revision.id} (v{revision.version}) created"
        )

    _run(_create())


@app.command(name="process-revision")
def process_revision_cmd(
    script_id: UUID = typer.Argument(..., help="Script in PROCESSING status"),
    detections: Path = typer.Argument(..., exists=True, dir_okay=False, help="Detection JSON"),
):
    """Classify detected elements and write the reconciliation batch."""
    source = JsonDetectionSource(detections)

    async def _process():
        async with get_session() as session:
            outcome = await process_uploaded_script(session, script_id, source)
            script = await fetch_script(session, script_id)

        if isinstance(outcome, list):
            console.print(f"[green]✓[/green] {len(outcome)} elements created")
        else:
            summary = outcome.summary()
            table = Table(title="Revision classification")
            table.add_column("Outcome", style="cyan")
            table.add_column("Count", justify="right")
            for key, count in summary.items():
                table.add_row(key.upper(), str(count))
            console.print(table)

        console.print(f"[bold]Script status:[/bold] {script.status}")

    try:
        _run(_process())
    except ValidationError as exc:
        console.print(f"[bold red]✗ Invalid detection file:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc


@app.command(name="confirm-review")
def confirm_review_cmd(
    script_id: UUID = typer.Argument(..., help="Script in REVIEWING status"),
):
    """Confirm the initial element review (REVIEWING → READY)."""

    async def _confirm():
        async with get_session() as session:
            await confirm_script_review(session, script_id)
        console.print("[bold green]✓[/bold green] Script is READY")

    _run(_confirm())


@app.command()
def matches(
    script_id: UUID = typer.Argument(..., help="Script under reconciliation"),
):
    """Show unresolved revision matches."""

    async def _show():
        async with get_session() as session:
            script = await fetch_script(session, script_id)
            if script is None:
                raise ScriptNotFound(script_id)
            records = await fetch_unresolved_records(session, script_id)

        console.print(f"[bold]Script:[/bold] {script.title} v{script.version} ({script.status})")
        if not records:
            console.print("[yellow]No unresolved matches[/yellow]")
            return

        table = Table(title=f"Unresolved matches ({len(records)})")
        table.add_column("Match ID", style="dim")
        table.add_column("Status", style="cyan")
        table.add_column("Detected")
        table.add_column("Previous")
        table.add_column("Similarity", justify="right")
        table.add_column("Options", justify="right")
        table.add_column("Allowed")

        for record in records:
            old = record.old_element
            table.add_row(
                str(record.match_id),
                record.match_status,
                "" if record.is_missing else record.detected_name,
                old.name if old else "",
                f"{record.similarity:.2f}" if record.similarity is not None else "",
                str(old.option_count) if old else "",
                ", ".join(record.allowed_decisions),
            )

        console.print(table)

    _run(_show())


@app.command()
def resolve(
    script_id: UUID = typer.Argument(..., help="Script under reconciliation"),
    decisions_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Decisions JSON"),
    resolved_by: str | None = typer.Option(None, "--by", help="Reviewer recorded on each match"),
):
    """Apply a complete decision set from a JSON file."""
    try:
        request = load_decisions_file(decisions_file)
    except (ValidationError, json.JSONDecodeError) as exc:
        console.print(f"[bold red]✗ Invalid decisions file:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc

    reviewer = resolved_by or request.resolved_by or "cli"
    decisions = [payload.to_input() for payload in request.decisions]

    async def _resolve():
        async with get_session() as session:
            summary = await resolve_revision_matches(
                session, script_id, decisions, resolved_by=reviewer
            )

        console.print(f"[bold green]✓[/bold green] Reconciliation complete: {summary.resolved} resolved")
        for decision, count in sorted(summary.decisions.items()):
            console.print(f"  {decision}: {count}")

    _run(_resolve())


@app.command()
def versions(
    script_id: UUID = typer.Argument(..., help="Any script of the lineage"),
):
    """Show the version history of a script lineage."""

    async def _versions():
        async with get_session() as session:
            scripts = await list_versions(session, script_id)

        table = Table(title="Script versions")
        table.add_column("Version", justify="right")
        table.add_column("Script ID", style="dim")
        table.add_column("Title")
        table.add_column("Status", style="cyan")
        table.add_column("Created")

        for script in scripts:
            table.add_row(
                str(script.version),
                str(script.id),
                script.title,
                script.status,
                script.created_at.strftime("%Y-%m-%d %H:%M"),
            )

        console.print(table)

    _run(_versions())


@web_cli.command("serve")
def web_serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind"),
    port: int = typer.Option(8001, help="Port to bind"),
    reload: bool = typer.Option(False, help="Enable autoreload (dev only)"),
):
    """Run the FastAPI reconciliation API."""
    import uvicorn

    typer.echo(f"Starting Backbone API on http://{host}:{port}")
    uvicorn.run("backbone.web.app:app", host=host, port=port, reload=reload, workers=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
