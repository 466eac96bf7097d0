"""
Convoscope CLI - command-line interface for Convoscope.

Minimal CLI for server management, batch ingestion from files and
inspecting or pruning stored summaries.
"""

import json
from pathlib import Path
from typing import List

import typer
from rich.console import Console
from rich.table import Table

from convoscope.config import settings
from convoscope.logging_config import setup_logging

app = typer.Typer(
    name="convoscope",
    help="Convoscope - conversation summary dashboard backend",
    no_args_is_help=True,
)

console = Console()


def _init_logging() -> None:
    # Fall back to console logging if the log directory is not writable
    try:
        setup_logging(context="cli")
    except PermissionError:
        import logging

        logging.basicConfig(level=logging.INFO)


def _summary_row(table: Table, record, indent: str = "") -> None:
    table.add_row(
        f"{indent}{record.id}",
        str(record.summary_type.value),
        record.media_type,
        record.language.upper(),
        record.summary_id,
        record.date_created.isoformat(),
        record.summary[:60],
    )


def _new_table(title: str) -> Table:
    table = Table(title=title)
    table.add_column("ID", justify="right")
    table.add_column("Type")
    table.add_column("Media")
    table.add_column("Lang")
    table.add_column("Summary ID")
    table.add_column("Date Created")
    table.add_column("Summary")
    return table


@app.command()
def ingest(
    path: str = typer.Argument(..., help="Path to a JSON file with { entities: [...] }"),
) -> None:
    """
    Ingest a batch of conversation summaries from a JSON file.

    Applies the same validation as the ingestion API: if any Agent or
    VirtualAgent entity lacks a conversationId, nothing is stored.
    """
    from convoscope.db.connection import db_session
    from convoscope.exceptions import BatchValidationError
    from convoscope.services.ingestion import IngestionService

    _init_logging()

    batch_path = Path(path)
    if not batch_path.is_file():
        console.print(f"[bold red]Error:[/bold red] File not found: {path}")
        raise typer.Exit(1)

    try:
        payload = json.loads(batch_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[bold red]Error:[/bold red] Invalid JSON: {e}")
        raise typer.Exit(1)

    try:
        with db_session() as session:
            service = IngestionService(session)
            result = service.ingest_batch(service.parse_request(payload))
    except BatchValidationError as e:
        console.print(f"[bold red]Rejected:[/bold red] {e}")
        raise typer.Exit(1)
    except Exception as e:
        console.print(f"[bold red]DB Error:[/bold red] {e}")
        raise typer.Exit(1)

    for item in result.summaries:
        console.print(
            f"  [green]✓ Stored[/green] id={item.id} summaryId={item.summary_id} "
            f"insights={item.insights_inserted}"
        )
    console.print()
    console.print(f"[bold]Inserted:[/bold] {result.inserted}")


@app.command()
def dashboard() -> None:
    """Print the grouped dashboard view."""
    from convoscope.db.connection import db_session
    from convoscope.db.repositories import SummaryRepository
    from convoscope.services.grouping import group_summaries

    _init_logging()

    with db_session() as session:
        rows = SummaryRepository(session).list_summaries(descending=False)
        grouped = group_summaries([record for record, _count in rows])

        counts = grouped.counts
        console.print(
            f"[bold]Total:[/bold] {counts.total}  "
            f"[bold]Agent:[/bold] {counts.agent}  "
            f"[bold]VirtualAgent:[/bold] {counts.virtual_agent}  "
            f"[bold]Conversation:[/bold] {counts.conversation}"
        )

        if counts.total == 0:
            console.print("[yellow]No conversations yet[/yellow]")
            return

        if grouped.groups:
            table = _new_table("Conversations")
            for group in grouped.groups:
                _summary_row(table, group.parent)
                for child in group.children:
                    _summary_row(table, child, indent="  └ ")
            console.print(table)

        if grouped.shared_groups:
            table = _new_table("Shared conversations")
            for shared in grouped.shared_groups:
                table.add_section()
                for member in shared.members:
                    _summary_row(table, member)
            console.print(table)

        if grouped.standalone:
            table = _new_table("Standalone summaries")
            for record in grouped.standalone:
                _summary_row(table, record)
            console.print(table)


@app.command()
def delete(
    ids: List[int] = typer.Argument(..., help="Store ids of summaries to delete"),
) -> None:
    """
    Delete summaries by store id.

    Deleting a Conversation summary also deletes the summaries grouped under it.
    """
    from convoscope.db.connection import db_session
    from convoscope.services.deletion import DeletionService

    _init_logging()

    with db_session() as session:
        batch = DeletionService(session).delete_many(ids)

    failed = 0
    for outcome in batch.outcomes:
        if outcome.status == "deleted":
            console.print(
                f"  [green]✓ Deleted[/green] {outcome.id} "
                f"({outcome.deleted} record(s))"
            )
        elif outcome.status == "not_found":
            console.print(f"  [yellow]⊘ Not found:[/yellow] {outcome.id}")
        else:
            console.print(f"  [red]✗ Failed:[/red] {outcome.id}: {outcome.error_message}")
            failed += 1

    console.print()
    console.print(f"[bold]Deleted:[/bold] {batch.deleted}")

    if failed > 0:
        raise typer.Exit(1)


@app.command("init-db")
def init_db_command() -> None:
    """Create database tables from the models (development convenience)."""
    from convoscope.db.connection import init_db

    init_db()
    console.print("[green]✓ Database tables created[/green]")


@app.command()
def serve(
    host: str = typer.Option(settings.api_host, help="Host to bind to"),
    port: int = typer.Option(settings.api_port, help="Port to bind to"),
    reload: bool = typer.Option(settings.api_reload, help="Enable auto-reload"),
) -> None:
    """
    Start the FastAPI server.

    Defaults come from the API_HOST, API_PORT and API_RELOAD settings.
    """
    import uvicorn

    console.print("[bold green]Starting Convoscope API server...[/bold green]")
    console.print(f"  Host: {host}")
    console.print(f"  Port: {port}")
    console.print(f"  Reload: {reload}")
    console.print(f"\n  API docs: http://{host}:{port}/docs")

    uvicorn.run(
        "convoscope.api.app:app",
        host=host,
        port=port,
        reload=reload,
    )


if __name__ == "__main__":
    app()
