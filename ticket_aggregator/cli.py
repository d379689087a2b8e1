#!/usr/bin/env python3
"""
Command-line interface for the Ticket Aggregator.
"""
import json
from pathlib import Path
from typing import List, Optional

import typer
from rich.panel import Panel
from rich.table import Table
from pydantic import ValidationError

from .config.settings import get_settings
from .core.db import DatabaseManager
from .core.exceptions import DateParseError, TicketAggregatorError
from .core.logging import console, configure_logging, get_logger
from .domain.event import CandidateEvent
from .domain.listing import CandidateTicket
from .infrastructure.database.postgres_store import PostgresEventStore
from .matching.dates import DateNormalizer, format_timestamp
from .services.event_processor import EventProcessor, ScrapedEvent

logger = get_logger(__name__)

app = typer.Typer(
    name="ticket-aggregator",
    help="Resolve scraped concert listings into canonical events",
    add_completion=False,
)

STATUS_STYLES = {
    "matched": "green",
    "created": "cyan",
    "skipped": "yellow",
    "failed": "red",
}


def print_header():
    """Print application header."""
    settings = get_settings()
    console.print(Panel(
        f"[bold blue]{settings.project_name} v{settings.version}[/bold blue]\n"
        f"[dim]Event matching and ticket inventory reconciliation[/dim]",
        border_style="blue"
    ))


def _store() -> PostgresEventStore:
    return PostgresEventStore(DatabaseManager(settings=get_settings()))


def load_tickets(records, source: str) -> List[CandidateTicket]:
    """Validate scraped tickets one by one; a malformed listing is dropped, not the event."""
    tickets = []
    for record in records:
        try:
            tickets.append(CandidateTicket.from_scrape(record, source))
        except ValidationError as e:
            logger.warning("Rejected scraped ticket", record=record, source=source, error=str(e))
    return tickets


def load_scraped_events(path: Path, source: Optional[str] = None):
    """
    Read a JSON file of scraped events.

    Each record carries the candidate fields and optionally a ``tickets``
    list. Records whose event fields fail validation are reported and left
    out; bad tickets only drop themselves.
    """
    with open(path, "r") as f:
        records = json.load(f)

    items, rejected = [], 0
    for record in records:
        try:
            candidate = CandidateEvent.from_scrape(record, source)
        except ValidationError as e:
            rejected += 1
            logger.warning("Rejected scraped record", record=record, error=str(e))
            continue
        tickets = record.get("tickets")
        if tickets is not None:
            tickets = load_tickets(tickets, candidate.source)
        items.append(ScrapedEvent(candidate=candidate, tickets=tickets))
    return items, rejected


@app.command()
def init_db():
    """Create the extensions and tables."""
    configure_logging(get_settings())
    print_header()
    console.print("[bold yellow]Initializing database...[/bold yellow]")

    store = _store()
    if not store.db.test_connection():
        console.print("[bold red]Cannot reach the database, check the DB_* settings[/bold red]")
        raise typer.Exit(code=1)

    try:
        store.ensure_schema()
        console.print("[bold green]Database initialization complete![/bold green]")
    except Exception as e:
        console.print(f"[bold red]Database initialization failed: {e}[/bold red]")
        raise typer.Exit(code=1)


@app.command()
def parse_date(
    text: str = typer.Argument(..., help="Date as printed by the marketplace"),
    source: Optional[str] = typer.Option(None, "--source", "-s", help="Marketplace dialect"),
):
    """Show how a scraped date string normalizes."""
    try:
        value = DateNormalizer().normalize(text, source)
    except DateParseError as e:
        console.print(f"[bold red]{e}[/bold red]")
        raise typer.Exit(code=1)
    console.print(f"[green]{format_timestamp(value)}[/green]")


@app.command()
def ingest(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file of scraped events"),
    source: Optional[str] = typer.Option(None, "--source", "-s", help="Source for records without one"),
):
    """Match, create and reconcile a file of scraped events."""
    configure_logging(get_settings())
    print_header()

    items, rejected = load_scraped_events(path, source)
    console.print(f"[bold yellow]Processing {len(items)} scraped events...[/bold yellow]")

    try:
        report = EventProcessor(_store()).process_batch(items)
    except TicketAggregatorError as e:
        console.print(f"[bold red]Ingest failed: {e}[/bold red]")
        raise typer.Exit(code=1)

    table = Table(title=f"Processed {len(report.outcomes)} Events")
    table.add_column("Name", style="cyan")
    table.add_column("Source", style="blue")
    table.add_column("Date", style="yellow")
    table.add_column("Status")
    table.add_column("Tickets +/-", justify="right")
    table.add_column("Event ID", style="dim")

    for outcome in report.outcomes:
        style = STATUS_STYLES.get(outcome.status, "white")
        tickets = "-"
        if outcome.inventory is not None:
            tickets = f"+{len(outcome.inventory.inserted)}/-{len(outcome.inventory.retired)}"
        table.add_row(
            outcome.name,
            outcome.source,
            outcome.date or "?",
            f"[{style}]{outcome.status}[/{style}]",
            tickets,
            outcome.event_id or outcome.error or "",
        )

    console.print(table)
    summary = report.summary()
    console.print(
        f"[bold green]Ingest complete:[/bold green] {summary['matched']} matched, "
        f"{summary['created']} created, {summary['skipped']} skipped, {summary['failed']} failed, "
        f"{summary['filtered']} filtered, {summary['duplicates']} duplicates, {rejected} rejected"
    )
    if summary["failed"]:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
