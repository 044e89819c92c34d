"""CLI command showing what the knowledge base holds."""

import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from sitekb.services import build_services

console = Console()
app = typer.Typer()


@app.command()
def status(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging"),
    ] = False,
):
    """Show knowledge base statistics and documents."""
    if verbose:
        logging.basicConfig(level=logging.INFO)
    else:
        logging.basicConfig(level=logging.WARNING)

    services = build_services()
    try:
        stats = services.knowledge.stats()
        documents = services.knowledge.list_documents()
        settings = services.settings
    finally:
        services.close()

    console.print("[bold]SiteKB Status[/bold]")
    console.print(f"  Data path: {settings.data_path}")
    console.print(f"  Intents: {stats['intents']}")
    console.print(f"  Documents: {stats['documents']}")
    console.print(f"  Chunks: {stats['chunks']} ({stats['total_characters']} characters)")
    console.print(f"  Vector search: {'enabled' if settings.sitekb_vector_enabled else 'disabled'}")

    if documents:
        table = Table(title="Documents")
        table.add_column("Title")
        table.add_column("Category")
        table.add_column("Chunks", justify="right")
        table.add_column("Added")
        for d in documents:
            table.add_row(d["title"], d["category"] or "-", str(d["chunk_count"]), d["created_at"][:19])
        console.print()
        console.print(table)
