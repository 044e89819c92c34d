"""CLI commands for loading documents and intents into the knowledge base."""

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from sitekb.ingestion.loader import load_intent_records, load_text_document
from sitekb.services import build_services

console = Console()
app = typer.Typer()


def _configure_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(level=logging.INFO)
    else:
        logging.basicConfig(level=logging.WARNING)


@app.command()
def ingest(
    file: Annotated[
        Path,
        typer.Argument(exists=True, dir_okay=False, readable=True, help="Text or markdown file to ingest"),
    ],
    title: Annotated[
        str | None,
        typer.Option("--title", "-t", help="Document title (defaults to the file name)"),
    ] = None,
    category: Annotated[
        str | None,
        typer.Option("--category", "-c", help="Optional document category"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging"),
    ] = False,
):
    """Ingest a text document: store it, chunk it and rebuild the index."""
    _configure_logging(verbose)

    try:
        document = load_text_document(file, title=title, category=category)
    except (OSError, UnicodeDecodeError, ValueError) as e:
        console.print(f"[bold red]Cannot ingest {file}:[/bold red] {e}")
        raise typer.Exit(1)

    services = build_services()
    try:
        result = services.knowledge.ingest(document)
        stats = services.knowledge.stats()
    finally:
        services.close()

    console.print("[bold green]Ingestion complete![/bold green]")
    console.print(f"  Document: {document.title} ({result['document_id']})")
    console.print(f"  Chunks created: {result['chunks_created']}")
    console.print(f"  Total in knowledge base: {stats['documents']} documents, {stats['chunks']} chunks")


@app.command()
def load_intents(
    file: Annotated[
        Path,
        typer.Argument(exists=True, dir_okay=False, readable=True, help="JSON file with an intent list"),
    ],
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging"),
    ] = False,
):
    """Replace the intent collection with the intents in a JSON file."""
    _configure_logging(verbose)

    try:
        records = load_intent_records(file)
    except (OSError, ValueError) as e:
        console.print(f"[bold red]Cannot load intents from {file}:[/bold red] {e}")
        raise typer.Exit(1)

    services = build_services()
    try:
        kept = services.knowledge.load_intents(records)
    finally:
        services.close()

    console.print("[bold green]Intents loaded![/bold green]")
    console.print(f"  Records read: {len(records)}")
    console.print(f"  Intents kept: {kept}")
    if kept < len(records):
        console.print(f"  [yellow]Dropped {len(records) - kept} records without a name or response[/yellow]")
