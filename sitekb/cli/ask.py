"""CLI command for asking the knowledge base a question."""

import asyncio
import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from sitekb.services import build_services

console = Console()
app = typer.Typer()

logger = logging.getLogger(__name__)

SOURCE_COLORS = {
    "intent": "green",
    "document": "cyan",
    "vector": "magenta",
}


async def _resolve(services, question: str):
    await services.initialize()
    return await services.resolver.resolve(question)


@app.command()
def ask(
    question: Annotated[
        str,
        typer.Argument(help="Question a site visitor or caller might ask"),
    ],
    top: Annotated[
        int,
        typer.Option("--top", "-n", help="Show this many lexical matches when nothing is found"),
    ] = 3,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging"),
    ] = False,
):
    """Resolve a question against intents and documents."""
    if verbose:
        logging.basicConfig(level=logging.INFO)
    else:
        logging.basicConfig(level=logging.WARNING)

    services = build_services()
    try:
        stats = services.knowledge.stats()
        if stats["intents"] == 0 and stats["documents"] == 0:
            console.print(
                "[bold yellow]The knowledge base is empty.[/bold yellow]\n"
                "Run 'sitekb load-intents FILE' or 'sitekb ingest FILE' first."
            )

        with console.status("[bold green]Searching..."):
            resolution = asyncio.run(_resolve(services, question))
        matches = [] if resolution.found else services.resolver.rank(question, limit=top)
    finally:
        services.close()

    if not resolution.found:
        console.print()
        console.print(Panel(
            "No confident answer found.",
            title=Text(f"SiteKB  best score {resolution.score:.3f}", style="bold red"),
            border_style="red",
            padding=(1, 2),
        ))
        if matches:
            table = Table(title="Top matches")
            table.add_column("Source")
            table.add_column("Score", justify="right")
            table.add_column("Answer")
            for c in matches:
                table.add_row(c.source.value, f"{c.score:.3f}", c.answer[:80])
            console.print(table)
        raise typer.Exit(1)

    color = SOURCE_COLORS.get(resolution.source.value, "white")
    header = Text()
    header.append("SiteKB", style="bold")
    header.append("  Source: ", style="dim")
    header.append(resolution.source.value, style=f"bold {color}")
    header.append(f"  Score: {resolution.score:.3f}", style="dim")

    console.print()
    console.print(Panel(resolution.answer, title=header, border_style=color, padding=(1, 2)))
