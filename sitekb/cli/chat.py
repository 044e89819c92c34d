"""CLI command for chatting with the support agent in the terminal."""

import asyncio
import logging
from typing import Annotated

import typer
from rich.console import Console

from sitekb.services import build_services

console = Console()
app = typer.Typer()

EXIT_WORDS = {"exit", "quit"}


@app.command()
def chat(
    name: Annotated[
        str | None,
        typer.Option("--name", "-n", help="Customer name used in replies"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging"),
    ] = False,
):
    """Chat with the support agent. Type 'exit' to stop."""
    if verbose:
        logging.basicConfig(level=logging.INFO)
    else:
        logging.basicConfig(level=logging.WARNING)

    services = build_services()
    try:
        asyncio.run(services.initialize())
        opening = services.chat.start(name)
        console.print(f"[bold cyan]Agent:[/bold cyan] {opening.text}")

        while True:
            message = typer.prompt("You", default="", show_default=False).strip()
            if not message or message.lower() in EXIT_WORDS:
                break
            reply = asyncio.run(services.chat.reply(opening.conversation_id, message))
            console.print(f"[bold cyan]Agent:[/bold cyan] {reply.text}")
            if reply.sources:
                console.print(f"  [dim]Sources: {', '.join(sorted(set(reply.sources)))}[/dim]")

        services.chat.end(opening.conversation_id)
    finally:
        services.close()
