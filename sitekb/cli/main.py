"""SiteKB CLI entry point."""

import typer

from sitekb.cli.ask import ask
from sitekb.cli.chat import chat
from sitekb.cli.ingest import ingest, load_intents
from sitekb.cli.status import status
from sitekb.cli.totp import totp_code, totp_secret

app = typer.Typer(
    name="sitekb",
    help="Site knowledge base - answer visitor questions and verify callers.",
)

app.command(name="ask")(ask)
app.command(name="chat")(chat)
app.command(name="ingest")(ingest)
app.command(name="load-intents")(load_intents)
app.command(name="status")(status)
app.command(name="totp-secret")(totp_secret)
app.command(name="totp-code")(totp_code)


if __name__ == "__main__":
    app()
