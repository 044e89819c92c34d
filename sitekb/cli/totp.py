"""CLI commands for authenticator enrolment and testing."""

from typing import Annotated

import typer
from rich.console import Console

from config.settings import get_settings
from sitekb.verification import totp as totp_codes

console = Console()
app = typer.Typer()


@app.command()
def totp_secret(
    account: Annotated[
        str,
        typer.Argument(help="Account label shown in the authenticator app, e.g. an email"),
    ],
    qr: Annotated[
        bool,
        typer.Option("--qr/--no-qr", help="Print a QR code for the authenticator app to scan"),
    ] = True,
):
    """Generate a TOTP secret, its otpauth:// URI and a QR code to scan."""
    issuer = get_settings().sitekb_totp_issuer
    secret = totp_codes.generate_secret()
    uri = totp_codes.provisioning_uri(secret, account, issuer)
    console.print(f"[bold]Secret:[/bold] {secret}")
    console.print(f"[bold]URI:[/bold] {uri}")
    if qr:
        console.print()
        typer.echo(totp_codes.qr_terminal(uri))


@app.command()
def totp_code(
    secret: Annotated[
        str,
        typer.Argument(help="Base32 TOTP secret"),
    ],
):
    """Print the current TOTP code for a secret."""
    try:
        code = totp_codes.generate_code(secret)
    except ValueError as e:
        console.print(f"[bold red]{e}[/bold red]")
        raise typer.Exit(1)
    console.print(f"[bold]{code}[/bold]  (valid for {totp_codes.time_remaining()}s)")
