"""Keysign CLI: Typer app for canonical JSON and device key signatures."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from keysign import __version__
from keysign._canonical import canonicalize_text
from keysign.account import MAX_ONE_TIME_KEYS, OlmAccount
from keysign.exceptions import CanonicalJsonError, MalformedDocumentError
from keysign.models import ED25519, key_id
from keysign.signing import verify_identity_signature

console = Console()
err_console = Console(stderr=True)
app = typer.Typer(
    name="keysign",
    help="Keysign: Matrix canonical JSON and device key signatures",
    no_args_is_help=True,
)

EXIT_INVALID = 1
EXIT_MALFORMED = 2


def _read_input(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        err_console.print(f"[red]Cannot read {path}:[/red] {exc}")
        raise typer.Exit(EXIT_MALFORMED)


# --- Version ---

def _version_callback(value: bool):
    if value:
        console.print(f"keysign {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(False, "--version", "-v", callback=_version_callback, is_eager=True),
):
    pass


# --- Commands ---

@app.command("canonical")
def canonical(
    path: str = typer.Argument("-", help="JSON file, or - for stdin"),
):
    """Print the canonical JSON form of a document."""
    try:
        output = canonicalize_text(_read_input(path))
    except CanonicalJsonError as exc:
        err_console.print(f"[red]Not canonicalizable:[/red] {exc}")
        raise typer.Exit(EXIT_INVALID)
    typer.echo(output.decode("utf-8"))


@app.command("verify")
def verify(
    path: str = typer.Argument(..., help="Device keys JSON file, or - for stdin"),
    user_id: str = typer.Option(..., "--user-id", envvar="KEYSIGN_USER_ID", help="Signing user"),
    device_id: str = typer.Option(..., "--device-id", envvar="KEYSIGN_DEVICE_ID", help="Signing device"),
    key: Optional[str] = typer.Option(
        None, "--key", help="Base64 ed25519 key (default: the document's own key)"
    ),
):
    """Verify a device's ed25519 signature over a JSON document."""
    text = _read_input(path)
    if key is None:
        try:
            key = json.loads(text)["keys"][key_id(ED25519, device_id)]
        except (ValueError, KeyError, TypeError):
            err_console.print(f"[red]No ed25519 key for {device_id} in document; pass --key[/red]")
            raise typer.Exit(EXIT_MALFORMED)

    try:
        valid = verify_identity_signature(text, device_id, user_id, key)
    except MalformedDocumentError as exc:
        err_console.print(f"[yellow]Unsigned:[/yellow] {exc}")
        raise typer.Exit(EXIT_MALFORMED)

    if not valid:
        console.print(f"[red]Invalid signature[/red] from {user_id} ({device_id})")
        raise typer.Exit(EXIT_INVALID)
    console.print(f"[green]Valid signature[/green] from {user_id} ({device_id})")


@app.command("keygen")
def keygen(
    user_id: str = typer.Option(..., "--user-id", envvar="KEYSIGN_USER_ID", help="Matrix user id"),
    device_id: str = typer.Option(..., "--device-id", envvar="KEYSIGN_DEVICE_ID", help="Device id"),
    one_time_keys: int = typer.Option(0, "--one-time-keys", "-n", min=0, max=MAX_ONE_TIME_KEYS, help="One-time keys to generate"),
):
    """Generate a throwaway device and print its signed /keys/upload body."""
    account = OlmAccount.create(user_id, device_id)
    account.generate_one_time_keys(one_time_keys)
    try:
        request = account.create_upload_keys_request()
    except ValueError as exc:
        err_console.print(f"[red]Invalid device:[/red] {exc}")
        raise typer.Exit(EXIT_INVALID)
    typer.echo(json.dumps(request, indent=2, ensure_ascii=False))
