"""hookverify CLI - sign, verify and send webhook deliveries."""

import asyncio
import ssl
import sys
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any, ParamSpec, TypeVar

import aiohttp
import click
from rich.console import Console
from rich.table import Table

from hookverify.common.settings import get_settings
from hookverify.common.signing import sign, verify
from hookverify.receivers.profiles import DEFAULT_RECEIVERS
from hookverify.receivers.secrets import SecretResolver

console = Console()

P = ParamSpec("P")
R = TypeVar("R")


def async_command(f: Callable[P, Coroutine[Any, Any, R]]) -> Callable[P, R]:
    """Decorator to run async commands."""

    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        return asyncio.run(f(*args, **kwargs))

    return wrapper


def _read_body(body: str | None, body_file: str | None) -> bytes:
    if body_file:
        path = Path(body_file).expanduser()
        if not path.exists():
            console.print(f"[red]Body file not found: {path}[/red]")
            sys.exit(1)
        return path.read_bytes()
    if body is not None:
        return body.encode("utf-8")
    console.print("[red]Either --body or --body-file is required[/red]")
    sys.exit(1)


@click.group()
def cli() -> None:
    """hookverify CLI - webhook signature tooling."""


@cli.command("sign")
@click.option("--secret", "-s", required=True, help="Shared secret")
@click.option("--body", "-b", help="Payload text")
@click.option("--body-file", "-f", help="Path to payload file (exact bytes are signed)")
def sign_cmd(secret: str, body: str | None, body_file: str | None) -> None:
    """Print the hex HMAC-SHA-256 signature of a payload."""
    payload = _read_body(body, body_file)
    click.echo(sign(secret, payload))


@cli.command("verify")
@click.option("--secret", "-s", required=True, help="Shared secret")
@click.option("--signature", required=True, help="Hex signature to check")
@click.option("--body", "-b", help="Payload text")
@click.option("--body-file", "-f", help="Path to payload file")
def verify_cmd(secret: str, signature: str, body: str | None, body_file: str | None) -> None:
    """Verify a hex signature against a payload."""
    payload = _read_body(body, body_file)
    if verify(secret, payload, signature):
        console.print("[green]✓ Signature is valid[/green]")
    else:
        console.print("[red]✗ Signature is invalid[/red]")
        sys.exit(1)


@cli.command("send")
@click.argument("url")
@click.option("--receiver", "-r", default="pusher", help="Receiver profile name")
@click.option("--app-key", "-k", required=True, help="Application key")
@click.option("--secret", "-s", required=True, help="Secret for the application key")
@click.option("--body", "-b", help="Payload text")
@click.option("--body-file", "-f", help="Path to payload file")
@click.option("--insecure", is_flag=True, help="Disable TLS verification (testing only)")
@async_command
async def send_cmd(
    url: str,
    receiver: str,
    app_key: str,
    secret: str,
    body: str | None,
    body_file: str | None,
    insecure: bool,
) -> None:
    """Send a signed test delivery to URL."""
    profile = DEFAULT_RECEIVERS.get(receiver.lower())
    if profile is None:
        console.print(f"[red]Unknown receiver: {receiver}[/red]")
        sys.exit(1)

    payload = _read_body(body, body_file)
    headers = {
        profile.signature_header: sign(secret, payload),
        profile.key_header: app_key,
        "Content-Type": "application/json",
    }

    ssl_context: ssl.SSLContext | None = None
    if insecure:
        ssl_context = ssl.create_default_context()
        ssl_context.check_hostname = False
        ssl_context.verify_mode = ssl.CERT_NONE

    connector = aiohttp.TCPConnector(ssl=ssl_context) if ssl_context else None
    async with aiohttp.ClientSession(connector=connector) as session:
        try:
            async with session.request(profile.method, url, data=payload, headers=headers) as response:
                detail = await response.text()
        except aiohttp.ClientError as exc:
            console.print(f"[red]Error: {exc}[/red]")
            sys.exit(1)

    if response.status >= 400:
        console.print(f"[red]{response.status}: {detail}[/red]")
        sys.exit(1)
    console.print(f"[green]{response.status}: {detail}[/green]")


@cli.command("show-secrets")
def show_secrets() -> None:
    """List configured receiver scopes and application keys (secrets hidden)."""
    settings = get_settings()
    resolver = SecretResolver.from_settings(settings)

    table = Table(title="Configured Secret Keys")
    table.add_column("Receiver", style="cyan")
    table.add_column("Id", style="green")
    table.add_column("Application Key", style="yellow")
    table.add_column("Secret Length")

    rows = 0
    for receiver, receiver_id in resolver.scopes():
        secret_keys = resolver.get_secret_keys(receiver, receiver_id)
        if secret_keys is None:
            continue
        for app_key, secret in secret_keys.items():
            table.add_row(receiver, receiver_id, app_key, str(len(secret)))
            rows += 1

    if not rows:
        console.print("[yellow]No secret keys configured[/yellow]")
        return
    console.print(table)


@cli.command("serve")
def serve() -> None:
    """Run the webhook receiver service."""
    from hookverify.server.main import main

    main()


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
