"""Command-line interface for the Nostr key vault."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import NoReturn

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.prompt import Confirm, Prompt
from rich.table import Table

from .auth import SessionClient
from .backends import SQLiteVaultStore, VaultStore
from .config import Config, ConfigError
from .history import AttemptLog
from .identity import InvalidFormatError, derive_public_key, encode_npub, generate_private_key
from .schema import EncryptedKeyRecord, SchemaError
from .signin import HANDLED_ERRORS, SignInResult, sign_in_with_vault, unlock_vault, user_message
from .vault import has_key, remove_key, restore_record, store_key, store_private_key

console = Console()
error_console = Console(stderr=True)

logger = logging.getLogger(__name__)


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=error_console, show_path=False)],
        force=True,
    )


def fail(message: str) -> NoReturn:
    error_console.print(f"[red]Error: {message}[/red]")
    raise SystemExit(1)


def get_config(ctx: click.Context) -> Config:
    return ctx.obj["config"]


def get_store(ctx: click.Context) -> VaultStore:
    return SQLiteVaultStore(get_config(ctx).vault_path)


def get_log(ctx: click.Context) -> AttemptLog:
    return AttemptLog(get_config(ctx).history_path)


def prompt_password(prompt_text: str = "Enter password") -> str:
    """Prompt for a password using rich."""
    return Prompt.ask(f"[cyan]{prompt_text}[/cyan]", password=True)


def _password(ctx: click.Context) -> str:
    return ctx.obj.get("password") or prompt_password()


def _new_password(ctx: click.Context) -> str:
    password = ctx.obj.get("password")
    if password:
        return password
    password = prompt_password("Enter encryption password")
    confirm = prompt_password("Confirm password")
    if password != confirm:
        fail("Passwords do not match")
    return password


def _confirm_overwrite(ctx: click.Context, store: VaultStore) -> None:
    if ctx.obj.get("force"):
        return
    try:
        if not asyncio.run(has_key(store)):
            return
    except HANDLED_ERRORS as e:
        fail(user_message(e))
    if not sys.stdin.isatty():
        fail("A key is already stored (use --force to overwrite)")
    if not Confirm.ask("[yellow]A key is already stored. Overwrite?[/yellow]"):
        error_console.print("[yellow]Cancelled[/yellow]")
        raise SystemExit(1)


def _report(result: SignInResult) -> None:
    if not result.ok:
        fail(result.message)


@click.group()
@click.option("--data-dir", type=click.Path(path_type=Path), help="Vault data directory")
@click.option("--db", "db_path", type=click.Path(path_type=Path), help="Vault database path")
@click.option("--session-url", help="Session endpoint URL")
@click.option("--sign-url", help="Remote signing function URL")
@click.option("--password", help="Vault password (non-interactive)")
@click.option("--debug", is_flag=True, help="Enable debug output")
@click.option("--force", is_flag=True, help="Skip confirmations")
@click.pass_context
def cli(
    ctx: click.Context,
    data_dir: Path | None,
    db_path: Path | None,
    session_url: str | None,
    sign_url: str | None,
    password: str | None,
    debug: bool,
    force: bool,
) -> None:
    """Encrypted Nostr key vault with NIP-98 sign-in."""
    configure_logging(debug)
    try:
        config = Config.from_env()
    except ConfigError as e:
        fail(str(e))

    if data_dir:
        config.data_dir = data_dir
    if db_path:
        config.db_path = db_path
    if session_url:
        config.session_url = session_url
    if sign_url:
        config.sign_url = sign_url

    logger.debug("Vault at %s, history at %s", config.vault_path, config.history_path)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["password"] = password
    ctx.obj["force"] = force


@cli.command("import")
@click.argument("nsec", required=False)
@click.pass_context
def import_key(ctx: click.Context, nsec: str | None) -> None:
    """Encrypt and store an existing nsec."""
    store = get_store(ctx)
    if nsec is None:
        nsec = Prompt.ask("[cyan]Enter nsec[/cyan]", password=True)

    _confirm_overwrite(ctx, store)
    password = _new_password(ctx)
    try:
        asyncio.run(store_key(store, nsec, password))
    except InvalidFormatError as e:
        fail(str(e))
    except HANDLED_ERRORS as e:
        fail(user_message(e))
    error_console.print("[green]Stored key[/green]")


@cli.command()
@click.pass_context
def generate(ctx: click.Context) -> None:
    """Generate a new key and store it encrypted."""
    store = get_store(ctx)
    _confirm_overwrite(ctx, store)
    password = _new_password(ctx)

    private_key_hex = generate_private_key()
    try:
        asyncio.run(store_private_key(store, private_key_hex, password))
    except HANDLED_ERRORS as e:
        fail(user_message(e))

    click.echo(encode_npub(derive_public_key(private_key_hex)))
    error_console.print("[green]Generated and stored new key[/green]")


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show whether a key is stored."""
    store = get_store(ctx)
    try:
        stored = asyncio.run(has_key(store))
        version = store.version() if isinstance(store, SQLiteVaultStore) else None
    except HANDLED_ERRORS as e:
        fail(user_message(e))

    click.echo(f"key: {'stored' if stored else 'none'}")
    if version is not None:
        click.echo(f"store version: {version}")


@cli.command()
@click.option("--show-hex", is_flag=True, help="Print the hex private key")
@click.pass_context
def unlock(ctx: click.Context, show_hex: bool) -> None:
    """Decrypt the vault and print the public key."""
    store = get_store(ctx)
    result = asyncio.run(unlock_vault(store, _password(ctx), get_log(ctx)))
    _report(result)

    click.echo(encode_npub(derive_public_key(result.private_key_hex)))
    if show_hex:
        click.echo(result.private_key_hex)


async def _sign_in(config: Config, store: VaultStore, password: str, log: AttemptLog, check: bool) -> SignInResult:
    async with SessionClient(config.require_session_url(), timeout=config.timeout) as client:
        result = await sign_in_with_vault(client, store, password, config.sign_url, log)
        if result.ok and check:
            result.data = await client.check_session()
        return result


@cli.command("sign-in")
@click.option("--check-session", "check", is_flag=True, help="Query the session after signing in")
@click.pass_context
def sign_in(ctx: click.Context, check: bool) -> None:
    """Sign in to the session endpoint with the stored key."""
    config = get_config(ctx)
    store = get_store(ctx)
    try:
        result = asyncio.run(_sign_in(config, store, _password(ctx), get_log(ctx), check))
    except HANDLED_ERRORS as e:
        fail(user_message(e))
    _report(result)

    console.print_json(data=result.data)
    error_console.print("[green]Signed in[/green]")


async def _session(config: Config, action: str) -> dict:
    async with SessionClient(config.require_session_url(), timeout=config.timeout) as client:
        if action == "logout":
            return await client.logout()
        return await client.check_session()


@cli.command()
@click.pass_context
def session(ctx: click.Context) -> None:
    """Query the session endpoint."""
    try:
        data = asyncio.run(_session(get_config(ctx), "check"))
    except HANDLED_ERRORS as e:
        fail(user_message(e))
    console.print_json(data=data)


@cli.command()
@click.pass_context
def logout(ctx: click.Context) -> None:
    """End the session at the session endpoint."""
    try:
        asyncio.run(_session(get_config(ctx), "logout"))
    except HANDLED_ERRORS as e:
        fail(user_message(e))
    error_console.print("[green]Logged out[/green]")


@cli.command()
@click.pass_context
def export(ctx: click.Context) -> None:
    """Print the encrypted record as JSON."""
    store = get_store(ctx)
    try:
        record = store.load()
    except HANDLED_ERRORS as e:
        fail(user_message(e))
    click.echo(record.to_json())


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def restore(ctx: click.Context, path: Path) -> None:
    """Restore an encrypted record exported earlier."""
    store = get_store(ctx)
    try:
        record = EncryptedKeyRecord.from_json(path.read_text())
    except SchemaError as e:
        fail(str(e))

    _confirm_overwrite(ctx, store)
    try:
        asyncio.run(restore_record(store, record))
    except HANDLED_ERRORS as e:
        fail(user_message(e))
    error_console.print("[green]Restored key[/green]")


@cli.command()
@click.pass_context
def remove(ctx: click.Context) -> None:
    """Delete the stored key."""
    store = get_store(ctx)
    if not ctx.obj.get("force"):
        if not sys.stdin.isatty():
            fail("Refusing to delete without a terminal (use --force)")
        if not Confirm.ask("[yellow]Delete the stored key? This cannot be undone.[/yellow]"):
            error_console.print("[yellow]Cancelled[/yellow]")
            raise SystemExit(1)

    try:
        removed = asyncio.run(remove_key(store))
    except HANDLED_ERRORS as e:
        fail(user_message(e))
    if not removed:
        fail("No key stored")
    error_console.print("[green]Removed key[/green]")


@cli.command()
@click.pass_context
def log(ctx: click.Context) -> None:
    """Show unlock and sign-in attempts."""
    history = get_log(ctx)

    if history.is_empty():
        error_console.print("[yellow]No attempts logged yet[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Operation", style="cyan")
    table.add_column("Timestamp")
    table.add_column("Flow")
    table.add_column("Outcome")

    for entry in history.entries():
        style = "green" if entry.outcome == "ok" else "red"
        table.add_row(
            entry.operation,
            entry.timestamp,
            entry.flow,
            f"[{style}]{entry.outcome}[/{style}]",
        )

    console.print(table)


def main() -> None:
    """Entry point for the nostr-vault CLI."""
    cli()


if __name__ == "__main__":
    main()
