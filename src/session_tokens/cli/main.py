"""CLI entry point for session-tokens.

Invoked as::

    session-tokens [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m session_tokens.cli.main

Commands
--------
token create     Generate new session or transition tokens
token show       Show the stored value of a token
token list       List tokens held by a filesystem store
session open     Open a shared session with a bounded token
session check    Verify an owner against a shared session
session close    Close a shared session
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

console = Console()

_STORE_DIR_OPTION = click.option(
    "--store-dir",
    type=click.Path(file_okay=False),
    required=True,
    help="Directory of the filesystem store.",
)


# ------------------------------------------------------------------
# Root group
# ------------------------------------------------------------------


@click.group()
@click.version_option(package_name="session-tokens")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging level.",
)
def cli(log_level: str) -> None:
    """Session and capability token registry tools"""
    logging.basicConfig(level=getattr(logging, log_level.upper()))


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from session_tokens import __version__

    console.print(f"[bold]session-tokens[/bold] v{__version__}")


# ------------------------------------------------------------------
# token command group
# ------------------------------------------------------------------


@cli.group(name="token")
def token_group() -> None:
    """Create and inspect tokens."""


@token_group.command(name="create")
@click.option("--session", "session_kind", is_flag=True, default=False, help="Create session tokens.")
@click.option("--prefix", default=None, help="Prefix for transition tokens.")
@click.option("--count", "-n", type=click.IntRange(min=1), default=1, show_default=True)
def create_command(session_kind: bool, prefix: str | None, count: int) -> None:
    """Generate new tokens and print one per line."""
    from session_tokens.tokens import SESSION_PREFIX, TokenFactory

    if session_kind and prefix:
        console.print("[red]Error:[/red] --session and --prefix are mutually exclusive.")
        sys.exit(1)

    factory = TokenFactory()
    for _ in range(count):
        token = factory.create_token(SESSION_PREFIX if session_kind else prefix)
        click.echo(token.value)


@token_group.command(name="show")
@click.argument("token")
@_STORE_DIR_OPTION
def show_command(token: str, store_dir: str) -> None:
    """Show the stored value of TOKEN."""
    registry = _open_registry(store_dir, None)
    value = registry.transition_token_is_active(token)
    if value is None:
        console.print(f"[yellow]Token {token!r} is not active.[/yellow]")
        sys.exit(1)
    click.echo(value)


@token_group.command(name="list")
@_STORE_DIR_OPTION
def list_command(store_dir: str) -> None:
    """List every token with a stored value."""
    from session_tokens.store import FilesystemStore

    store = FilesystemStore(Path(store_dir))
    tokens = store.list_tokens()
    if not tokens:
        console.print("[yellow]No tokens stored.[/yellow]")
        return

    table = Table(title="Stored Tokens", show_header=True)
    table.add_column("Token", style="cyan")
    table.add_column("Value")
    for token in tokens:
        value = store.get_key_value(token) or ""
        table.add_row(token, value if len(value) <= 60 else value[:57] + "...")

    console.print(table)
    console.print(f"\nTotal: {len(tokens)} token(s)")


# ------------------------------------------------------------------
# session command group
# ------------------------------------------------------------------


@cli.group(name="session")
def session_group() -> None:
    """Open, verify and close shared sessions."""


@session_group.command(name="open")
@click.argument("owner")
@_STORE_DIR_OPTION
@click.option("--value", default=None, help="Payload of the bounded token (defaults to OWNER).")
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="JSON registry configuration file.",
)
def open_command(owner: str, store_dir: str, value: str | None, config_file: str | None) -> None:
    """Open a shared session for OWNER with one bounded token."""
    from session_tokens.tokens import SESSION_PREFIX

    registry = _open_registry(store_dir, config_file)
    session = registry.create_token(SESSION_PREFIX)
    bounded = registry.create_token()
    hash_value = registry.add_session(session, owner, bounded, value=value, shared=True)

    console.print(f"[green]Opened[/green] session for [bold]{owner}[/bold]")
    click.echo(f"  Session:  {session}")
    click.echo(f"  Bounded:  {bounded}")
    click.echo(f"  Hash:     {hash_value}")


@session_group.command(name="check")
@click.argument("session_token")
@click.argument("owner")
@click.argument("hash_value")
@_STORE_DIR_OPTION
def check_command(session_token: str, owner: str, hash_value: str, store_dir: str) -> None:
    """Verify that OWNER holds SESSION_TOKEN, given the session's HASH_VALUE."""
    registry = _open_registry(store_dir, None)
    if not registry.reload_session_info(session_token, owner, hash_value):
        console.print(f"  [red]FAIL[/red]  Session {session_token!r} is not active for {owner!r}.")
        sys.exit(1)

    time_left = registry.get_session_time_left(session_token)
    console.print(f"  [green]PASS[/green]  Session {session_token!r} is active for {owner!r}.")
    console.print(f"  Time left: {time_left:.1f}s" if time_left is not None else "  Time left: unknown")


@session_group.command(name="close")
@click.argument("session_token")
@click.argument("owner")
@click.argument("hash_value")
@_STORE_DIR_OPTION
@click.option(
    "--token",
    "tokens",
    multiple=True,
    help="Bounded token to destroy with the session (repeatable).",
)
def close_command(
    session_token: str, owner: str, hash_value: str, store_dir: str, tokens: tuple[str, ...]
) -> None:
    """Close SESSION_TOKEN after verifying OWNER against HASH_VALUE."""
    registry = _open_registry(store_dir, None)
    if not registry.reload_session_info(session_token, owner, hash_value):
        console.print(f"[red]Error:[/red] session {session_token!r} is not active for {owner!r}.")
        sys.exit(1)
    # A reloaded session starts with no local tokens; re-bind the named ones
    # so they are destroyed with it.
    for token in tokens:
        value = registry.transition_token_is_active(token)
        if value is not None:
            registry.add_session_bounded_token(token, value, owner)
    registry.destroy_session(session_token)
    console.print(f"[red]Closed[/red] session [bold]{session_token}[/bold]")


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _open_registry(store_dir: str, config_file: str | None):  # type: ignore[no-untyped-def]
    """Return a SessionTokenRegistry over a FilesystemStore at *store_dir*."""
    from pydantic import ValidationError

    from session_tokens.config import RegistryConfig
    from session_tokens.registry import SessionTokenRegistry
    from session_tokens.store import FilesystemStore

    config = None
    if config_file:
        try:
            config = RegistryConfig.from_file(Path(config_file))
        except (ValidationError, ValueError) as exc:
            console.print(f"[red]Error:[/red] invalid config file: {escape(str(exc))}")
            sys.exit(1)
    return SessionTokenRegistry(FilesystemStore(Path(store_dir)), config=config)


if __name__ == "__main__":
    cli()
