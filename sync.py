#!/usr/bin/env python3
"""
GitHub → Vault Inbox Sync CLI

Usage:
    python sync.py                  # Run one sync
    python sync.py --debug          # Sync with request tracing
    python sync.py status           # Show ledger and recent runs
    python sync.py reset            # Forget synced files and history
    python sync.py test-connection  # Check token and repository
    python sync.py validate         # Check settings without network calls
    python sync.py settings --save  # Persist current settings to the vault
    python sync.py watch            # Startup + interval sync until Ctrl+C
"""

import os
import sys
import threading
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv
from rich.console import Console

from inbox_sync import __version__
from inbox_sync.config import Config, validate_settings
from inbox_sync.github_api import GitHubAPI
from inbox_sync.notifications import MESSAGES, Notifier
from inbox_sync.scheduler import MANUAL, SyncTriggers
from inbox_sync.state import DataFile
from inbox_sync.sync_engine import SyncEngine

console = Console()


def load_config(
    vault: Optional[Path] = None,
    debug: bool = False,
    require_credentials: bool = True,
) -> Config:
    """
    Build the configuration for a vault.

    Settings persisted in the vault's data document are applied first,
    then environment variables (including .env) override them.
    Commands that only touch the local ledger pass
    ``require_credentials=False``.
    """
    load_dotenv()

    vault_path = Path(vault or os.getenv("VAULT_PATH") or Path.cwd())
    data = DataFile(Config(vault_path=vault_path).data_file).load()

    config = Config.from_env(
        data=data,
        vault_path=vault_path,
        require_credentials=require_credentials,
    )
    if debug:
        config.debug = True
    return config


@click.group(invoke_without_command=True)
@click.option(
    "--vault",
    type=click.Path(file_okay=False, path_type=Path),
    help="Vault directory (defaults to VAULT_PATH or the current directory)",
)
@click.option("--debug", is_flag=True, help="Enable debug output")
@click.pass_context
def cli(ctx, vault: Optional[Path], debug: bool):
    """
    GitHub → Vault Inbox Sync

    Imports markdown notes from a GitHub folder into a local vault.
    """
    ctx.ensure_object(dict)
    ctx.obj["vault"] = vault
    ctx.obj["debug"] = debug

    # If no subcommand, run sync
    if ctx.invoked_subcommand is None:
        ctx.invoke(sync)


@cli.command()
@click.pass_context
def sync(ctx):
    """Run one synchronization from GitHub into the vault."""
    debug = ctx.obj.get("debug", False)

    try:
        config = load_config(ctx.obj.get("vault"), debug)

        validation = validate_settings(config)
        if not validation.valid:
            for error in validation.errors:
                console.print(f"[red]{error.field}:[/red] {error.message}")
            sys.exit(1)

        console.print("\n[bold blue]🔄 Starting GitHub → Vault Sync[/bold blue]\n")

        engine = SyncEngine(config)
        triggers = SyncTriggers(engine, config)
        result = triggers.perform_sync(MANUAL)

        if result is None:
            sys.exit(1)

        engine.print_summary(result)

        if not result.success:
            sys.exit(1)

    except ValueError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        console.print("\n[dim]Set GITHUB_TOKEN and GITHUB_REPOSITORY (a .env file works).[/dim]")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Sync cancelled.[/yellow]")
        sys.exit(130)


@cli.command()
@click.pass_context
def status(ctx):
    """Show current sync status."""
    try:
        config = load_config(
            ctx.obj.get("vault"),
            ctx.obj.get("debug", False),
            require_credentials=False,
        )
        engine = SyncEngine(config)
        engine.status()
    except ValueError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)


@cli.command()
@click.option("--yes", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def reset(ctx, yes: bool):
    """Forget all synced files and the run history."""
    try:
        config = load_config(
            ctx.obj.get("vault"),
            ctx.obj.get("debug", False),
            require_credentials=False,
        )
        engine = SyncEngine(config)
        engine.reset(confirm=yes)
    except ValueError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)


@cli.command("test-connection")
@click.pass_context
def test_connection(ctx):
    """Check that the token works and the repository is reachable."""
    try:
        config = load_config(ctx.obj.get("vault"), ctx.obj.get("debug", False))
    except ValueError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)

    console.print("[dim]Testing connection...[/dim]")
    result = GitHubAPI(config).test_connection()

    if result.success:
        console.print(f"[green]{MESSAGES.connection_success(result.user, result.repository)}[/green]")
    else:
        console.print(f"[red]{MESSAGES.connection_failed(result.error)}[/red]")
        sys.exit(1)


@cli.command()
@click.pass_context
def validate(ctx):
    """Validate settings without contacting GitHub."""
    try:
        config = load_config(ctx.obj.get("vault"), ctx.obj.get("debug", False))
    except ValueError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)

    validation = validate_settings(config)
    if validation.valid:
        console.print("[green]Settings are valid.[/green]")
        return

    for error in validation.errors:
        console.print(f"[red]{error.field}:[/red] {error.message}")
    sys.exit(1)


@cli.command()
@click.option("--save", is_flag=True, help="Write the effective settings to the vault data file")
@click.pass_context
def settings(ctx, save: bool):
    """Show the effective settings."""
    try:
        config = load_config(ctx.obj.get("vault"), ctx.obj.get("debug", False))
    except ValueError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)

    for key, value in config.to_dict().items():
        console.print(f"[cyan]{key}[/cyan]: {value}")

    if save:
        data_file = DataFile(config.data_file)
        data = data_file.load()
        data.update(config.to_dict())
        data_file.save(data)
        console.print(f"[green]Saved to {config.data_file}[/green]")


@cli.command()
@click.pass_context
def watch(ctx):
    """Sync on startup and then every sync interval until interrupted."""
    try:
        config = load_config(ctx.obj.get("vault"), ctx.obj.get("debug", False))
    except ValueError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)

    validation = validate_settings(config)
    if not validation.valid:
        for error in validation.errors:
            console.print(f"[red]{error.field}:[/red] {error.message}")
        sys.exit(1)

    engine = SyncEngine(config)
    triggers = SyncTriggers(engine, config, notifier=Notifier(config.show_notifications))

    triggers.init_startup_sync()
    triggers.start_auto_sync()
    triggers.notify_ready()

    console.print(
        f"[bold blue]Watching {config.repository}:{config.source_path or '/'} "
        f"every {config.sync_interval} min. Press Ctrl+C to stop.[/bold blue]"
    )

    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        triggers.shutdown()
        console.print("\n[yellow]Stopped.[/yellow]")
        sys.exit(130)


@cli.command()
def version():
    """Show version information."""
    console.print(f"GitHub → Vault Inbox Sync v{__version__}")


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
