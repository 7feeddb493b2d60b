"""
Main sync engine for GitHub → Vault synchronization.

Orchestrates:
- File discovery in the GitHub source folder
- Dedup against the ledger
- Download and local write (duplicate policy)
- Ledger bookkeeping
- Optional remote post-processing (delete / move to processed)
"""

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import Config
from .file_store import FileStore
from .github_api import GitHubAPI, RemoteFile
from .notifications import MESSAGES
from .state import DataFile, SyncLedger, parse_iso
from .vault import FileSystemVault

console = Console()


class SyncStatus(Enum):
    """Engine run state."""
    IDLE = "idle"
    RUNNING = "running"


class FileOutcome(Enum):
    """What happened to a single remote file."""
    ADDED = "added"
    SKIPPED = "skipped"


@dataclass
class SyncResult:
    """Result of a sync operation."""

    files_added: int = 0
    files_skipped: int = 0
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def success(self) -> bool:
        """Check if sync was successful."""
        return len(self.errors) == 0


class SyncEngine:
    """
    Main orchestrator for GitHub → Vault synchronization.

    Coordinates all components to perform the sync:
    1. List candidate files in the source folder
    2. Skip files whose content hash is already in the ledger
    3. Download and write the rest locally
    4. Record them in the ledger
    5. Delete or relocate them remotely, if configured
    6. Persist the ledger and the run summary

    One file failing never aborts the batch. At most one run is active
    at a time; further triggers are rejected, not queued.
    """

    def __init__(
        self,
        config: Config,
        github_api: Optional[GitHubAPI] = None,
        file_store: Optional[FileStore] = None,
        ledger: Optional[SyncLedger] = None,
    ):
        """
        Initialize sync engine.

        Args:
            config: Configuration instance.
            github_api: Remote client (built from config if omitted).
            file_store: Local store (built over the vault path if omitted).
            ledger: Sync ledger (loaded from the data file if omitted).
        """
        self.config = config
        self.github_api = github_api or GitHubAPI(config)
        self.file_store = file_store or FileStore(
            FileSystemVault(config.vault_path), config.target_path
        )
        if ledger is None:
            ledger = SyncLedger(DataFile(config.data_file))
            ledger.load()
        self.ledger = ledger

        self._status = SyncStatus.IDLE
        self._status_lock = threading.Lock()

    def update_config(self, config: Config) -> None:
        """Apply changed settings to the engine and its collaborators."""
        self.config = config
        self.github_api.update_config(config)
        self.file_store.update_target_path(config.target_path)

    @property
    def status_value(self) -> SyncStatus:
        return self._status

    def is_syncing(self) -> bool:
        return self._status is SyncStatus.RUNNING

    def _try_start(self) -> bool:
        """Move IDLE → RUNNING; False if a run is already active."""
        with self._status_lock:
            if self._status is SyncStatus.RUNNING:
                return False
            self._status = SyncStatus.RUNNING
            return True

    def _finish(self) -> None:
        with self._status_lock:
            self._status = SyncStatus.IDLE

    def sync(self) -> SyncResult:
        """
        Perform one synchronization run.

        Returns:
            SyncResult with counts, per-file errors and duration.
        """
        if not self._try_start():
            return SyncResult(errors=[MESSAGES.sync_in_progress()])

        start = time.monotonic()
        result = SyncResult()

        try:
            files = self.github_api.list_files()

            if not files:
                if self.config.debug:
                    console.print("[dim]No files found in the source folder.[/dim]")
                return result

            for file in files:
                try:
                    outcome = self._process_file(file)
                    if outcome is FileOutcome.ADDED:
                        result.files_added += 1
                    else:
                        result.files_skipped += 1
                except Exception as e:
                    console.print(f"[red]Failed to sync '{escape(file.name)}': {escape(str(e))}[/red]")
                    result.errors.append(f"{file.name}: {e}")

            self.ledger.save()
            self.ledger.add_sync_run_record(
                result.files_added,
                result.files_skipped,
                result.errors,
            )
            removed = self.ledger.cleanup()
            if removed and self.config.debug:
                console.print(f"[dim]Pruned {removed} expired ledger record(s)[/dim]")
            self.ledger.save()

            return result

        except Exception as e:
            console.print(f"[red]Sync failed: {escape(str(e))}[/red]")
            result.errors = [str(e)]
            return result

        finally:
            result.duration_ms = int((time.monotonic() - start) * 1000)
            self._finish()

    def _process_file(self, file: RemoteFile) -> FileOutcome:
        """
        Sync a single file.

        Args:
            file: Remote file to sync.

        Returns:
            ADDED if written locally, SKIPPED otherwise.
        """
        if self.ledger.is_already_synced(file.sha):
            if self.config.debug:
                console.print(f"[dim]Skipping {escape(file.name)} (already synced)[/dim]")
            return FileOutcome.SKIPPED

        content = self.github_api.download_content(file)

        local_path = self.file_store.handle_duplicate(
            file.name,
            content,
            self.config.duplicate_handling,
        )

        if local_path is None:
            # Remember it anyway so it is not downloaded on every run
            self.ledger.record_sync(file, "")
            console.print(f"[dim]Skipping {escape(file.name)} (exists locally)[/dim]")
            return FileOutcome.SKIPPED

        self.ledger.record_sync(file, local_path)
        console.print(f"[cyan]Synced:[/cyan] {escape(file.name)} → {escape(local_path)}")

        self._post_process(file, content)

        return FileOutcome.ADDED

    def _post_process(self, file: RemoteFile, content: str) -> None:
        """Delete or relocate the remote file. Failures are only reported."""
        try:
            if self.config.delete_after_sync:
                self.github_api.delete_file(file)
            elif self.config.move_to_processed:
                self.github_api.move_to_processed(file, content)
        except Exception as e:
            console.print(
                f"[yellow]Warning: Post-processing failed for {escape(file.name)}: "
                f"{escape(str(e))}[/yellow]"
            )

    def print_summary(self, result: SyncResult) -> None:
        """Print sync summary."""
        console.print("\n" + "=" * 50)
        console.print("[bold]Sync Summary[/bold]")
        console.print("=" * 50)

        table = Table(show_header=False, box=None)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="white")

        table.add_row("Files added", str(result.files_added))
        table.add_row("Files skipped", str(result.files_skipped))
        table.add_row("Errors", str(len(result.errors)))
        table.add_row("Duration", f"{result.duration_ms} ms")
        table.add_row("API requests", str(self.github_api.request_count))

        console.print(table)

        if result.errors:
            console.print("\n[red]Failed:[/red]")
            for error in result.errors:
                console.print(f"  - {escape(error)}")

        console.print("")

    def status(self) -> None:
        """Print current sync status."""
        console.print("\n[bold]Sync Status[/bold]\n")

        if not self.ledger.synced_count and not self.ledger.history:
            console.print("[yellow]No files have been synced yet.[/yellow]")
            console.print("Run 'python sync.py' to perform an initial sync.")
            return

        console.print(f"Synced files tracked: {self.ledger.synced_count}")

        oldest = self.ledger.oldest_record_date()
        if oldest:
            console.print(f"Oldest record: {_format_time(oldest)}")

        if self.ledger.last_sync_time:
            console.print(f"Last sync: {_format_time(self.ledger.last_sync_time)}")

        if self.ledger.history:
            table = Table(title="Recent Runs")
            table.add_column("Time", style="cyan")
            table.add_column("Added", style="green")
            table.add_column("Skipped", style="yellow")
            table.add_column("Errors", style="red")

            for record in self.ledger.history[:10]:
                table.add_row(
                    _format_time(record.timestamp),
                    str(record.files_added),
                    str(record.files_skipped),
                    str(len(record.errors)),
                )

            console.print(table)

    def reset(self, confirm: bool = False) -> bool:
        """
        Reset the ledger and run history.

        Local notes are left untouched; files still in the source folder
        will be imported again on the next run.

        Args:
            confirm: Whether to proceed without confirmation.

        Returns:
            True if the ledger was reset.
        """
        if not confirm:
            console.print("[yellow]This will forget every synced file and the run history.[/yellow]")
            response = input("Are you sure? (yes/no): ")
            if response.lower() != "yes":
                console.print("Aborted.")
                return False

        self.ledger.reset()
        console.print(f"[green]{MESSAGES.history_cleared()}.[/green]")
        return True


def _format_time(timestamp: str) -> str:
    try:
        return parse_iso(timestamp).strftime("%Y-%m-%d %H:%M UTC")
    except ValueError:
        return timestamp
