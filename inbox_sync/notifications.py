"""
User-facing notification messages.
"""

from typing import Optional

from rich.console import Console
from rich.markup import escape


class MESSAGES:
    """Message formatters shown to the user."""

    @staticmethod
    def sync_success(count: int) -> str:
        if count > 0:
            return f"Synced {count} new note(s) from GitHub"
        return MESSAGES.sync_no_new_files()

    @staticmethod
    def sync_no_new_files() -> str:
        return "No new notes to sync"

    @staticmethod
    def sync_error(error: str) -> str:
        return f"Sync failed: {error}"

    @staticmethod
    def sync_in_progress() -> str:
        return "Sync is already in progress"

    @staticmethod
    def connection_success(user: str, repository: str) -> str:
        return f"Connected to {repository} as {user}"

    @staticmethod
    def connection_failed(error: str) -> str:
        return f"Connection failed: {error}"

    @staticmethod
    def history_cleared() -> str:
        return "Sync history has been reset"


class Notifier:
    """Prints notifications when they are enabled."""

    def __init__(self, enabled: bool = True, console: Optional[Console] = None):
        self.enabled = enabled
        self.console = console or Console()

    def info(self, message: str) -> None:
        if self.enabled:
            self.console.print(f"[cyan]🔔 {escape(message)}[/cyan]")

    def error(self, message: str) -> None:
        if self.enabled:
            self.console.print(f"[red]🔔 {escape(message)}[/red]")
