"""
Local file handling for imported notes.

Builds vault paths under the target folder and applies the
duplicate-handling policy when a same-named note already exists.
"""

from datetime import datetime, timezone
from typing import Optional

from .config import DuplicateHandling
from .vault import Vault


class FileStore:
    """Writes imported notes into the target folder of a vault."""

    def __init__(self, vault: Vault, target_path: str):
        """
        Initialize the file store.

        Args:
            vault: Host storage primitives.
            target_path: Vault folder receiving imported notes ("" = root).
        """
        self.vault = vault
        self.target_path = target_path.strip("/")

    def update_target_path(self, target_path: str) -> None:
        self.target_path = target_path.strip("/")

    def ensure_target_folder(self) -> None:
        """Create the target folder if it does not exist."""
        if not self.target_path:
            return
        if not self.vault.exists(self.target_path):
            self.vault.create_folder(self.target_path)

    def get_file_path(self, filename: str) -> str:
        if self.target_path:
            return f"{self.target_path}/{filename}"
        return filename

    def file_exists(self, filename: str) -> bool:
        return self.vault.is_file(self.get_file_path(filename))

    @staticmethod
    def timestamped_filename(filename: str, now: Optional[datetime] = None) -> str:
        """
        Insert a filesystem-safe UTC timestamp before the extension.

        Examples:
            note.md -> note-2024-01-15T10-30-00.md
            README -> README-2024-01-15T10-30-00
        """
        now = now or datetime.now(timezone.utc)
        timestamp = now.strftime("%Y-%m-%dT%H-%M-%S")

        dot = filename.rfind(".")
        if dot <= 0:
            return f"{filename}-{timestamp}"

        return f"{filename[:dot]}-{timestamp}{filename[dot:]}"

    def _unused_path(self, filename: str) -> str:
        """Vault path for filename, numbered -1, -2, ... if already taken."""
        path = self.get_file_path(filename)
        dot = filename.rfind(".")
        stem, ext = (filename, "") if dot <= 0 else (filename[:dot], filename[dot:])

        counter = 1
        while self.vault.exists(path):
            path = self.get_file_path(f"{stem}-{counter}{ext}")
            counter += 1
        return path

    def create_file(self, filename: str, content: str) -> str:
        """Create a note and return its vault path."""
        self.ensure_target_folder()

        path = self.get_file_path(filename)
        self.vault.create(path, content)
        return path

    def handle_duplicate(
        self,
        filename: str,
        content: str,
        handling: DuplicateHandling,
    ) -> Optional[str]:
        """
        Write a note, resolving a clash with an existing file.

        Args:
            filename: Name of the note.
            content: Note content.
            handling: Policy applied when the file already exists.

        Returns:
            The vault path written, or None when the skip policy left
            an existing file alone.
        """
        self.ensure_target_folder()

        path = self.get_file_path(filename)
        if not self.vault.is_file(path):
            self.vault.create(path, content)
            return path

        if handling == DuplicateHandling.SKIP:
            return None

        if handling == DuplicateHandling.OVERWRITE:
            self.vault.modify(path, content)
            return path

        if handling == DuplicateHandling.RENAME:
            new_path = self._unused_path(self.timestamped_filename(filename))
            self.vault.create(new_path, content)
            return new_path

        raise ValueError(f"Unknown duplicate handling: {handling!r}")

    def read_file(self, filename: str) -> Optional[str]:
        path = self.get_file_path(filename)
        if self.vault.is_file(path):
            return self.vault.read(path)
        return None

    def delete_file(self, filename: str) -> bool:
        path = self.get_file_path(filename)
        if self.vault.is_file(path):
            self.vault.delete(path)
            return True
        return False
