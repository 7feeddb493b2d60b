"""
Local note vault abstraction.

The sync engine never touches the filesystem directly; it goes through a
Vault. FileSystemVault is the implementation used by the command line:
vault paths are POSIX-style strings relative to a root directory.
"""

from pathlib import Path
from typing import Protocol


class Vault(Protocol):
    """Storage primitives provided by the host application."""

    def exists(self, path: str) -> bool: ...

    def is_file(self, path: str) -> bool: ...

    def create_folder(self, path: str) -> None: ...

    def create(self, path: str, content: str) -> None: ...

    def read(self, path: str) -> str: ...

    def modify(self, path: str, content: str) -> None: ...

    def delete(self, path: str) -> None: ...

    def list_folder(self, path: str) -> list[str]: ...


class FileSystemVault:
    """A vault backed by a directory on disk."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def _resolve(self, path: str) -> Path:
        """Resolve a vault path, refusing anything outside the root."""
        full = (self.root / path).resolve()
        if not full.is_relative_to(self.root.resolve()):
            raise ValueError(f"Path escapes the vault: {path}")
        return full

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def is_file(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def create_folder(self, path: str) -> None:
        self._resolve(path).mkdir(parents=True, exist_ok=True)

    def create(self, path: str, content: str) -> None:
        """Create a new file. Fails if it already exists."""
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "x", encoding="utf-8") as f:
            f.write(content)

    def read(self, path: str) -> str:
        with open(self._resolve(path), encoding="utf-8") as f:
            return f.read()

    def modify(self, path: str, content: str) -> None:
        target = self._resolve(path)
        if not target.is_file():
            raise FileNotFoundError(path)
        with open(target, "w", encoding="utf-8") as f:
            f.write(content)

    def delete(self, path: str) -> None:
        self._resolve(path).unlink()

    def list_folder(self, path: str) -> list[str]:
        """List vault paths of the direct children of a folder."""
        folder = self._resolve(path)
        if not folder.is_dir():
            return []
        root = self.root.resolve()
        return sorted(child.relative_to(root).as_posix() for child in folder.iterdir())
