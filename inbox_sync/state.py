"""
Sync state (the ledger) and its persisted data document.

The ledger remembers, per remote content hash, which files were already
imported, plus a bounded history of past runs. Mutations are in-memory;
callers decide when to save().
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

from rich.console import Console

from .config import MAX_SYNC_HISTORY, SYNC_RECORD_RETENTION_DAYS
from .github_api import RemoteFile

console = Console()

STATE_KEY = "syncState"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_iso(value: str) -> datetime:
    """Parse an ISO timestamp, accepting a trailing Z and naive values as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class SyncedFileRecord:
    """An imported (or deliberately skipped) remote file."""

    filename: str
    path: str
    synced_at: str
    local_path: str

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "path": self.path,
            "syncedAt": self.synced_at,
            "localPath": self.local_path,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SyncedFileRecord":
        return cls(
            filename=data.get("filename", ""),
            path=data.get("path", ""),
            synced_at=data["syncedAt"],
            local_path=data.get("localPath", ""),
        )


@dataclass
class SyncRunRecord:
    """Summary of one completed sync run."""

    timestamp: str
    files_added: int
    files_skipped: int
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "filesAdded": self.files_added,
            "filesSkipped": self.files_skipped,
            "errors": list(self.errors),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SyncRunRecord":
        return cls(
            timestamp=data["timestamp"],
            files_added=data.get("filesAdded", 0),
            files_skipped=data.get("filesSkipped", 0),
            errors=list(data.get("errors", [])),
        )


@dataclass
class SyncState:
    """Overall sync state."""

    last_sync_time: Optional[str] = None
    synced_files: dict[str, SyncedFileRecord] = field(default_factory=dict)
    sync_history: list[SyncRunRecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "lastSyncTime": self.last_sync_time,
            "syncedFiles": {
                sha: record.to_dict() for sha, record in self.synced_files.items()
            },
            "syncHistory": [record.to_dict() for record in self.sync_history],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SyncState":
        """Create from dictionary."""
        return cls(
            last_sync_time=data.get("lastSyncTime"),
            synced_files={
                sha: SyncedFileRecord.from_dict(record)
                for sha, record in (data.get("syncedFiles") or {}).items()
            },
            sync_history=[
                SyncRunRecord.from_dict(record) for record in (data.get("syncHistory") or [])
            ],
        )


class DataFile:
    """
    The single JSON document holding settings and sync state.

    Each writer owns one top-level key and leaves the others untouched.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> dict[str, Any]:
        """Read the document; missing or unreadable files count as empty."""
        if not self.path.exists():
            return {}

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            console.print(f"[yellow]Warning: Could not load data file: {e}[/yellow]")
            return {}

        return data if isinstance(data, dict) else {}

    def save(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def update(self, key: str, value: Any) -> None:
        """Replace one top-level key, keeping the rest of the document."""
        data = self.load()
        data[key] = value
        self.save(data)


class SyncLedger:
    """
    Tracks which remote files have been imported.

    Keyed by the remote content hash (Git blob sha): identical content
    is imported once, whatever its name or path.
    """

    def __init__(
        self,
        data_file: DataFile,
        max_history: int = MAX_SYNC_HISTORY,
        retention_days: int = SYNC_RECORD_RETENTION_DAYS,
    ):
        """
        Initialize the ledger with empty state.

        Args:
            data_file: Persisted document the state lives in.
            max_history: Number of run records kept.
            retention_days: Age after which records are pruned by cleanup().
        """
        self.data_file = data_file
        self.max_history = max_history
        self.retention_days = retention_days
        self.state = SyncState()

    def load(self) -> None:
        """Load state from the data document, defaulting to empty."""
        data = self.data_file.load().get(STATE_KEY)
        if not isinstance(data, dict):
            self.state = SyncState()
            return

        try:
            self.state = SyncState.from_dict(data)
        except (KeyError, TypeError, AttributeError) as e:
            console.print(f"[yellow]Warning: Could not load sync state: {e}[/yellow]")
            self.state = SyncState()

    def save(self) -> None:
        self.data_file.update(STATE_KEY, self.state.to_dict())

    def is_already_synced(self, sha: str) -> bool:
        return sha in self.state.synced_files

    def record_sync(self, file: RemoteFile, local_path: str) -> None:
        """
        Remember a file as handled.

        Called with local_path="" when the duplicate policy skipped the
        write, so the same content is not downloaded again.
        """
        timestamp = now_iso()
        self.state.synced_files[file.sha] = SyncedFileRecord(
            filename=file.name,
            path=file.path,
            synced_at=timestamp,
            local_path=local_path,
        )
        self.state.last_sync_time = timestamp

    def add_sync_run_record(
        self,
        files_added: int,
        files_skipped: int,
        errors: list[str],
    ) -> SyncRunRecord:
        """Prepend a run summary, keeping the most recent max_history."""
        record = SyncRunRecord(
            timestamp=now_iso(),
            files_added=files_added,
            files_skipped=files_skipped,
            errors=list(errors),
        )
        self.state.sync_history.insert(0, record)
        del self.state.sync_history[self.max_history:]
        return record

    def cleanup(self) -> int:
        """
        Drop file records and run history older than the retention window.

        Returns:
            Number of file records removed.
        """
        cutoff = datetime.now(timezone.utc) - timedelta(days=self.retention_days)

        expired = [
            sha
            for sha, record in self.state.synced_files.items()
            if _is_older(record.synced_at, cutoff)
        ]
        for sha in expired:
            del self.state.synced_files[sha]

        self.state.sync_history = [
            record
            for record in self.state.sync_history
            if not _is_older(record.timestamp, cutoff)
        ]

        return len(expired)

    def reset(self) -> None:
        """Discard all state and persist immediately."""
        self.state = SyncState()
        self.save()

    @property
    def last_sync_time(self) -> Optional[str]:
        return self.state.last_sync_time

    @property
    def synced_count(self) -> int:
        return len(self.state.synced_files)

    @property
    def history(self) -> list[SyncRunRecord]:
        return self.state.sync_history

    def oldest_record_date(self) -> Optional[str]:
        """Timestamp of the oldest file record, if any."""
        records = list(self.state.synced_files.values())
        if not records:
            return None
        return min(records, key=lambda r: _sort_key(r.synced_at)).synced_at


def _is_older(timestamp: str, cutoff: datetime) -> bool:
    try:
        return parse_iso(timestamp) < cutoff
    except ValueError:
        # Unparseable timestamps are kept
        return False


def _sort_key(timestamp: str) -> datetime:
    try:
        return parse_iso(timestamp)
    except ValueError:
        return datetime.max.replace(tzinfo=timezone.utc)
