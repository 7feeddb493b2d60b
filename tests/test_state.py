"""Tests for the sync ledger and data document."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from inbox_sync.state import (
    STATE_KEY,
    DataFile,
    SyncedFileRecord,
    SyncLedger,
    SyncRunRecord,
)

from tests.conftest import remote_file

if TYPE_CHECKING:
    from pathlib import Path


def _days_ago(days: int) -> str:
    return (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()


class TestRecordSync:
    def test_membership_by_hash(self, ledger: SyncLedger) -> None:
        file = remote_file("a.md", "sha-a")
        assert not ledger.is_already_synced("sha-a")

        ledger.record_sync(file, "inbox/a.md")

        assert ledger.is_already_synced("sha-a")
        record = ledger.state.synced_files["sha-a"]
        assert record.filename == "a.md"
        assert record.path == "inbox/a.md"
        assert record.local_path == "inbox/a.md"
        assert ledger.last_sync_time == record.synced_at

    def test_same_content_different_name_shares_key(self, ledger: SyncLedger) -> None:
        ledger.record_sync(remote_file("a.md", "same-sha"), "inbox/a.md")

        assert ledger.is_already_synced(remote_file("copy.md", "same-sha", "other").sha)
        assert ledger.synced_count == 1

    def test_skip_records_empty_local_path(self, ledger: SyncLedger) -> None:
        ledger.record_sync(remote_file("a.md", "sha-a"), "")

        assert ledger.is_already_synced("sha-a")
        assert ledger.state.synced_files["sha-a"].local_path == ""

    def test_upsert(self, ledger: SyncLedger) -> None:
        ledger.record_sync(remote_file("a.md", "sha-a"), "")
        ledger.record_sync(remote_file("a.md", "sha-a"), "inbox/a.md")

        assert ledger.synced_count == 1
        assert ledger.state.synced_files["sha-a"].local_path == "inbox/a.md"


class TestRunHistory:
    def test_most_recent_first_and_truncated(self, config) -> None:
        ledger = SyncLedger(DataFile(config.data_file), max_history=3)

        for n in range(5):
            ledger.add_sync_run_record(n, 0, [])

        assert [r.files_added for r in ledger.history] == [4, 3, 2]

    def test_errors_are_copied(self, ledger: SyncLedger) -> None:
        errors = ["a.md: boom"]
        record = ledger.add_sync_run_record(1, 2, errors)
        errors.append("later")

        assert record.errors == ["a.md: boom"]
        assert record.files_skipped == 2


class TestCleanup:
    def test_removes_expired_file_records(self, ledger: SyncLedger) -> None:
        ledger.state.synced_files["old"] = SyncedFileRecord("old.md", "inbox/old.md", _days_ago(91), "")
        ledger.state.synced_files["new"] = SyncedFileRecord("new.md", "inbox/new.md", _days_ago(1), "")

        removed = ledger.cleanup()

        assert removed == 1
        assert not ledger.is_already_synced("old")
        assert ledger.is_already_synced("new")

    def test_removes_expired_history(self, ledger: SyncLedger) -> None:
        ledger.state.sync_history = [
            SyncRunRecord(_days_ago(1), 1, 0, []),
            SyncRunRecord(_days_ago(100), 2, 0, []),
        ]

        ledger.cleanup()

        assert [r.files_added for r in ledger.history] == [1]

    def test_accepts_z_suffix_timestamps(self, ledger: SyncLedger) -> None:
        ledger.state.synced_files["js"] = SyncedFileRecord("a.md", "inbox/a.md", "2001-01-01T00:00:00.000Z", "")

        assert ledger.cleanup() == 1

    def test_keeps_unparseable_timestamps(self, ledger: SyncLedger) -> None:
        ledger.state.synced_files["odd"] = SyncedFileRecord("a.md", "inbox/a.md", "yesterday", "")

        assert ledger.cleanup() == 0
        assert ledger.is_already_synced("odd")


class TestPersistence:
    def test_mutations_are_not_persisted_until_save(self, config, ledger: SyncLedger) -> None:
        ledger.record_sync(remote_file("a.md", "sha-a"), "inbox/a.md")
        assert not config.data_file.exists()

        ledger.save()

        reloaded = SyncLedger(DataFile(config.data_file))
        reloaded.load()
        assert reloaded.is_already_synced("sha-a")
        assert reloaded.last_sync_time == ledger.last_sync_time

    def test_persisted_shape(self, config, ledger: SyncLedger) -> None:
        ledger.record_sync(remote_file("a.md", "sha-a"), "inbox/a.md")
        ledger.add_sync_run_record(1, 0, ["x"])
        ledger.save()

        data = json.loads(config.data_file.read_text())
        state = data[STATE_KEY]
        assert set(state) == {"lastSyncTime", "syncedFiles", "syncHistory"}
        assert set(state["syncedFiles"]["sha-a"]) == {"filename", "path", "syncedAt", "localPath"}
        assert state["syncHistory"][0]["filesAdded"] == 1
        assert state["syncHistory"][0]["errors"] == ["x"]

    def test_save_preserves_settings_keys(self, config, ledger: SyncLedger) -> None:
        DataFile(config.data_file).save({"repository": "octocat/notes"})

        ledger.save()

        data = json.loads(config.data_file.read_text())
        assert data["repository"] == "octocat/notes"
        assert STATE_KEY in data

    def test_reset_clears_and_persists(self, config, ledger: SyncLedger) -> None:
        ledger.record_sync(remote_file("a.md", "sha-a"), "inbox/a.md")
        ledger.add_sync_run_record(1, 0, [])
        ledger.save()

        ledger.reset()

        assert ledger.synced_count == 0
        assert ledger.history == []
        reloaded = SyncLedger(DataFile(config.data_file))
        reloaded.load()
        assert reloaded.synced_count == 0
        assert reloaded.last_sync_time is None

    def test_loads_camelcase_document(self, tmp_path: Path) -> None:
        path = tmp_path / "data.json"
        path.write_text(json.dumps({
            "repository": "octocat/notes",
            "syncState": {
                "lastSyncTime": "2024-01-15T10:30:00.000Z",
                "syncedFiles": {
                    "abc": {
                        "filename": "a.md",
                        "path": "inbox/a.md",
                        "syncedAt": "2024-01-15T10:30:00.000Z",
                        "localPath": "inbox/a.md",
                    }
                },
                "syncHistory": [
                    {"timestamp": "2024-01-15T10:30:00.000Z", "filesAdded": 1, "filesSkipped": 0, "errors": []}
                ],
            },
        }))

        ledger = SyncLedger(DataFile(path))
        ledger.load()

        assert ledger.is_already_synced("abc")
        assert ledger.history[0].files_added == 1
        assert ledger.oldest_record_date() == "2024-01-15T10:30:00.000Z"

    def test_corrupt_file_loads_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "data.json"
        path.write_text("{not json")

        ledger = SyncLedger(DataFile(path))
        ledger.load()

        assert ledger.synced_count == 0

    def test_missing_file_loads_empty(self, tmp_path: Path) -> None:
        ledger = SyncLedger(DataFile(tmp_path / "nope.json"))
        ledger.load()

        assert ledger.synced_count == 0
        assert ledger.last_sync_time is None
        assert ledger.oldest_record_date() is None
