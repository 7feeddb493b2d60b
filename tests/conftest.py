"""Shared test fixtures for inbox sync."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock

import pytest
import requests

from inbox_sync.config import Config
from inbox_sync.file_store import FileStore
from inbox_sync.github_api import GitHubAPI, RemoteFile
from inbox_sync.state import DataFile, SyncLedger
from inbox_sync.vault import FileSystemVault

if TYPE_CHECKING:
    from pathlib import Path

ENV_VARS = (
    "GITHUB_TOKEN",
    "GITHUB_REPOSITORY",
    "GITHUB_BRANCH",
    "SOURCE_PATH",
    "TARGET_PATH",
    "VAULT_PATH",
    "SYNC_ON_STARTUP",
    "STARTUP_SYNC_DELAY",
    "AUTO_SYNC",
    "SYNC_INTERVAL",
    "DUPLICATE_HANDLING",
    "DELETE_AFTER_SYNC",
    "MOVE_TO_PROCESSED",
    "SHOW_NOTIFICATIONS",
    "FILE_EXTENSIONS",
    "DEBUG",
)

TEST_TOKEN = "ghp_" + "x" * 36


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep the developer's environment out of the tests."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # No stray .env file gets picked up
    monkeypatch.chdir(tmp_path)


def make_response(
    status: int = 200,
    json_data: Any = None,
    text: str | None = None,
    headers: dict[str, str] | None = None,
) -> requests.Response:
    """Build a real requests.Response."""
    response = requests.Response()
    response.status_code = status
    if json_data is not None:
        response._content = json.dumps(json_data).encode("utf-8")
        response.headers["Content-Type"] = "application/json"
    else:
        response._content = (text or "").encode("utf-8")
    response.encoding = "utf-8"
    for key, value in (headers or {}).items():
        response.headers[key] = value
    return response


def remote_file(name: str, sha: str, folder: str = "inbox") -> RemoteFile:
    path = f"{folder}/{name}" if folder else name
    return RemoteFile(name=name, path=path, sha=sha, size=10, download_url="")


@pytest.fixture
def vault_dir(tmp_path: Path) -> Path:
    path = tmp_path / "vault"
    path.mkdir()
    return path


@pytest.fixture
def config(vault_dir: Path) -> Config:
    return Config(
        github_token=TEST_TOKEN,
        repository="octocat/notes",
        vault_path=vault_dir,
    )


@pytest.fixture
def session() -> MagicMock:
    return MagicMock(spec=requests.Session)


@pytest.fixture
def api(config: Config, session: MagicMock) -> GitHubAPI:
    return GitHubAPI(config, session=session, sleep=lambda _seconds: None)


@pytest.fixture
def vault(vault_dir: Path) -> FileSystemVault:
    return FileSystemVault(vault_dir)


@pytest.fixture
def file_store(vault: FileSystemVault) -> FileStore:
    return FileStore(vault, "inbox")


@pytest.fixture
def ledger(config: Config) -> SyncLedger:
    ledger = SyncLedger(DataFile(config.data_file))
    ledger.load()
    return ledger
