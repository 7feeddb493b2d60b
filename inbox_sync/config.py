"""
Configuration management for GitHub → Vault inbox sync.

Loads settings from the persisted data document and environment
variables, and validates them before any network call is made.
"""

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError

# API
GITHUB_API_BASE = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
REQUEST_TIMEOUT = 30  # seconds

# Sync
MIN_SYNC_INTERVAL_MINUTES = 1
MAX_SYNC_INTERVAL_MINUTES = 60
DEFAULT_SYNC_INTERVAL_MINUTES = 5

# State management
MAX_SYNC_HISTORY = 100
SYNC_RECORD_RETENTION_DAYS = 90

# Startup sync
MIN_STARTUP_SYNC_DELAY_SECONDS = 1
MAX_STARTUP_SYNC_DELAY_SECONDS = 30
DEFAULT_STARTUP_SYNC_DELAY_SECONDS = 3
READY_FALLBACK_TIMEOUT_SECONDS = 30

# File processing
PROCESSED_FOLDER = "processed"
SUPPORTED_EXTENSIONS = (".md",)

REPOSITORY_PATTERN = re.compile(r"^[a-zA-Z0-9_.-]+/[a-zA-Z0-9_.-]+$")


class DuplicateHandling(Enum):
    """What to do when a same-named local file already exists."""
    SKIP = "skip"
    OVERWRITE = "overwrite"
    RENAME = "rename"


@dataclass
class ValidationError:
    """A single invalid setting."""

    field: str
    message: str


@dataclass
class ValidationResult:
    """Outcome of validate_settings()."""

    errors: list[ValidationError] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return len(self.errors) == 0


# Persisted (camelCase) key -> Config attribute. The token is never persisted.
PERSISTED_KEYS = {
    "repository": "repository",
    "branch": "branch",
    "sourcePath": "source_path",
    "targetPath": "target_path",
    "syncOnStartup": "sync_on_startup",
    "startupSyncDelay": "startup_sync_delay",
    "autoSync": "auto_sync",
    "syncInterval": "sync_interval",
    "duplicateHandling": "duplicate_handling",
    "deleteAfterSync": "delete_after_sync",
    "moveToProcessed": "move_to_processed",
    "showNotifications": "show_notifications",
}


@dataclass
class Config:
    """
    Central configuration for the sync system.

    Secrets (the GitHub token) come from environment variables only.
    Everything else may also come from the persisted data document.
    """

    # GitHub settings
    github_token: str = ""
    repository: str = ""
    branch: str = "main"

    # Paths
    source_path: str = "inbox"
    target_path: str = "inbox"
    vault_path: Path = field(default_factory=lambda: Path.cwd())

    # Triggers
    sync_on_startup: bool = True
    startup_sync_delay: int = DEFAULT_STARTUP_SYNC_DELAY_SECONDS
    auto_sync: bool = True
    sync_interval: int = DEFAULT_SYNC_INTERVAL_MINUTES

    # File handling
    duplicate_handling: DuplicateHandling = DuplicateHandling.SKIP
    delete_after_sync: bool = False
    move_to_processed: bool = True
    file_extensions: tuple[str, ...] = SUPPORTED_EXTENSIONS

    # Output
    show_notifications: bool = True
    debug: bool = False

    @property
    def sync_dir(self) -> Path:
        """Path to the .inbox-sync directory inside the vault."""
        return self.vault_path / ".inbox-sync"

    @property
    def data_file(self) -> Path:
        """Path to the persisted data document (settings + sync state)."""
        return self.sync_dir / "data.json"

    @property
    def owner(self) -> str:
        return parse_repository(self.repository)[0]

    @property
    def repo(self) -> str:
        return parse_repository(self.repository)[1]

    @classmethod
    def from_env(
        cls,
        env_file: Optional[Path] = None,
        data: Optional[dict[str, Any]] = None,
        vault_path: Optional[Path] = None,
        require_credentials: bool = True,
    ) -> "Config":
        """
        Load configuration.

        Precedence (lowest to highest): defaults, persisted data
        document, environment variables.

        Args:
            env_file: Optional path to .env file. If not provided,
                     looks for .env in current directory.
            data: Persisted data document (camelCase keys).
            vault_path: Vault directory; overrides VAULT_PATH.
            require_credentials: Whether a missing token or repository
                is an error. Local-only commands pass False.

        Returns:
            Configured Config instance.

        Raises:
            ConfigurationError: If the token or repository is missing.
        """
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        config = cls()
        if data:
            config.apply_dict(data)

        vault_path = vault_path or os.getenv("VAULT_PATH")
        if vault_path:
            config.vault_path = Path(vault_path)

        config.github_token = os.getenv("GITHUB_TOKEN", config.github_token)
        config.repository = os.getenv("GITHUB_REPOSITORY", config.repository).strip()
        config.branch = os.getenv("GITHUB_BRANCH", config.branch)
        config.source_path = os.getenv("SOURCE_PATH", config.source_path)
        config.target_path = os.getenv("TARGET_PATH", config.target_path)

        config.sync_on_startup = _env_bool("SYNC_ON_STARTUP", config.sync_on_startup)
        config.startup_sync_delay = _env_int("STARTUP_SYNC_DELAY", config.startup_sync_delay)
        config.auto_sync = _env_bool("AUTO_SYNC", config.auto_sync)
        config.sync_interval = _env_int("SYNC_INTERVAL", config.sync_interval)

        handling = os.getenv("DUPLICATE_HANDLING")
        if handling:
            config.duplicate_handling = _parse_handling(handling)

        config.move_to_processed = _env_bool("MOVE_TO_PROCESSED", config.move_to_processed)
        config.set_delete_after_sync(_env_bool("DELETE_AFTER_SYNC", config.delete_after_sync))

        extensions = os.getenv("FILE_EXTENSIONS")
        if extensions:
            config.file_extensions = parse_extensions(extensions)

        config.show_notifications = _env_bool("SHOW_NOTIFICATIONS", config.show_notifications)
        config.debug = _env_bool("DEBUG", config.debug)

        if not require_credentials:
            return config

        if not config.github_token:
            raise ConfigurationError(
                "GITHUB_TOKEN environment variable is required.\n"
                "Create a token at https://github.com/settings/tokens"
            )

        if not config.repository:
            raise ConfigurationError(
                "GITHUB_REPOSITORY environment variable is required.\n"
                "Use the owner/repo form, e.g. octocat/notes."
            )

        return config

    def apply_dict(self, data: dict[str, Any]) -> None:
        """Overlay persisted settings onto this config."""
        for key, attr in PERSISTED_KEYS.items():
            if key not in data:
                continue
            value = data[key]
            if attr == "duplicate_handling":
                value = _parse_handling(value)
            setattr(self, attr, value)

        if self.delete_after_sync:
            self.move_to_processed = False

    def to_dict(self) -> dict[str, Any]:
        """Serialize non-secret settings for the data document."""
        data = {}
        for key, attr in PERSISTED_KEYS.items():
            value = getattr(self, attr)
            if isinstance(value, DuplicateHandling):
                value = value.value
            data[key] = value
        return data

    def set_delete_after_sync(self, enabled: bool) -> None:
        """Deleting and moving are exclusive; enabling delete turns move off."""
        self.delete_after_sync = enabled
        if enabled:
            self.move_to_processed = False

    def set_move_to_processed(self, enabled: bool) -> None:
        self.move_to_processed = enabled
        if enabled:
            self.delete_after_sync = False

    def __post_init__(self):
        """Normalize field types after initialization."""
        if isinstance(self.vault_path, str):
            self.vault_path = Path(self.vault_path)
        if isinstance(self.duplicate_handling, str):
            self.duplicate_handling = _parse_handling(self.duplicate_handling)
        if self.delete_after_sync:
            self.move_to_processed = False


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def _parse_handling(value: Any) -> DuplicateHandling:
    if isinstance(value, DuplicateHandling):
        return value
    try:
        return DuplicateHandling(str(value).strip().lower())
    except ValueError:
        choices = ", ".join(h.value for h in DuplicateHandling)
        raise ConfigurationError(
            f"Invalid duplicate handling {value!r} (expected one of: {choices})"
        )


def parse_extensions(value: str) -> tuple[str, ...]:
    """
    Parse a comma-separated extension list.

    Examples:
        ".md" -> (".md",)
        "md, .markdown" -> (".md", ".markdown")
    """
    extensions = []
    for part in value.split(","):
        part = part.strip().lower()
        if not part:
            continue
        if not part.startswith("."):
            part = "." + part
        extensions.append(part)
    return tuple(extensions) or SUPPORTED_EXTENSIONS


def is_valid_repository(repository: str) -> bool:
    """Check the owner/repo form."""
    if not repository or not repository.strip():
        return False
    return bool(REPOSITORY_PATTERN.match(repository.strip()))


def parse_repository(repository: str) -> tuple[str, str]:
    """
    Split an owner/repo identifier.

    Raises:
        ConfigurationError: If the identifier is malformed.
    """
    if not is_valid_repository(repository):
        raise ConfigurationError(f"Invalid repository format: {repository!r}")
    owner, repo = repository.strip().split("/")
    return owner, repo


def is_valid_token_format(token: str) -> bool:
    """
    Basic token shape check; real validity needs an API call.

    Accepts classic (ghp_) and fine-grained (github_pat_) tokens,
    or any string of at least 40 characters.
    """
    if not token or not token.strip():
        return False
    token = token.strip()
    return token.startswith("ghp_") or token.startswith("github_pat_") or len(token) >= 40


def is_valid_sync_interval(interval: Any) -> bool:
    return (
        isinstance(interval, int)
        and not isinstance(interval, bool)
        and MIN_SYNC_INTERVAL_MINUTES <= interval <= MAX_SYNC_INTERVAL_MINUTES
    )


def is_valid_startup_sync_delay(delay: Any) -> bool:
    return (
        isinstance(delay, int)
        and not isinstance(delay, bool)
        and MIN_STARTUP_SYNC_DELAY_SECONDS <= delay <= MAX_STARTUP_SYNC_DELAY_SECONDS
    )


def is_valid_path(path: str) -> bool:
    """Relative, no parent references. Empty means the root."""
    if path == "":
        return True
    return not path.startswith("/") and ".." not in path


def validate_settings(config: Config) -> ValidationResult:
    """Validate every user-facing setting and collect all problems."""
    result = ValidationResult()

    if not config.github_token:
        result.errors.append(ValidationError("github_token", "GitHub token is required"))
    elif not is_valid_token_format(config.github_token):
        result.errors.append(ValidationError("github_token", "GitHub token format is invalid"))

    if not config.repository:
        result.errors.append(
            ValidationError("repository", "Repository is required (e.g. owner/repo)")
        )
    elif not is_valid_repository(config.repository):
        result.errors.append(
            ValidationError("repository", "Repository must be in owner/repo form")
        )

    if not config.branch or not config.branch.strip():
        result.errors.append(ValidationError("branch", "Branch is required"))

    if not is_valid_path(config.source_path):
        result.errors.append(ValidationError("source_path", "Source path is invalid"))

    if not is_valid_path(config.target_path):
        result.errors.append(ValidationError("target_path", "Target path is invalid"))

    if not is_valid_sync_interval(config.sync_interval):
        result.errors.append(
            ValidationError(
                "sync_interval",
                f"Sync interval must be between {MIN_SYNC_INTERVAL_MINUTES} and "
                f"{MAX_SYNC_INTERVAL_MINUTES} minutes",
            )
        )

    if not is_valid_startup_sync_delay(config.startup_sync_delay):
        result.errors.append(
            ValidationError(
                "startup_sync_delay",
                f"Startup sync delay must be between {MIN_STARTUP_SYNC_DELAY_SECONDS} and "
                f"{MAX_STARTUP_SYNC_DELAY_SECONDS} seconds",
            )
        )

    return result
