"""
GitHub Contents API wrapper for the sync system.

Provides a clean interface to GitHub's REST API with:
- Client-side rate limiting
- Exponential backoff on transient failures
- Error classification (auth / not found / rate limit / server)
- Connection probes for interactive checks
"""

import base64
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional
from urllib.parse import quote

import requests
from ratelimit import limits, sleep_and_retry
from rich.console import Console

from .backoff import (
    DEFAULT_BACKOFF_CONFIG,
    BackoffConfig,
    get_retry_after_seconds,
    retry_with_backoff,
)
from .config import (
    GITHUB_API_BASE,
    GITHUB_API_VERSION,
    PROCESSED_FOLDER,
    REQUEST_TIMEOUT,
    Config,
    parse_repository,
)
from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    GitHubAPIError,
    InboxSyncError,
    NetworkError,
    NotFoundError,
    RateLimitError,
)

console = Console()

# Client-side throttle, well under GitHub's secondary rate limits
RATE_LIMIT_CALLS = 10
RATE_LIMIT_PERIOD = 1  # second

JSON_ACCEPT = "application/vnd.github+json"
RAW_ACCEPT = "application/vnd.github.raw+json"


@dataclass
class RemoteFile:
    """A candidate file in the remote source folder."""

    name: str
    path: str
    sha: str
    size: int
    download_url: str = ""

    @classmethod
    def from_api_response(cls, item: dict) -> "RemoteFile":
        """Create RemoteFile from a contents API entry."""
        return cls(
            name=item["name"],
            path=item["path"],
            sha=item["sha"],
            size=item.get("size", 0),
            download_url=item.get("download_url") or "",
        )


@dataclass
class ProbeResult:
    """Outcome of a single connectivity probe."""

    valid: bool
    value: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ConnectionTestResult:
    """Outcome of test_connection()."""

    success: bool
    error: Optional[str] = None
    user: Optional[str] = None
    repository: Optional[str] = None


class GitHubAPI:
    """
    Wrapper around the GitHub Contents API.

    Handles:
    - Authentication (bearer token + API version header)
    - Rate limiting and retries
    - Listing, downloading, deleting and relocating source files
    - Token / repository validation
    """

    def __init__(
        self,
        config: Config,
        session: Optional[requests.Session] = None,
        backoff: BackoffConfig = DEFAULT_BACKOFF_CONFIG,
        sleep: Callable[[float], Any] = time.sleep,
    ):
        """
        Initialize the GitHub API client.

        Args:
            config: Configuration instance with token and repository.
            session: Optional requests session (injected in tests).
            backoff: Retry schedule for transient failures.
            sleep: Sleep function used between retries.
        """
        self.config = config
        self.session = session or requests.Session()
        self.backoff = backoff
        self._sleep = sleep
        self._request_count = 0

    def update_config(self, config: Config) -> None:
        """Point the client at new settings."""
        self.config = config

    @sleep_and_retry
    @limits(calls=RATE_LIMIT_CALLS, period=RATE_LIMIT_PERIOD)
    def _rate_limited_call(self, func, *args, **kwargs) -> Any:
        """Execute a rate-limited API call."""
        self._request_count += 1
        return func(*args, **kwargs)

    def _headers(self, accept: str = JSON_ACCEPT) -> dict[str, str]:
        return {
            "Accept": accept,
            "Authorization": f"Bearer {self.config.github_token}",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    def _repo_url(self, path: str = "") -> str:
        """
        Build a repository URL.

        Raises:
            ConfigurationError: If the repository identifier is malformed.
        """
        owner, repo = parse_repository(self.config.repository)
        url = f"{GITHUB_API_BASE}/repos/{owner}/{repo}"
        if path:
            url += "/" + path
        return url

    def _contents_url(self, path: str) -> str:
        path = path.strip("/")
        if not path:
            return self._repo_url("contents")
        return self._repo_url("contents/" + quote(path))

    def _request(
        self,
        method: str,
        url: str,
        accept: str = JSON_ACCEPT,
        **kwargs,
    ) -> requests.Response:
        """
        Perform one HTTP request and raise a classified error on failure.

        Raises:
            NetworkError: On connection failures and timeouts.
            GitHubAPIError: (or a subclass) on non-2xx responses.
        """
        if self.config.debug:
            console.print(f"[dim]{method} {url}[/dim]")

        try:
            response = self._rate_limited_call(
                self.session.request,
                method,
                url,
                headers=self._headers(accept),
                timeout=REQUEST_TIMEOUT,
                **kwargs,
            )
        except requests.Timeout as e:
            raise NetworkError(f"Request timed out: {e}") from e
        except requests.ConnectionError as e:
            raise NetworkError(f"Network error: {e}") from e

        if response.status_code >= 400:
            raise self._error_from_response(response)

        return response

    @staticmethod
    def _error_from_response(response: requests.Response) -> GitHubAPIError:
        """Map an error response onto the error taxonomy."""
        status = response.status_code
        try:
            payload = response.json()
            message = payload.get("message", "") if isinstance(payload, dict) else ""
        except ValueError:
            message = ""
        message = message or response.reason or "Request failed"
        text = f"GitHub API error {status}: {message}"
        retry_after = get_retry_after_seconds(response.headers)

        if status == 401:
            return AuthenticationError(text, status=status)
        if status == 404:
            return NotFoundError(text, status=status)
        if status == 429 or (
            status == 403
            and (
                response.headers.get("x-ratelimit-remaining") == "0"
                or "rate limit" in message.lower()
            )
        ):
            return RateLimitError(text, status=status, retry_after=retry_after)

        return GitHubAPIError(text, status=status, retry_after=retry_after)

    def _with_retry(self, operation: Callable[[], Any]) -> Any:
        return retry_with_backoff(operation, self.backoff, sleep=self._sleep)

    def matches_extension(self, name: str) -> bool:
        """Check a filename against the configured extension allow-list."""
        lower = name.lower()
        return any(lower.endswith(ext.lower()) for ext in self.config.file_extensions)

    def list_files(self) -> list[RemoteFile]:
        """
        List candidate files in the configured source folder.

        Returns:
            Files whose name matches a configured extension. Empty when
            the folder does not exist or is empty.
        """
        url = self._contents_url(self.config.source_path or "")
        params = {"ref": self.config.branch}

        try:
            response = self._with_retry(lambda: self._request("GET", url, params=params))
        except NotFoundError:
            if self.config.debug:
                console.print(f"[dim]Source path not found: {self.config.source_path}[/dim]")
            return []

        try:
            items = response.json()
        except ValueError:
            return []

        # A single file or an empty body is not a folder listing
        if not isinstance(items, list):
            return []

        return [
            RemoteFile.from_api_response(item)
            for item in items
            if item.get("type") == "file" and self.matches_extension(item.get("name", ""))
        ]

    def download_content(self, file: RemoteFile) -> str:
        """
        Download the raw text of a file at the configured branch.

        Args:
            file: File to download.

        Returns:
            File content decoded as UTF-8.
        """
        url = self._contents_url(file.path)
        params = {"ref": self.config.branch}

        response = self._with_retry(
            lambda: self._request("GET", url, accept=RAW_ACCEPT, params=params)
        )
        response.encoding = "utf-8"
        return response.text

    def delete_file(self, file: RemoteFile) -> None:
        """
        Delete a file from the repository.

        The file's sha is sent as a precondition; GitHub rejects the
        delete if the file changed since it was listed.
        """
        url = self._contents_url(file.path)
        body = {
            "message": f"Synced to vault: {file.name}",
            "sha": file.sha,
            "branch": self.config.branch,
        }

        self._with_retry(lambda: self._request("DELETE", url, json=body))

    def processed_path(self, file: RemoteFile) -> str:
        """
        Compute where a file goes after processing.

        The last segment of the source folder is replaced by the
        processed folder; the filename is preserved.

        Examples:
            inbox/note.md -> processed/note.md
            notes/inbox/note.md -> notes/processed/note.md
        """
        parts = [p for p in (self.config.source_path or "").split("/") if p]
        if parts:
            parts.pop()
        parts.append(PROCESSED_FOLDER)
        parts.append(file.name)
        return "/".join(parts)

    def move_to_processed(self, file: RemoteFile, content: str) -> None:
        """
        Relocate a file to the processed folder.

        Creates the file at the new path, then deletes the original.
        Not atomic: if the delete fails the file exists in both places.

        Args:
            file: File to move.
            content: Its already-downloaded content.
        """
        new_path = self.processed_path(file)
        url = self._contents_url(new_path)
        body = {
            "message": f"Moved to processed: {file.name}",
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": self.config.branch,
        }

        self._with_retry(lambda: self._request("PUT", url, json=body))
        self.delete_file(file)

    def validate_token(self) -> ProbeResult:
        """Check that the token authenticates. Not retried."""
        try:
            response = self._request("GET", f"{GITHUB_API_BASE}/user")
            return ProbeResult(valid=True, value=response.json().get("login"))
        except AuthenticationError:
            return ProbeResult(valid=False, error="GitHub token is invalid")
        except (InboxSyncError, ValueError) as e:
            return ProbeResult(valid=False, error=f"Token validation failed: {e}")

    def validate_repository(self) -> ProbeResult:
        """Check that the repository exists and is reachable. Not retried."""
        try:
            response = self._request("GET", self._repo_url())
            return ProbeResult(valid=True, value=response.json().get("full_name"))
        except ConfigurationError as e:
            return ProbeResult(valid=False, error=str(e))
        except NotFoundError:
            return ProbeResult(
                valid=False,
                error="Repository not found or access denied",
            )
        except (InboxSyncError, ValueError) as e:
            return ProbeResult(valid=False, error=f"Repository validation failed: {e}")

    def test_connection(self) -> ConnectionTestResult:
        """Validate token, then repository."""
        token = self.validate_token()
        if not token.valid:
            return ConnectionTestResult(success=False, error=token.error)

        repo = self.validate_repository()
        if not repo.valid:
            return ConnectionTestResult(success=False, error=repo.error, user=token.value)

        return ConnectionTestResult(success=True, user=token.value, repository=repo.value)

    @property
    def request_count(self) -> int:
        """Number of API requests made."""
        return self._request_count
