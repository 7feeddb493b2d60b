"""
Error types raised by the sync system.

Configuration problems are detected before any network call. Remote API
failures carry the HTTP status so the retry logic can classify them.
"""

from typing import Optional


class InboxSyncError(Exception):
    """Base class for all sync errors."""


class ConfigurationError(InboxSyncError, ValueError):
    """Invalid or missing configuration (bad repository, path, interval...)."""


class GitHubAPIError(InboxSyncError):
    """An unsuccessful response from the GitHub API."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(message)
        self.status = status
        self.retry_after = retry_after


class AuthenticationError(GitHubAPIError):
    """Token is invalid or lacks access (401)."""


class NotFoundError(GitHubAPIError):
    """Repository, branch or path does not exist (404)."""


class RateLimitError(GitHubAPIError):
    """GitHub rate limit hit (429, or 403 with an exhausted quota)."""


class NetworkError(InboxSyncError):
    """Transport-level failure: connection refused, DNS, timeout."""
