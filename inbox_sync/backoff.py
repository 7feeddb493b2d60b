"""
Exponential backoff for GitHub API calls.

Provides:
- Delay calculation with optional jitter
- Retryable error classification
- Retry-After header parsing
- A retry loop wrapping any callable
"""

import math
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Mapping, Optional, TypeVar

import requests
from rich.console import Console
from rich.markup import escape

from .exceptions import RateLimitError

console = Console()

T = TypeVar("T")

RETRYABLE_MESSAGES = (
    "rate limit",
    "too many requests",
    "network",
    "timeout",
    "timed out",
    "connection",
)


@dataclass(frozen=True)
class BackoffConfig:
    """Retry schedule settings."""

    initial_delay_ms: int = 1000
    max_delay_ms: int = 60000
    max_retries: int = 5
    multiplier: float = 2
    jitter_factor: float = 0.1


DEFAULT_BACKOFF_CONFIG = BackoffConfig()


def calculate_delay(attempt: int, config: BackoffConfig = DEFAULT_BACKOFF_CONFIG) -> int:
    """
    Compute the wait before retrying after a failed attempt.

    Args:
        attempt: 0-indexed attempt number that just failed.
        config: Backoff settings.

    Returns:
        Delay in milliseconds.
    """
    exponential = config.initial_delay_ms * (config.multiplier ** attempt)
    capped = min(exponential, config.max_delay_ms)

    if config.jitter_factor and config.jitter_factor > 0:
        jitter = capped * config.jitter_factor * random.random()
        return int(capped + jitter)

    return int(capped)


def is_retryable_error(error: BaseException) -> bool:
    """Check whether an error is worth retrying."""
    if isinstance(error, (requests.ConnectionError, requests.Timeout)):
        return True

    if isinstance(error, RateLimitError):
        return True

    message = str(error).lower()
    if any(marker in message for marker in RETRYABLE_MESSAGES):
        return True

    status = getattr(error, "status", None)
    if isinstance(status, int):
        return status == 429 or 500 <= status <= 504

    return False


def get_retry_after_seconds(headers: Optional[Mapping[str, str]]) -> Optional[int]:
    """
    Parse a Retry-After header.

    Accepts either a number of seconds or an HTTP date.

    Returns:
        Non-negative seconds to wait, or None if absent/unparseable.
    """
    if not headers:
        return None

    retry_after = None
    for key, value in headers.items():
        if key.lower() == "retry-after":
            retry_after = value
            break

    if not retry_after:
        return None

    retry_after = retry_after.strip()
    if retry_after.isdigit():
        return int(retry_after)

    try:
        date = parsedate_to_datetime(retry_after)
    except (TypeError, ValueError):
        return None

    if date is None:
        return None
    if date.tzinfo is None:
        date = date.replace(tzinfo=timezone.utc)

    diff = (date - datetime.now(timezone.utc)).total_seconds()
    return max(0, math.ceil(diff))


def retry_with_backoff(
    operation: Callable[[], T],
    config: BackoffConfig = DEFAULT_BACKOFF_CONFIG,
    sleep: Callable[[float], Any] = time.sleep,
) -> T:
    """
    Run an operation, retrying transient failures with exponential backoff.

    Non-retryable errors propagate on the first occurrence. After
    max_retries attempts the last error propagates. When the error carries
    a server-provided ``retry_after`` it replaces the computed delay
    (still capped at max_delay_ms).

    Args:
        operation: Zero-argument callable to run.
        config: Backoff settings.
        sleep: Sleep function taking seconds.

    Returns:
        Whatever the operation returns.
    """
    for attempt in range(config.max_retries):
        try:
            return operation()
        except Exception as e:
            if not is_retryable_error(e):
                raise

            if attempt == config.max_retries - 1:
                raise

            retry_after = getattr(e, "retry_after", None)
            if retry_after is not None:
                delay_ms = min(retry_after * 1000, config.max_delay_ms)
            else:
                delay_ms = calculate_delay(attempt, config)

            console.print(
                f"[dim]Retry {attempt + 1}/{config.max_retries} in {delay_ms}ms: {escape(str(e))}[/dim]"
            )
            sleep(delay_ms / 1000)

    raise RuntimeError("Max retries exceeded")
