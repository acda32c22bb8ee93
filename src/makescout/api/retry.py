"""Retry policy for rate limited requests.

The three concerns of the retry loop live in separate functions so each can
be exercised on its own: how many attempts are allowed (``RetryPolicy``),
which responses are retried (``is_retryable_status``), and how long to wait
before the next attempt (``parse_retry_after_ms`` / ``backoff_delay_ms``).
"""

import math
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

from beartype import beartype

from makescout.api.errors import RATE_LIMITED_STATUS

BASE_BACKOFF_MS = 250
MAX_JITTER_MS = 250


@beartype
def is_retryable_status(status: int) -> bool:
    """Only a 429 signals a throttle worth retrying automatically."""
    return status == RATE_LIMITED_STATUS


@beartype
def parse_retry_after_ms(value: str | None, now: datetime | None = None) -> float | None:
    """Parse a ``Retry-After`` header into milliseconds.

    Args:
        value: Raw header value, either delay-seconds or an HTTP date.
        now: Reference time for HTTP dates. Defaults to the current UTC time.

    Returns:
        Delay in milliseconds (never negative), or None if the header is
        missing or unparseable.
    """
    if value is None:
        return None
    trimmed = value.strip()
    if not trimmed:
        return None

    try:
        seconds = float(trimmed)
    except ValueError:
        seconds = None
    if seconds is not None and math.isfinite(seconds * 1000):
        return max(0.0, seconds * 1000)

    try:
        when = parsedate_to_datetime(trimmed)
    except (TypeError, ValueError):
        try:
            when = datetime.fromisoformat(trimmed)
        except ValueError:
            return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    reference = now or datetime.now(timezone.utc)
    return max(0.0, (when - reference).total_seconds() * 1000)


@beartype
def backoff_delay_ms(attempt: int, rng: random.Random | None = None) -> int:
    """Exponential backoff with jitter for the given 1-based attempt.

    attempt 1 -> 250-499ms, attempt 2 -> 500-749ms, attempt 3 -> 1000-1249ms.
    """
    jitter = (rng or random).randrange(MAX_JITTER_MS)
    return BASE_BACKOFF_MS * 2 ** (attempt - 1) + jitter


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and delay computation for one logical request."""

    max_attempts: int = 3
    rng: random.Random = field(default_factory=random.Random, compare=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            msg = f"max_attempts must be >= 1, got {self.max_attempts}"
            raise ValueError(msg)

    @beartype
    def should_retry(self, status: int, attempt: int) -> bool:
        """Whether a response with ``status`` on ``attempt`` gets another try."""
        return is_retryable_status(status) and attempt < self.max_attempts

    @beartype
    def delay_ms(self, attempt: int, retry_after: str | None = None) -> int | float:
        """Delay before the next attempt, preferring the server's Retry-After."""
        parsed = parse_retry_after_ms(retry_after)
        if parsed is not None:
            return parsed
        return backoff_delay_ms(attempt, self.rng)
