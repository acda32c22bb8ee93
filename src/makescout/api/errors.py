"""Error type raised for failed Make API requests."""

import math

from beartype import beartype

TIMEOUT_STATUS = 408
RATE_LIMITED_STATUS = 429
AUTH_STATUSES = frozenset({401, 403})


class MakeApiError(Exception):
    """A failed Make API request.

    Every failure carries the HTTP ``status`` it maps to, so callers branch
    on that field instead of on exception subclasses:

    * 408: the request did not complete within the configured timeout.
    * 429: the server kept rate limiting until the attempt budget ran out.
    * 401/403: the token is missing, invalid, or lacks scopes.
    * anything else: the status the server responded with.
    """

    @beartype
    def __init__(
        self,
        message: str,
        *,
        status: int,
        url: str,
        body_text: str | None = None,
        retry_after_ms: int | float | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.url = url
        self.body_text = body_text
        self.retry_after_ms = retry_after_ms

    @property
    def is_timeout(self) -> bool:
        return self.status == TIMEOUT_STATUS

    @property
    def is_rate_limited(self) -> bool:
        return self.status == RATE_LIMITED_STATUS

    @property
    def is_auth_error(self) -> bool:
        return self.status in AUTH_STATUSES

    def __repr__(self) -> str:
        return f"MakeApiError(status={self.status}, url={self.url!r}, message={self.message!r})"


@beartype
def describe_error(err: BaseException, fallback_title: str = "Request failed") -> tuple[str, str]:
    """Turn an exception into a (title, message) pair for the user.

    Args:
        err: The exception raised while talking to the Make API.
        fallback_title: Title used when the error has no dedicated wording.

    Returns:
        Title and message to display.
    """
    if isinstance(err, MakeApiError):
        if err.is_timeout:
            return "Request timed out", "Please try again."
        if err.is_auth_error:
            return (
                "Make API auth failed",
                "Check your API token + scopes (MAKESCOUT_API_TOKEN).",
            )
        if err.is_rate_limited:
            if err.retry_after_ms and err.retry_after_ms > 0:
                seconds = math.ceil(err.retry_after_ms / 1000)
                return "Make API rate limit hit", f"Retry after ~{seconds}s"
            return "Make API rate limit hit", "Please try again shortly."
    return fallback_title, str(err)
