"""Rate limiter for HTTP requests."""

import asyncio
import math
import time

from beartype import beartype

_MINUTE_MS = 60_000


def _now_ms() -> float:
    return time.monotonic() * 1000


@beartype
def interval_for(per_minute: int | float) -> int:
    """Minimum spacing in milliseconds for a requests-per-minute quota.

    The quota is floored and clamped to at least one request per minute.
    Non-finite values are treated as the minimum quota.
    """
    if not math.isfinite(per_minute):
        return _MINUTE_MS
    safe = max(1, math.floor(per_minute))
    return math.ceil(_MINUTE_MS / safe)


class RateLimiter:
    """Enforce a minimum interval between requests to honour a per-minute quota."""

    @beartype
    def __init__(self, per_minute: int | float = 60) -> None:
        """Initialize rate limiter.

        Args:
            per_minute: Allowed requests per minute.
        """
        self._min_interval_ms = interval_for(per_minute)
        self._next_at_ms = 0.0

    @property
    def min_interval_ms(self) -> int:
        """Current spacing between granted turns, in milliseconds."""
        return self._min_interval_ms

    @property
    def next_allowed_at_ms(self) -> float:
        """Earliest monotonic timestamp (ms) at which the next turn is granted."""
        return self._next_at_ms

    @beartype
    def configure(self, per_minute: int | float) -> None:
        """Change the quota for subsequent turns.

        Non-positive or non-finite values are ignored. Turns that are already
        waiting keep the slot they were given.
        """
        if not math.isfinite(per_minute) or per_minute <= 0:
            return
        self._min_interval_ms = interval_for(per_minute)

    async def wait_turn(self) -> None:
        """Wait until the next request may be sent."""
        now = _now_ms()
        # Reserve the slot before suspending so overlapping callers queue up
        # in call order instead of sharing one slot.
        slot = max(self._next_at_ms, now)
        self._next_at_ms = slot + self._min_interval_ms
        wait_ms = slot - now
        if wait_ms > 0:
            await asyncio.sleep(wait_ms / 1000)

    async def __aenter__(self) -> "RateLimiter":
        """Context manager entry."""
        await self.wait_turn()
        return self

    @beartype
    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        pass
