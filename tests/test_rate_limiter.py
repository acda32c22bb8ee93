"""Tests for rate limiter."""

import asyncio
import time

import pytest

from makescout.utils.rate_limiter import RateLimiter, interval_for


class TestIntervalFor:
    """Tests for the per-minute to interval conversion."""

    def test_sixty_per_minute_is_one_second(self) -> None:
        assert interval_for(60) == 1000

    def test_interval_rounds_up(self) -> None:
        # 60000 / 7 = 8571.43
        assert interval_for(7) == 8572

    def test_fraction_is_floored_and_clamped_to_one(self) -> None:
        assert interval_for(0.5) == 60_000
        assert interval_for(2.9) == 30_000

    def test_non_finite_falls_back_to_minimum_quota(self) -> None:
        assert interval_for(float("nan")) == 60_000
        assert interval_for(float("inf")) == 60_000


class TestRateLimiter:
    """Tests for RateLimiter."""

    @pytest.mark.asyncio
    async def test_first_turn_immediate(self) -> None:
        """Test that the first turn is granted right away."""
        limiter = RateLimiter(per_minute=600)

        start = time.monotonic()
        await limiter.wait_turn()
        elapsed = time.monotonic() - start

        assert elapsed < 0.05

    @pytest.mark.asyncio
    async def test_enforces_minimum_interval(self) -> None:
        """Test that two immediate turns are spaced by the interval."""
        limiter = RateLimiter(per_minute=1200)  # 50ms

        await limiter.wait_turn()
        start = time.monotonic()
        await limiter.wait_turn()
        elapsed = time.monotonic() - start

        assert elapsed >= 0.045  # Small tolerance
        assert elapsed < 0.5

    @pytest.mark.asyncio
    async def test_next_allowed_never_decreases(self) -> None:
        limiter = RateLimiter(per_minute=6000)  # 10ms
        seen: list[float] = []

        for _ in range(4):
            await limiter.wait_turn()
            seen.append(limiter.next_allowed_at_ms)

        assert seen == sorted(seen)
        for earlier, later in zip(seen, seen[1:], strict=False):
            assert later - earlier >= 10

    @pytest.mark.asyncio
    async def test_concurrent_turns_are_spaced(self) -> None:
        """Test overlapping callers each get their own slot."""
        limiter = RateLimiter(per_minute=1200)
        results: list[float] = []

        async def take_turn() -> None:
            await limiter.wait_turn()
            results.append(time.monotonic())

        await asyncio.gather(take_turn(), take_turn(), take_turn())

        assert len(results) == 3
        results.sort()
        for i in range(1, len(results)):
            assert results[i] - results[i - 1] >= 0.04

    @pytest.mark.asyncio
    async def test_no_wait_after_idle_period(self) -> None:
        """Test that a turn after a long pause is immediate."""
        limiter = RateLimiter(per_minute=1200)

        await limiter.wait_turn()
        await asyncio.sleep(0.1)

        start = time.monotonic()
        await limiter.wait_turn()
        elapsed = time.monotonic() - start

        assert elapsed < 0.02

    @pytest.mark.asyncio
    async def test_context_manager(self) -> None:
        limiter = RateLimiter(per_minute=1200)

        async with limiter:
            pass

        start = time.monotonic()
        async with limiter:
            pass
        elapsed = time.monotonic() - start

        assert elapsed >= 0.045

    @pytest.mark.asyncio
    async def test_independent_limiters(self) -> None:
        """Test that two limiters share no state."""
        limiter1 = RateLimiter(per_minute=60)
        limiter2 = RateLimiter(per_minute=60)

        await limiter1.wait_turn()

        start = time.monotonic()
        await limiter2.wait_turn()
        elapsed = time.monotonic() - start

        assert elapsed < 0.02

    def test_default_quota(self) -> None:
        assert RateLimiter().min_interval_ms == 1000

    def test_configure_recomputes_interval(self) -> None:
        limiter = RateLimiter(per_minute=60)

        limiter.configure(120)

        assert limiter.min_interval_ms == 500

    @pytest.mark.parametrize("value", [0, -5, float("nan"), float("inf"), float("-inf")])
    def test_configure_ignores_invalid_values(self, value: float) -> None:
        limiter = RateLimiter(per_minute=120)

        limiter.configure(value)

        assert limiter.min_interval_ms == 500

    def test_configure_clamps_small_fraction(self) -> None:
        limiter = RateLimiter(per_minute=120)

        limiter.configure(0.2)

        assert limiter.min_interval_ms == 60_000

    @pytest.mark.asyncio
    async def test_configure_keeps_already_reserved_slot(self) -> None:
        limiter = RateLimiter(per_minute=1200)
        await limiter.wait_turn()
        reserved = limiter.next_allowed_at_ms

        limiter.configure(1)

        assert limiter.next_allowed_at_ms == reserved
