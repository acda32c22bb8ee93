"""Operations usage summary for the selected team."""

import calendar
import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from beartype import beartype

from makescout.models.make import ScenarioConsumption

MIN_OPERATIONS_DAYS = 1
MAX_OPERATIONS_DAYS = 30
TREND_TOLERANCE = 0.05  # Keeps the verdict from flip-flopping near the boundary

_LEADING_INT_RE = re.compile(r"^[+-]?\d+")


@dataclass(frozen=True)
class UsageSummary:
    """Operations consumed since the last license reset."""

    total_operations: int
    avg_daily_operations: int | None = None
    reset_in_days: int | None = None


@beartype
def clamp_operations_days(value: str | None, fallback: int = 7) -> int:
    """Parse a day count and clamp it to 1-30, using ``fallback`` when unparseable."""
    match = _LEADING_INT_RE.match((value or "").strip())
    if not match:
        return fallback
    return min(MAX_OPERATIONS_DAYS, max(MIN_OPERATIONS_DAYS, int(match.group())))


@beartype
def add_months(when: datetime, months: int) -> datetime:
    """Shift ``when`` by whole months, clamping the day to the target month's end."""
    index = when.month - 1 + months
    year = when.year + index // 12
    month = index % 12 + 1
    day = min(when.day, calendar.monthrange(year, month)[1])
    return when.replace(year=year, month=month, day=day)


@beartype
def next_reset(last_reset: datetime, restart_period: str | None) -> datetime:
    """When the operations counter resets next: yearly for annual licenses, else monthly."""
    period = (restart_period or "monthly").lower()
    return add_months(last_reset, 12 if period == "annual" else 1)


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


@beartype
def summarize_usage(
    consumptions: list[ScenarioConsumption],
    last_reset: datetime | None,
    restart_period: str | None,
    now: datetime,
) -> UsageSummary:
    """Summarize operations use for the current license period.

    Args:
        consumptions: Per-scenario consumption since the last reset.
        last_reset: When the counter was last reset, if known.
        restart_period: License period name.
        now: Current time.

    Returns:
        Total operations, plus daily average and days until reset when the
        last reset is known.
    """
    total = sum(c.operations for c in consumptions)
    if last_reset is None:
        return UsageSummary(total_operations=total)

    # Naive timestamps are UTC
    last_reset = _as_utc(last_reset)
    now = _as_utc(now)
    day = timedelta(days=1)
    elapsed_days = max(1, math.ceil((now - last_reset) / day))
    remaining_days = max(0, math.ceil((next_reset(last_reset, restart_period) - now) / day))
    return UsageSummary(
        total_operations=total,
        avg_daily_operations=round(total / elapsed_days),
        reset_in_days=remaining_days,
    )


@beartype
def trend_text(
    operations_limit: int | None,
    total_used: int | None,
    reset_in_days: int | None,
    avg_daily: int | None,
) -> str | None:
    """Compare the daily burn rate against what the remaining quota allows."""
    if None in (operations_limit, total_used, reset_in_days, avg_daily):
        return None

    ops_left = max(0, operations_limit - total_used)
    days_left = max(0, reset_in_days)
    if days_left == 0:
        return None

    required_avg = ops_left / days_left
    over = avg_daily > required_avg * (1 + TREND_TOLERANCE)

    if required_avg <= 0:
        return "Trend: OVER" if over else "Trend: ON TRACK"

    if over:
        return f"Trend: OVER by {round(abs(avg_daily - required_avg)):,}/day"
    return f"Trend: ON TRACK (≈{round(required_avg):,}/day)"
