"""Text formatting helpers for CLI output."""

import json
import math
from datetime import datetime
from typing import Any

from beartype import beartype

from makescout.models.make import LogStatus

MAX_JSON_CHARS = 30_000


@beartype
def format_duration_ms(ms: int | float | None) -> str:
    """Render a duration: milliseconds below one second, else seconds with one decimal."""
    if ms is None or not math.isfinite(ms):
        return "—"
    if ms < 1000:
        return f"{round(ms)}ms"
    return f"{ms / 1000:.1f}s"


@beartype
def format_datetime(value: datetime | None) -> str:
    if value is None:
        return "—"
    return value.strftime("%Y-%m-%d %H:%M")


@beartype
def status_label(status: LogStatus | None) -> str:
    if status is None:
        return "—"
    return status.name.capitalize()


@beartype
def json_block(value: Any, max_chars: int = MAX_JSON_CHARS) -> tuple[str, bool]:
    """Pretty-print ``value`` as JSON, cut at ``max_chars``.

    Returns:
        The text and whether it was truncated.
    """
    raw = json.dumps(value, indent=2, ensure_ascii=False, default=str)
    if len(raw) <= max_chars:
        return raw, False
    return raw[:max_chars] + "\n…", True
