"""Filtering and ordering of scenarios for display."""

from dataclasses import dataclass
from enum import Enum

from beartype import beartype

from makescout.models.make import LogStatus, Scenario, ScenarioConsumption


class StatusFilter(str, Enum):
    """Which scenarios to show by activation state."""

    ALL = "all"
    LIVE = "live"
    DISABLED = "disabled"


class SortMode(str, Enum):
    """Scenario ordering."""

    OPS = "ops"
    NAME = "name"
    LAST_EDIT = "last-edit"


class LogFilter(str, Enum):
    """Execution log status filter."""

    ALL = "all"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"

    @property
    def api_status(self) -> LogStatus | None:
        """Status code the logs endpoint expects, None for no filtering."""
        return {
            LogFilter.SUCCESS: LogStatus.SUCCESS,
            LogFilter.WARNING: LogStatus.WARNING,
            LogFilter.ERROR: LogStatus.ERROR,
        }.get(self)


@dataclass(frozen=True)
class ScenarioRow:
    """A scenario paired with its operations count, if known."""

    scenario: Scenario
    operations: int | None = None


@dataclass(frozen=True)
class ScenarioListing:
    favorites: list[ScenarioRow]
    others: list[ScenarioRow]


def _sort_rows(rows: list[ScenarioRow], mode: SortMode) -> list[ScenarioRow]:
    if mode is SortMode.NAME:
        return sorted(rows, key=lambda r: r.scenario.name.casefold())
    if mode is SortMode.LAST_EDIT:
        return sorted(
            rows,
            key=lambda r: (
                r.scenario.last_edit.timestamp()
                if r.scenario.last_edit
                else float("-inf")
            ),
            reverse=True,
        )
    # Most operations first; unknown counts sink below zero
    return sorted(
        rows,
        key=lambda r: (
            -(r.operations if r.operations is not None else -1),
            r.scenario.name.casefold(),
        ),
    )


@beartype
def build_listing(
    scenarios: list[Scenario],
    consumptions: list[ScenarioConsumption],
    favorites: list[int],
    status: StatusFilter = StatusFilter.ALL,
    sort: SortMode = SortMode.OPS,
) -> ScenarioListing:
    """Filter, annotate and order scenarios, with favorites split out.

    Args:
        scenarios: Scenarios of the selected team.
        consumptions: Per-scenario operations counts.
        favorites: Favorite scenario IDs.
        status: Activation filter.
        sort: Ordering applied within each group.

    Returns:
        Favorite and non-favorite rows, each sorted by ``sort``.
    """
    ops_by_id = {c.scenario_id: c.operations for c in consumptions}
    favorite_ids = set(favorites)

    rows = [
        ScenarioRow(scenario=s, operations=ops_by_id.get(s.id))
        for s in scenarios
        if status is StatusFilter.ALL
        or (status is StatusFilter.LIVE) == s.is_active
    ]

    return ScenarioListing(
        favorites=_sort_rows([r for r in rows if r.scenario.id in favorite_ids], sort),
        others=_sort_rows([r for r in rows if r.scenario.id not in favorite_ids], sort),
    )
