"""Data models for makescout."""

from makescout.models.make import Organization, Scenario, ScenarioLog, Team
from makescout.models.state import LocalState, Selection

__all__ = ["LocalState", "Organization", "Scenario", "ScenarioLog", "Selection", "Team"]
