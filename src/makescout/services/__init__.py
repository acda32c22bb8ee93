"""Business logic services."""

from makescout.services.scenario_service import ScenarioService
from makescout.services.workspace_service import WorkspaceService

__all__ = ["ScenarioService", "WorkspaceService"]
