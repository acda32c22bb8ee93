"""Make API resource models.

Field names are snake_case; the API's camelCase keys are accepted through
aliases. Unknown keys are ignored so new API fields do not break parsing.
"""

from datetime import datetime
from enum import Enum, IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MakeModel(BaseModel):
    """Base model for Make API payloads."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class Pagination(MakeModel):
    sort_by: str | None = None
    sort_dir: str | None = None
    limit: int | None = None
    offset: int | None = None


class UserRef(MakeModel):
    id: int
    name: str = ""
    email: str = ""


class License(MakeModel):
    """Organization license limits."""

    api_limit: int | None = Field(default=None, description="Requests per minute")
    operations: int | None = Field(default=None, description="Operations per period")
    restart_period: str | None = Field(
        default=None, description="When the operations counter resets"
    )


class Organization(MakeModel):
    id: int
    name: str
    timezone_id: int | None = None
    license: License | None = None


class Team(MakeModel):
    id: int
    name: str
    organization_id: int | None = None
    scenario_drafts: bool | None = None


class Scheduling(MakeModel):
    type: str | None = None
    interval: int | None = None
    date: str | None = None
    between: list[str] | None = None
    time: str | None = None
    days: list[int] | None = None
    months: list[int] | None = None


class Scenario(MakeModel):
    """A Make scenario."""

    id: int
    name: str
    team_id: int
    hook_id: int | None = None
    device_id: int | None = None
    concept: bool | None = None
    description: str | None = None
    folder_id: int | None = None
    isinvalid: bool | None = None
    islinked: bool | None = None
    is_active: bool = False
    islocked: bool | None = None
    is_paused: bool | None = None
    used_packages: list[str] = Field(default_factory=list)
    last_edit: datetime | None = None
    scheduling: Scheduling | None = None
    iswaiting: bool | None = None
    dlq_count: int | None = None
    created_by_user: UserRef | None = None
    updated_by_user: UserRef | None = None
    next_exec: datetime | None = None
    created: datetime | None = None
    type: str | None = None


class ScenarioConsumption(MakeModel):
    scenario_id: int
    operations: int = 0
    transfer: int = 0


class LogStatus(IntEnum):
    """Execution outcome as reported in scenario logs."""

    SUCCESS = 1
    WARNING = 2
    ERROR = 3


class ScenarioLog(MakeModel):
    """One entry of a scenario's execution history."""

    imt_id: str | None = None
    duration: int | None = Field(default=None, description="Duration in milliseconds")
    operations: int | None = None
    transfer: int | None = None
    centicredits: int | None = None
    organization_id: int | None = None
    team_id: int | None = None
    id: str | int | None = None
    execution_id: str | None = None
    execution_name: str | None = None
    type: str | None = None
    author_id: int | None = None
    instant: bool | None = None
    timestamp: datetime | None = None
    status: LogStatus | None = None

    @property
    def resolved_execution_id(self) -> str | None:
        """Execution id, which the API reports under either ``id`` or ``executionId``."""
        if self.execution_id:
            return self.execution_id
        if self.id is not None:
            return str(self.id)
        return None


class ExecutionStatus(str, Enum):
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"


class CauseModule(MakeModel):
    name: str | None = None
    app_name: str | None = None


class ExecutionError(MakeModel):
    name: str | None = None
    message: str | None = None
    cause_module: CauseModule | None = None


class ExecutionDetails(MakeModel):
    """Result of a single scenario execution."""

    status: ExecutionStatus
    outputs: dict[str, Any] | None = None
    error: ExecutionError | None = None


class IncompleteExecution(MakeModel):
    """An execution parked in the incomplete executions queue."""

    id: str
    scenario_id: int
    scenario_name: str | None = None
    company_id: int | None = None
    company_name: str | None = None
    team_id: int | None = None
    resolved: bool | None = None
    deleted: bool | None = None
    created: datetime | None = None
    reason: str | None = None


class Hook(MakeModel):
    """A webhook or mailhook attached to a scenario."""

    id: int
    name: str
    team_id: int | None = None
    scenario_id: int | None = None
    queue_count: int | None = None
    queue_limit: int | None = None
    url: str | None = None
    enabled: bool | None = None


class WebhookQueueItem(MakeModel):
    id: str
    hook_id: int | None = None
    date: datetime | None = None
    request_id: str | None = None


# Response envelopes


class OrganizationsPage(MakeModel):
    organizations: list[Organization] = Field(default_factory=list)
    pg: Pagination | None = None


class OrganizationEnvelope(MakeModel):
    organization: Organization


class TeamsPage(MakeModel):
    teams: list[Team] = Field(default_factory=list)
    pg: Pagination | None = None


class ScenariosPage(MakeModel):
    scenarios: list[Scenario] = Field(default_factory=list)
    pg: Pagination | None = None


class ScenarioEnvelope(MakeModel):
    scenario: Scenario


class ScenarioConsumptions(MakeModel):
    scenario_consumptions: list[ScenarioConsumption] = Field(default_factory=list)
    last_reset: datetime | None = None


class ScenarioLogsPage(MakeModel):
    scenario_logs: list[ScenarioLog] = Field(default_factory=list)
    pg: Pagination | None = None


class ScenarioLogEnvelope(MakeModel):
    scenario_log: ScenarioLog | None = None


class IncompleteExecutionsPage(MakeModel):
    dlqs: list[IncompleteExecution] = Field(default_factory=list)
    pg: Pagination | None = None


class HookEnvelope(MakeModel):
    hook: Hook


class WebhookQueuePage(MakeModel):
    incomings: list[WebhookQueueItem] = Field(default_factory=list)
    pg: Pagination | None = None


class ScenarioActivation(MakeModel):
    """Scenario state returned by the start and stop endpoints."""

    id: int
    is_active: bool
    islinked: bool | None = None


class ScenarioActivationEnvelope(MakeModel):
    scenario: ScenarioActivation
