"""Service for browsing and controlling Make scenarios."""

import asyncio
import logging
from datetime import datetime

from beartype import beartype

from makescout.api.client import MakeClient
from makescout.api.errors import MakeApiError
from makescout.models.make import (
    ExecutionDetails,
    Hook,
    HookEnvelope,
    IncompleteExecution,
    IncompleteExecutionsPage,
    LogStatus,
    Scenario,
    ScenarioActivation,
    ScenarioActivationEnvelope,
    ScenarioConsumptions,
    ScenarioEnvelope,
    ScenarioLog,
    ScenarioLogEnvelope,
    ScenarioLogsPage,
    ScenariosPage,
    WebhookQueueItem,
    WebhookQueuePage,
)

logger = logging.getLogger(__name__)

SCENARIO_COLUMNS = (
    "id",
    "name",
    "teamId",
    "description",
    "isinvalid",
    "isActive",
    "islocked",
    "isPaused",
    "usedPackages",
    "lastEdit",
    "scheduling",
    "dlqCount",
    "createdByUser",
    "updatedByUser",
    "nextExec",
    "created",
)


class ScenarioService:
    """Scenario queries and actions on top of a MakeClient."""

    PAGE_SIZE = 200
    MAX_PAGES = 200  # Up to 40k scenarios
    LOGS_PAGE_SIZE = 50

    @beartype
    def __init__(self, client: MakeClient) -> None:
        """Initialize scenario service.

        Args:
            client: An entered MakeClient.
        """
        self._client = client

    async def list_scenarios(self, team_id: int) -> list[Scenario]:
        """Fetch every scenario of a team, newest first.

        Pages are requested until one comes back short or empty.
        """
        scenarios: list[Scenario] = []
        offset = 0

        for _ in range(self.MAX_PAGES):
            data = await self._client.get_json(
                "/api/v2/scenarios",
                {
                    "teamId": team_id,
                    "pg[limit]": self.PAGE_SIZE,
                    "pg[offset]": offset,
                    "pg[sortBy]": "id",
                    "pg[sortDir]": "desc",
                    "cols[]": list(SCENARIO_COLUMNS),
                },
            )
            page = ScenariosPage.model_validate(data).scenarios
            scenarios.extend(page)
            if len(page) < self.PAGE_SIZE:
                break
            offset += len(page)
        else:
            logger.warning(
                "Stopped paging scenarios of team %d after %d pages",
                team_id,
                self.MAX_PAGES,
            )

        return scenarios

    async def get_scenario(self, scenario_id: int) -> Scenario:
        data = await self._client.get_json(f"/api/v2/scenarios/{scenario_id}")
        return ScenarioEnvelope.model_validate(data).scenario

    async def get_scenarios(self, scenario_ids: list[int]) -> list[Scenario]:
        """Fetch several scenarios individually, skipping the ones that fail.

        Args:
            scenario_ids: Scenario IDs, e.g. the favorites.

        Returns:
            Scenarios that could be loaded, in the order of ``scenario_ids``.
        """
        results = await asyncio.gather(
            *(self.get_scenario(sid) for sid in scenario_ids),
            return_exceptions=True,
        )
        scenarios: list[Scenario] = []
        for scenario_id, result in zip(scenario_ids, results, strict=True):
            if isinstance(result, MakeApiError):
                logger.warning(
                    "Skipping scenario %d: %s (status %d)",
                    scenario_id,
                    result.message,
                    result.status,
                )
                continue
            if isinstance(result, BaseException):
                raise result
            scenarios.append(result)
        return scenarios

    async def start_scenario(self, scenario_id: int) -> ScenarioActivation:
        data = await self._client.post_json(f"/api/v2/scenarios/{scenario_id}/start")
        logger.info("Started scenario %d", scenario_id)
        return ScenarioActivationEnvelope.model_validate(data).scenario

    async def stop_scenario(self, scenario_id: int) -> ScenarioActivation:
        data = await self._client.post_json(f"/api/v2/scenarios/{scenario_id}/stop")
        logger.info("Stopped scenario %d", scenario_id)
        return ScenarioActivationEnvelope.model_validate(data).scenario

    async def list_consumptions(self, team_id: int) -> ScenarioConsumptions:
        """Operations and transfer per scenario since the last license reset."""
        data = await self._client.get_json(
            "/api/v2/scenarios/consumptions", {"teamId": team_id}
        )
        return ScenarioConsumptions.model_validate(data)

    async def list_logs(
        self,
        scenario_id: int,
        status: LogStatus | None = None,
        since: datetime | None = None,
        offset: int = 0,
    ) -> list[ScenarioLog]:
        """Fetch one page of a scenario's execution logs, newest first.

        Args:
            scenario_id: Scenario to inspect.
            status: Only return executions with this outcome.
            since: Only return executions after this time.
            offset: Pagination offset.

        Returns:
            Up to LOGS_PAGE_SIZE log entries.
        """
        data = await self._client.get_json(
            f"/api/v2/scenarios/{scenario_id}/logs",
            {
                "showCheckRuns": True,
                "from": int(since.timestamp() * 1000) if since else None,
                "status": int(status) if status is not None else None,
                "pg[limit]": self.LOGS_PAGE_SIZE,
                "pg[offset]": offset,
                "pg[sortBy]": "imtId",
                "pg[sortDir]": "desc",
            },
        )
        return ScenarioLogsPage.model_validate(data).scenario_logs

    async def get_execution(
        self, scenario_id: int, execution_id: str
    ) -> tuple[ScenarioLog | None, ExecutionDetails]:
        """Fetch the log entry and the execution details of one run."""
        log_data, details_data = await asyncio.gather(
            self._client.get_json(f"/api/v2/scenarios/{scenario_id}/logs/{execution_id}"),
            self._client.get_json(
                f"/api/v2/scenarios/{scenario_id}/executions/{execution_id}"
            ),
        )
        return (
            ScenarioLogEnvelope.model_validate(log_data).scenario_log,
            ExecutionDetails.model_validate(details_data),
        )

    async def list_incomplete_executions(
        self, scenario_id: int
    ) -> list[IncompleteExecution]:
        data = await self._client.get_json("/api/v2/dlqs", {"scenarioId": scenario_id})
        return IncompleteExecutionsPage.model_validate(data).dlqs

    async def get_hook(self, hook_id: int) -> Hook:
        data = await self._client.get_json(f"/api/v2/hooks/{hook_id}")
        return HookEnvelope.model_validate(data).hook

    async def list_webhook_queue(self, hook_id: int) -> list[WebhookQueueItem]:
        """Payloads waiting in a webhook's queue."""
        data = await self._client.get_json(f"/api/v2/hooks/{hook_id}/incomings")
        return WebhookQueuePage.model_validate(data).incomings
