"""Service for choosing the organization/team and managing favorites."""

import logging
from datetime import datetime, timedelta, timezone

from beartype import beartype

from makescout.api.client import MakeClient
from makescout.api.errors import MakeApiError
from makescout.config import Settings, get_settings
from makescout.models.make import (
    Organization,
    OrganizationEnvelope,
    OrganizationsPage,
    Team,
    TeamsPage,
)
from makescout.models.state import Selection
from makescout.storage.state_store import StateStore

logger = logging.getLogger(__name__)

_LIST_ALL = {
    "pg[limit]": 10000,
    "pg[sortBy]": "name",
    "pg[sortDir]": "asc",
}


class WorkspaceService:
    """Organizations, teams, the stored selection and favorites."""

    @beartype
    def __init__(
        self,
        client: MakeClient,
        store: StateStore | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize workspace service.

        Args:
            client: An entered MakeClient.
            store: Local state store. Defaults to the configured state file.
            settings: Application settings. Uses defaults if not provided.
        """
        self._client = client
        self._settings = settings or get_settings()
        self._store = store or StateStore(self._settings.state_file)

    async def list_organizations(self) -> list[Organization]:
        data = await self._client.get_json("/api/v2/organizations", _LIST_ALL)
        return OrganizationsPage.model_validate(data).organizations

    async def list_teams(self, organization_id: int) -> list[Team]:
        data = await self._client.get_json(
            "/api/v2/teams", {"organizationId": organization_id, **_LIST_ALL}
        )
        return TeamsPage.model_validate(data).teams

    async def get_organization(self, organization_id: int) -> Organization:
        data = await self._client.get_json(f"/api/v2/organizations/{organization_id}")
        return OrganizationEnvelope.model_validate(data).organization

    @beartype
    def select(self, organization: Organization, team: Team) -> Selection:
        """Store a new organization/team selection.

        Cached license data is dropped since it belongs to the previous
        organization.
        """
        selection = Selection(
            organization_id=organization.id,
            organization_name=organization.name,
            team_id=team.id,
            team_name=team.name,
        )
        self._store.set_selection(selection)
        logger.info("Selected team %s (%d) in %s", team.name, team.id, organization.name)
        return selection

    async def select_by_id(self, organization_id: int, team_id: int) -> Selection:
        """Look up an organization and one of its teams, then select them.

        Raises:
            ValueError: If the team does not belong to the organization.
        """
        organization = await self.get_organization(organization_id)
        teams = await self.list_teams(organization_id)
        team = next((t for t in teams if t.id == team_id), None)
        if team is None:
            msg = f"Team {team_id} not found in organization {organization_id}"
            raise ValueError(msg)
        return self.select(organization, team)

    @beartype
    def get_selection(self) -> Selection | None:
        return self._store.get_selection()

    async def ensure_rate_limit(
        self,
        selection: Selection,
        now: datetime | None = None,
    ) -> Selection:
        """Apply the organization's API limit to the client.

        The default limit is applied first. A cached limit younger than the
        configured TTL is reused; otherwise the organization's license is
        fetched and the refreshed selection is stored. If that fetch fails
        the default limit stays in place.

        Args:
            selection: Current selection.
            now: Current time, for tests.

        Returns:
            The selection, refreshed if the license was fetched.
        """
        now = now or datetime.now(timezone.utc)
        ttl = timedelta(hours=self._settings.rate_limit_ttl_hours)
        self._client.set_rate_limit_per_minute(self._settings.default_rate_limit_per_minute)

        if selection.has_fresh_api_limit(now, ttl) and selection.api_limit_per_minute:
            self._client.set_rate_limit_per_minute(selection.api_limit_per_minute)
            return selection

        try:
            organization = await self.get_organization(selection.organization_id)
        except MakeApiError as e:
            logger.warning(
                "Could not load license for organization %d (status %d), "
                "keeping default rate limit",
                selection.organization_id,
                e.status,
            )
            return selection

        license_ = organization.license
        api_limit = license_.api_limit if license_ else None
        operations = license_.operations if license_ else None
        period = license_.restart_period if license_ else None

        updated = selection.model_copy(
            update={
                "api_limit_per_minute": api_limit
                if api_limit is not None and api_limit > 0
                else selection.api_limit_per_minute,
                "api_limit_fetched_at": now,
                "operations_limit": operations
                if operations is not None
                else selection.operations_limit,
                "restart_period": period if period is not None else selection.restart_period,
            }
        )

        if updated.api_limit_per_minute is not None and updated.api_limit_per_minute > 0:
            self._client.set_rate_limit_per_minute(updated.api_limit_per_minute)
            logger.debug("Rate limit set to %d/min", updated.api_limit_per_minute)

        self._store.set_selection(updated)
        return updated

    @beartype
    def list_favorites(self) -> list[int]:
        return self._store.get_favorites()

    @beartype
    def is_favorite(self, scenario_id: int) -> bool:
        return self._store.is_favorite(scenario_id)

    @beartype
    def toggle_favorite(self, scenario_id: int) -> bool:
        """Add or remove a favorite.

        Returns:
            True if the scenario is a favorite afterwards.
        """
        if self._store.is_favorite(scenario_id):
            self._store.remove_favorite(scenario_id)
            return False
        self._store.add_favorite(scenario_id)
        return True
