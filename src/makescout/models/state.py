"""Locally persisted state: selected workspace and favorite scenarios."""

import json
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Self

from beartype import beartype
from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from pathlib import Path


class Selection(BaseModel):
    """The organization and team commands operate on."""

    model_config = ConfigDict(frozen=True)

    organization_id: int = Field(description="Make organization ID")
    organization_name: str = Field(default="", description="Organization name")
    team_id: int = Field(description="Make team ID")
    team_name: str = Field(default="", description="Team name")
    api_limit_per_minute: int | None = Field(
        default=None, description="API requests per minute from the org license"
    )
    api_limit_fetched_at: datetime | None = Field(
        default=None, description="When api_limit_per_minute was last refreshed"
    )
    operations_limit: int | None = Field(
        default=None, description="Operations allowed per license period"
    )
    restart_period: str | None = Field(
        default=None, description="License period, e.g. 'monthly' or 'annual'"
    )

    @beartype
    def has_fresh_api_limit(self, now: datetime, ttl: timedelta) -> bool:
        """Whether the cached API limit is set and younger than ``ttl``."""
        if self.api_limit_per_minute is None or self.api_limit_fetched_at is None:
            return False
        return now - self.api_limit_fetched_at < ttl


class LocalState(BaseModel):
    """Everything stored in the state file."""

    model_config = ConfigDict(frozen=True)

    favorites: list[int] = Field(
        default_factory=list, description="Favorite scenario IDs, in insertion order"
    )
    selection: Selection | None = Field(
        default=None, description="Selected organization and team"
    )

    @beartype
    def to_json(self) -> str:
        """Serialize state to a JSON string."""
        return self.model_dump_json(indent=2)

    @classmethod
    def from_json(cls, content: str) -> Self:
        """Parse state from a JSON string; empty content yields empty state."""
        if not content.strip():
            return cls()
        data = json.loads(content)
        if not isinstance(data, dict):
            msg = "Invalid state file: expected a JSON object"
            raise ValueError(msg)
        return cls.model_validate(data)

    @classmethod
    def from_file(cls, path: "Path") -> Self:
        """Load state from file, empty if it does not exist."""
        if not path.exists():
            return cls()
        return cls.from_json(path.read_text(encoding="utf-8"))

    def save(self, path: "Path") -> None:
        """Write state to file."""
        path.write_text(self.to_json(), encoding="utf-8")

    @beartype
    def is_favorite(self, scenario_id: int) -> bool:
        return scenario_id in self.favorites

    def add_favorite(self, scenario_id: int) -> Self:
        """Return new state with the scenario appended to favorites."""
        if scenario_id in self.favorites:
            return self
        return self.model_copy(update={"favorites": [*self.favorites, scenario_id]})

    def remove_favorite(self, scenario_id: int) -> Self:
        """Return new state without the scenario in favorites."""
        return self.model_copy(
            update={"favorites": [f for f in self.favorites if f != scenario_id]}
        )

    def with_selection(self, selection: Selection | None) -> Self:
        """Return new state with the selection replaced."""
        return self.model_copy(update={"selection": selection})
