"""JSON file storage for favorites and the selected workspace."""

import logging
from pathlib import Path

from beartype import beartype

from makescout.models.state import LocalState, Selection

logger = logging.getLogger(__name__)


class StateStore:
    """Read and write local state as a single JSON file."""

    @beartype
    def __init__(self, path: Path | None = None) -> None:
        """Initialize state store.

        Args:
            path: Path to the state file. Defaults to makescout.json.
        """
        self._path = path or Path("makescout.json")

    @property
    def path(self) -> Path:
        return self._path

    @beartype
    def load(self) -> LocalState:
        """Load state from disk (empty if the file doesn't exist)."""
        return LocalState.from_file(self._path)

    @beartype
    def save(self, state: LocalState) -> None:
        """Write state to disk, replacing the previous file."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        state.save(self._path)
        logger.debug("Saved state to %s", self._path)

    @beartype
    def get_selection(self) -> Selection | None:
        return self.load().selection

    @beartype
    def set_selection(self, selection: Selection) -> None:
        self.save(self.load().with_selection(selection))

    @beartype
    def clear_selection(self) -> None:
        self.save(self.load().with_selection(None))

    @beartype
    def get_favorites(self) -> list[int]:
        return list(self.load().favorites)

    @beartype
    def is_favorite(self, scenario_id: int) -> bool:
        return self.load().is_favorite(scenario_id)

    @beartype
    def add_favorite(self, scenario_id: int) -> list[int]:
        """Add a scenario to favorites.

        Returns:
            The updated favorites.
        """
        state = self.load().add_favorite(scenario_id)
        self.save(state)
        return list(state.favorites)

    @beartype
    def remove_favorite(self, scenario_id: int) -> list[int]:
        """Remove a scenario from favorites.

        Returns:
            The updated favorites.
        """
        state = self.load().remove_favorite(scenario_id)
        self.save(state)
        return list(state.favorites)
