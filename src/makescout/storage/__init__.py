"""Storage backend for local state."""

from makescout.storage.state_store import StateStore

__all__ = ["StateStore"]
