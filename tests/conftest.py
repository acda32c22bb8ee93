"""Pytest configuration and shared fixtures."""

import tempfile
from pathlib import Path

import pytest

from makescout.api.client import ClientConfig, MakeClient
from makescout.config import Settings

BASE_URL = "https://eu1.make.com"


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_settings(temp_dir: Path) -> Settings:
    """Create test settings with a temporary state file."""
    return Settings(
        base_url=BASE_URL,
        api_token="test-token",
        state_file=temp_dir / "state.json",
        timeout_ms=5_000,
    )


@pytest.fixture
def client_config() -> ClientConfig:
    """Client configuration pointing at the EU1 zone."""
    return ClientConfig(base_url=BASE_URL, authorization="test-token")


@pytest.fixture
def make_client(client_config: ClientConfig) -> MakeClient:
    """A client that still needs to be entered with ``async with``."""
    return MakeClient(client_config)


@pytest.fixture
def scenario_payload() -> dict:
    """Sample scenario as returned by the Make API."""
    return {
        "id": 101,
        "name": "Sync CRM contacts",
        "teamId": 7,
        "hookId": 55,
        "description": "Pushes new contacts to the CRM",
        "isinvalid": False,
        "isActive": True,
        "islocked": False,
        "isPaused": False,
        "usedPackages": ["gateway", "hubspotcrm"],
        "lastEdit": "2024-05-02T09:30:00.000Z",
        "scheduling": {"type": "indefinitely", "interval": 900},
        "dlqCount": 2,
        "createdByUser": {"id": 1, "name": "Ada", "email": "ada@example.com"},
        "nextExec": "2024-05-03T10:00:00.000Z",
        "created": "2024-01-10T08:00:00.000Z",
    }
