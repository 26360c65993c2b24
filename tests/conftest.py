"""Shared pytest configuration and fixtures."""

from collections.abc import Generator
from typing import Any
from unittest.mock import patch

import pytest

from src.cachet.client import CachetIncident
from src.config import Settings, get_settings


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-e2e",
        action="store_true",
        default=False,
        help="Run e2e tests that hit a real Cachet (requires .env with valid credentials)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-e2e"):
        return
    skip_e2e = pytest.mark.skip(reason="Need --run-e2e flag to run")
    for item in items:
        if "e2e" in item.keywords:
            item.add_marker(skip_e2e)


@pytest.fixture(autouse=True)
def _no_dotenv(request: pytest.FixtureRequest) -> Generator[None]:
    """Block .env loading so tests that forget mock_settings fail locally, not just in CI.

    Sets Settings.model_config['env_file'] = None before each test (except e2e).
    Tests that use mock_settings bypass Settings() entirely, so this is transparent.
    Tests that forget mock_settings will hit a validation error on required fields.
    """
    if "e2e" in request.keywords:
        yield
        return

    get_settings.cache_clear()
    original = Settings.model_config.get("env_file")
    Settings.model_config["env_file"] = None

    try:
        yield
    finally:
        Settings.model_config["env_file"] = original
        get_settings.cache_clear()


@pytest.fixture
def mock_settings() -> Generator[Any]:
    """Provide fake settings so tests don't need a .env file.

    Patches get_settings at every import site so cached references are overridden.
    """
    fake_settings = type(
        "FakeSettings",
        (),
        {
            "cachet_url": "https://cachet.test",
            "cachet_api_key": "fake-cachet-token",
            "cachet_verify_ssl": False,
            "cachet_ca_cert": "",
            "prometheus_token": "",
            "label_name": "service",
            "squash_incident": True,
            "log_level": "info",
            "debug": False,
            "http_host": "127.0.0.1",
            "http_port": 8080,
        },
    )()
    with (
        patch("src.config.get_settings", return_value=fake_settings),
        patch("src.cachet.client.get_settings", return_value=fake_settings),
        patch("src.api.main.get_settings", return_value=fake_settings),
        patch("src.cli.get_settings", return_value=fake_settings),
    ):
        yield fake_settings


# ---------------------------------------------------------------------------
# In-memory Cachet
# ---------------------------------------------------------------------------


class FakeCachet:
    """In-memory stand-in for CachetClient that records every call.

    Incidents are kept per component, newest first, like the real search.
    """

    def __init__(self, components: dict[str, int] | None = None) -> None:
        self.components = dict(components or {})
        self.incidents: dict[int, list[CachetIncident]] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.fail_on: dict[str, Exception] = {}
        self.timestamps: tuple[str, str] = ("2024-01-01 10:00:00", "2024-01-01 10:42:00")
        self._next_id = 1

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise self.fail_on[operation]

    @property
    def mutations(self) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[0] in ("create_incident", "update_incident")]

    def add_incident(self, component_id: int, status: int) -> CachetIncident:
        incident: CachetIncident = {
            "id": self._next_id,
            "component_id": component_id,
            "status": status,
            "created_at": self.timestamps[0],
            "updated_at": self.timestamps[1],
        }
        self._next_id += 1
        self.incidents.setdefault(component_id, []).insert(0, incident)
        return incident

    async def list_components(self) -> dict[str, int]:
        self.calls.append(("list_components",))
        self._maybe_fail("list_components")
        return dict(self.components)

    async def search_incidents(self, component_id: int) -> list[CachetIncident]:
        self.calls.append(("search_incidents", component_id))
        self._maybe_fail("search_incidents")
        return list(self.incidents.get(component_id, []))

    async def create_incident(
        self, name: str, component_id: int, incident_status: int, component_status: int
    ) -> CachetIncident:
        self.calls.append(("create_incident", name, component_id, incident_status, component_status))
        self._maybe_fail("create_incident")
        return self.add_incident(component_id, incident_status)

    async def update_incident(
        self, name: str, component_id: int, incident_id: int, incident_status: int, message: str
    ) -> CachetIncident:
        self.calls.append(("update_incident", name, component_id, incident_id, incident_status, message))
        self._maybe_fail("update_incident")
        for incident in self.incidents.get(component_id, []):
            if incident["id"] == incident_id:
                incident["status"] = incident_status
                return incident
        return {}

    async def read_incident(self, incident_id: int) -> CachetIncident:
        self.calls.append(("read_incident", incident_id))
        self._maybe_fail("read_incident")
        for incidents in self.incidents.values():
            for incident in incidents:
                if incident["id"] == incident_id:
                    return incident
        return {}


@pytest.fixture
def cachet() -> FakeCachet:
    return FakeCachet({"api": 42, "db": 7})
