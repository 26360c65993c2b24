"""Async client for the Cachet status page REST API (v1)."""

import logging
import ssl
import time
from typing import TypedDict

import httpx

from src.config import Settings, get_settings
from src.errors import AuthFailure, BackendUnavailable, BridgeError, NotFound
from src.observability.metrics import CACHET_CALL_DURATION, CACHET_ERRORS_TOTAL

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15
PING_TIMEOUT_SECONDS = 5.0
COMPONENTS_PER_PAGE = 100
MAX_COMPONENT_PAGES = 50


# --- Response TypedDicts ---


class CachetComponentEntry(TypedDict, total=False):
    id: int
    name: str
    description: str
    status: int
    group_id: int
    enabled: bool


class CachetIncident(TypedDict, total=False):
    id: int
    component_id: int
    name: str
    status: int
    message: str
    visible: int
    created_at: str
    updated_at: str


# --- SSL helper ---


def _cachet_ssl_verify(settings: Settings) -> ssl.SSLContext | bool:
    """Build the SSL verification parameter for httpx.

    If verify_ssl is True and a CA cert path is provided, returns an SSLContext.
    If verify_ssl is True with no cert, returns True (system CA bundle).
    """
    if not settings.cachet_verify_ssl:
        return False
    if settings.cachet_ca_cert:
        return ssl.create_default_context(cafile=settings.cachet_ca_cert)
    return True


def _incident_message(name: str, incident_status: int) -> str:
    state = "up" if incident_status == 1 else "down"
    return f"Prometheus flagged service {name} as {state}"


class CachetClient:
    """Thin wrapper around the Cachet endpoints the reconciler needs.

    Every call opens its own ``httpx.AsyncClient``; nothing is cached between
    calls so the component directory is always read fresh.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.base_url = f"{self.settings.cachet_url.rstrip('/')}/api/v1"

    def _headers(self) -> dict[str, str]:
        return {
            "X-Cachet-Token": self.settings.cachet_api_key,
            "Accept": "application/json",
        }

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        params: dict[str, str | int] | None = None,
        json: dict[str, object] | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> dict[str, object]:
        """Make an authenticated request and translate failures into BridgeErrors.

        Cachet wraps every response body in ``{"data": ...}`` (plus ``meta`` on lists).
        """
        url = f"{self.base_url}{path}"
        logger.debug("Cachet %s %s params=%s body=%s", method, url, params, json)
        start = time.monotonic()
        try:
            async with httpx.AsyncClient(
                timeout=timeout,
                verify=_cachet_ssl_verify(self.settings),
            ) as client:
                response = await client.request(method, url, headers=self._headers(), params=params, json=json)
                _ = response.raise_for_status()
                data: dict[str, object] = response.json()  # pyright: ignore[reportAny]
                return data
        except httpx.ConnectError as e:
            raise self._failed(BackendUnavailable(f"Cannot connect to Cachet at {self.settings.cachet_url}: {e}")) from e
        except httpx.TimeoutException as e:
            raise self._failed(
                BackendUnavailable(f"Cachet request timed out after {timeout}s: {e}")
            ) from e
        except httpx.TransportError as e:
            raise self._failed(BackendUnavailable(f"Cachet request failed: {type(e).__name__}: {e}")) from e
        except httpx.HTTPStatusError as e:
            code = e.response.status_code
            detail = f"Cachet API error: HTTP {code} - {e.response.text[:500]}"
            if code in (401, 403):
                raise self._failed(AuthFailure(detail)) from e
            if code == 404:
                raise self._failed(NotFound(detail)) from e
            raise self._failed(BackendUnavailable(detail)) from e
        except ValueError as e:
            raise self._failed(BackendUnavailable(f"Cachet returned invalid JSON: {e}")) from e
        finally:
            CACHET_CALL_DURATION.labels(operation=operation).observe(time.monotonic() - start)

    @staticmethod
    def _failed(error: BridgeError) -> BridgeError:
        CACHET_ERRORS_TOTAL.labels(kind=error.kind).inc()
        return error

    # --- Operations ---

    async def ping(self) -> bool:
        try:
            await self._request("ping", "GET", "/ping", timeout=PING_TIMEOUT_SECONDS)
        except BridgeError:
            return False
        return True

    async def list_components(self) -> dict[str, int]:
        """Return the component directory: component name -> component id.

        Follows Cachet's pagination until ``next_page`` is empty.
        """
        directory: dict[str, int] = {}
        page = 1
        while page <= MAX_COMPONENT_PAGES:
            body = await self._request(
                "list_components",
                "GET",
                "/components",
                params={"per_page": COMPONENTS_PER_PAGE, "page": page},
            )
            entries: list[CachetComponentEntry] = body.get("data") or []  # type: ignore[assignment]
            for entry in entries:
                name = entry.get("name")
                component_id = entry.get("id")
                if name is not None and component_id is not None:
                    directory[name] = int(component_id)

            meta = body.get("meta")
            pagination = meta.get("pagination", {}) if isinstance(meta, dict) else {}
            links = pagination.get("links", {}) if isinstance(pagination, dict) else {}
            if not entries or not (isinstance(links, dict) and links.get("next_page")):
                break
            page += 1

        logger.debug("Cachet component directory: %s", directory)
        return directory

    async def search_incidents(self, component_id: int) -> list[CachetIncident]:
        """List incidents attached to a component, newest first."""
        body = await self._request(
            "search_incidents",
            "GET",
            "/incidents",
            params={"component_id": component_id, "sort": "id", "order": "desc"},
        )
        incidents: list[CachetIncident] = body.get("data") or []  # type: ignore[assignment]
        return incidents

    async def create_incident(
        self,
        name: str,
        component_id: int,
        incident_status: int,
        component_status: int,
    ) -> CachetIncident:
        body = await self._request(
            "create_incident",
            "POST",
            "/incidents",
            json={
                "name": name,
                "message": _incident_message(name, incident_status),
                "status": incident_status,
                "visible": 1,
                "component_id": component_id,
                "component_status": component_status,
                "notify": False,
            },
        )
        incident: CachetIncident = body.get("data") or {}  # type: ignore[assignment]
        return incident

    async def update_incident(
        self,
        name: str,
        component_id: int,
        incident_id: int,
        incident_status: int,
        message: str,
    ) -> CachetIncident:
        # Resolved (1) doubles as "operational" for the component.
        body = await self._request(
            "update_incident",
            "PUT",
            f"/incidents/{incident_id}",
            json={
                "name": name,
                "message": message,
                "status": incident_status,
                "component_id": component_id,
                "component_status": incident_status,
            },
        )
        incident: CachetIncident = body.get("data") or {}  # type: ignore[assignment]
        return incident

    async def read_incident(self, incident_id: int) -> CachetIncident:
        body = await self._request("read_incident", "GET", f"/incidents/{incident_id}")
        incident: CachetIncident = body.get("data") or {}  # type: ignore[assignment]
        return incident
