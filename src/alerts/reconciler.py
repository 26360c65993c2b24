"""Reconcile an Alertmanager alert group against Cachet incidents.

Alerts are handled one at a time, in payload order.  The first Cachet error
aborts the rest of the batch; mutations already applied are not rolled back
and Alertmanager is expected to redeliver.
"""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Protocol

from src.alerts.models import RESOLVED, AlertGroup
from src.cachet.client import CachetIncident
from src.errors import NoOpenIncident
from src.observability.metrics import ALERTS_RECEIVED_TOTAL, ALERTS_SKIPPED_TOTAL, INCIDENT_MUTATIONS_TOTAL

logger = logging.getLogger(__name__)

INCIDENT_RESOLVED = 1
INCIDENT_FIRING = 4
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class IncidentBackend(Protocol):
    """The subset of the Cachet client the reconciler talks to."""

    async def list_components(self) -> dict[str, int]: ...

    async def search_incidents(self, component_id: int) -> list[CachetIncident]: ...

    async def create_incident(
        self, name: str, component_id: int, incident_status: int, component_status: int
    ) -> CachetIncident: ...

    async def update_incident(
        self, name: str, component_id: int, incident_id: int, incident_status: int, message: str
    ) -> CachetIncident: ...

    async def read_incident(self, incident_id: int) -> CachetIncident: ...


@dataclass
class Mutation:
    operation: Literal["created", "updated", "unchanged"]
    component: str
    component_id: int
    incident_id: int | None = None


@dataclass
class ReconcileResult:
    """What one webhook delivery did to Cachet."""

    processed: list[int] = field(default_factory=list)
    unknown: list[str] = field(default_factory=list)
    duplicates: list[int] = field(default_factory=list)
    mutations: list[Mutation] = field(default_factory=list)

    def count(self, operation: str) -> int:
        return sum(1 for m in self.mutations if m.operation == operation)

    @property
    def skipped(self) -> int:
        return len(self.unknown) + len(self.duplicates)


class ComponentLocks:
    """Per-component asyncio locks.

    Serialises the squash-mode search-then-act sequence for a component across
    concurrent deliveries handled by this process.  Separate processes or
    replicas are not coordinated.
    """

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}

    @contextlib.asynccontextmanager
    async def hold(self, component_id: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(component_id, asyncio.Lock())
        async with lock:
            yield


def status_code_for(group_status: str) -> int:
    """Map the group status to Cachet's incident status; anything not resolved is firing."""
    return INCIDENT_RESOLVED if group_status == RESOLVED else INCIDENT_FIRING


def downtime_minutes(created_at: str | None, updated_at: str | None) -> int | None:
    """Whole minutes between two Cachet timestamps, or None if either does not parse."""
    try:
        created = datetime.strptime(created_at or "", TIMESTAMP_FORMAT)
        updated = datetime.strptime(updated_at or "", TIMESTAMP_FORMAT)
    except ValueError:
        return None
    return int((updated - created).total_seconds() / 60)


async def reconcile(
    group: AlertGroup,
    client: IncidentBackend,
    *,
    label_name: str,
    squash: bool,
    locks: ComponentLocks | None = None,
) -> ReconcileResult:
    """Apply one alert group to Cachet. Raises the first BridgeError encountered."""
    status = status_code_for(group.status)
    result = ReconcileResult()
    ALERTS_RECEIVED_TOTAL.labels(status="resolved" if group.is_resolved else "firing").inc(len(group.alerts))

    directory = await client.list_components()

    # Alertmanager can repeat the same alert within one delivery.
    seen: set[int] = set()
    for alert in group.alerts:
        name = alert.labels.get(label_name, "")
        component_id = directory.get(name)
        if component_id is None:
            logger.debug("No Cachet component named %r (label %s), skipping alert", name, label_name)
            ALERTS_SKIPPED_TOTAL.labels(reason="unknown_component").inc()
            result.unknown.append(name)
            continue
        if component_id in seen:
            logger.debug("Component %s already handled in this delivery", component_id)
            ALERTS_SKIPPED_TOTAL.labels(reason="duplicate").inc()
            result.duplicates.append(component_id)
            continue
        seen.add(component_id)
        result.processed.append(component_id)

        if not squash:
            mutation = await _create(client, name, component_id, status)
        elif locks is None:
            mutation = await _squash(client, name, component_id, status)
        else:
            async with locks.hold(component_id):
                mutation = await _squash(client, name, component_id, status)
        result.mutations.append(mutation)
        INCIDENT_MUTATIONS_TOTAL.labels(operation=mutation.operation).inc()

    return result


async def _create(client: IncidentBackend, name: str, component_id: int, status: int) -> Mutation:
    incident = await client.create_incident(name, component_id, status, status)
    logger.info("Created incident for %s (component %s, status %s)", name, component_id, status)
    return Mutation("created", name, component_id, incident.get("id"))


async def _squash(client: IncidentBackend, name: str, component_id: int, status: int) -> Mutation:
    incidents = await client.search_incidents(component_id)

    if status != INCIDENT_RESOLVED:
        if not incidents or incidents[0].get("status") == INCIDENT_RESOLVED:
            return await _create(client, name, component_id, status)
        logger.debug("Incident %s already open for %s", incidents[0].get("id"), name)
        return Mutation("unchanged", name, component_id, incidents[0].get("id"))

    if not incidents:
        raise NoOpenIncident(component_id)

    incident_id = int(incidents[0]["id"])
    await client.update_incident(
        name, component_id, incident_id, status, f"Prometheus flagged service {name} as up"
    )
    logger.info("Resolved incident %s for %s", incident_id, name)

    # Best effort: the update above stands even if the duration cannot be computed.
    incident = await client.read_incident(incident_id)
    minutes = downtime_minutes(incident.get("created_at"), incident.get("updated_at"))
    if minutes is not None:
        await client.update_incident(
            name,
            component_id,
            incident_id,
            status,
            f"Prometheus flagged service {name} as up (service was down for {minutes} minutes)",
        )
    return Mutation("updated", name, component_id, incident_id)
