"""FastAPI webhook receiver bridging Alertmanager to Cachet.

Alertmanager POSTs alert groups to ``/alert``; each delivery is reconciled
against Cachet before responding.
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, ValidationError

from src.alerts.models import AlertGroup
from src.alerts.reconciler import ComponentLocks, reconcile
from src.cachet.client import CachetClient
from src.config import get_settings
from src.errors import AuthFailure, BridgeError, InvalidPayload
from src.observability.metrics import APP_INFO, COMPONENT_HEALTHY, REQUEST_DURATION, REQUESTS_TOTAL

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class AlertResponse(BaseModel):
    """Response body for a successfully reconciled POST /alert."""

    status: str
    created: int
    updated: int
    unchanged: int
    skipped: int


class ComponentHealth(BaseModel):
    """Health status of a single dependency."""

    name: str
    status: str
    detail: str | None = None


class HealthResponse(BaseModel):
    """Response body for GET /health."""

    status: str
    components: list[ComponentHealth]


# ---------------------------------------------------------------------------
# Application lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the per-process component locks once at startup."""
    settings = get_settings()
    APP_INFO.info({"version": VERSION, "squash_incident": str(settings.squash_incident).lower()})
    app.state.locks = ComponentLocks()
    logger.info(
        "Cachet bridge ready (cachet=%s, label=%s, squash=%s)",
        settings.cachet_url,
        settings.label_name,
        settings.squash_incident,
    )
    yield
    logger.info("Shutting down Cachet bridge")


app = FastAPI(title="Prometheus Cachet Bridge", version=VERSION, lifespan=lifespan)


def _error_response(error: BridgeError) -> JSONResponse:
    return JSONResponse(status_code=error.http_status, content={"error": str(error), "kind": error.kind})


def _check_bearer(request: Request) -> None:
    token = get_settings().prometheus_token
    if not token:
        return
    bearer = request.headers.get("Authorization", "")
    if bearer != f"Bearer {token}":
        logger.debug("Wrong Authorization header: %r", bearer)
        raise AuthFailure("wrong Authorization header")


async def _read_alert_group(request: Request) -> AlertGroup:
    try:
        payload: object = await request.json()
    except ValueError as e:
        logger.debug("Unreadable webhook body: %s", e)
        raise InvalidPayload(f"invalid JSON body: {e}") from e
    try:
        return AlertGroup.model_validate(payload)
    except ValidationError as e:
        logger.debug("Invalid webhook payload: %s", e)
        raise InvalidPayload(str(e)) from e


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus metrics in exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Liveness of the bridge plus reachability of Cachet.

    Always answers 200 with ``status: OK`` so orchestrator probes only track
    the process; Cachet reachability is reported per component.
    """
    cachet_ok = await CachetClient(get_settings()).ping()
    COMPONENT_HEALTHY.labels(component="cachet").set(1.0 if cachet_ok else 0.0)
    component = ComponentHealth(name="cachet", status="healthy" if cachet_ok else "unhealthy")
    return HealthResponse(status="OK", components=[component])


@app.post("/alert", response_model=AlertResponse)
async def alert(request: Request) -> AlertResponse | JSONResponse:
    """Receive an Alertmanager webhook and reconcile it against Cachet."""
    settings = get_settings()
    start = time.monotonic()

    try:
        _check_bearer(request)
        group = await _read_alert_group(request)
        result = await reconcile(
            group,
            CachetClient(settings),
            label_name=settings.label_name,
            squash=settings.squash_incident,
            locks=request.app.state.locks,
        )
    except BridgeError as exc:
        REQUESTS_TOTAL.labels(endpoint="/alert", status=exc.kind).inc()
        REQUEST_DURATION.labels(endpoint="/alert").observe(time.monotonic() - start)
        logger.warning("Alert delivery failed (%s): %s", exc.kind, exc)
        return _error_response(exc)

    REQUESTS_TOTAL.labels(endpoint="/alert", status="success").inc()
    REQUEST_DURATION.labels(endpoint="/alert").observe(time.monotonic() - start)

    return AlertResponse(
        status="OK",
        created=result.count("created"),
        updated=result.count("updated"),
        unchanged=result.count("unchanged"),
        skipped=result.skipped,
    )
