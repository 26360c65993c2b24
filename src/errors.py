"""Typed errors surfaced by the Cachet client and the alert reconciler.

Callers branch on the exception class (or its ``kind``) instead of matching
message text.  ``http_status`` is what the webhook endpoint answers with.
"""


class BridgeError(Exception):
    """Base class for every error the bridge reports to its caller."""

    kind: str = "error"
    http_status: int = 500


class AuthFailure(BridgeError):
    """Bad bearer token on the webhook, or Cachet rejected our API key."""

    kind = "auth_failure"
    http_status = 401


class BackendUnavailable(BridgeError):
    """Cachet could not be reached or answered with an unexpected error."""

    kind = "backend_unavailable"
    http_status = 502


class NotFound(BridgeError):
    """Cachet answered 404 for the requested resource."""

    kind = "not_found"
    http_status = 404


class NoOpenIncident(BridgeError):
    """A resolved alert arrived for a component with no tracked incident."""

    kind = "no_open_incident"
    http_status = 409

    def __init__(self, component_id: int) -> None:
        self.component_id = component_id
        super().__init__(f"No incident found for component {component_id}")


class InvalidPayload(BridgeError):
    kind = "invalid_payload"
    http_status = 400
