"""Prometheus metric definitions for the Cachet bridge self-instrumentation.

All metrics are module-level singletons registered with the default
prometheus_client registry.  Import them wherever instrumentation is needed.
"""

from prometheus_client import Counter, Gauge, Histogram, Info

# ---------------------------------------------------------------------------
# Histogram bucket definitions
# ---------------------------------------------------------------------------

REQUEST_DURATION_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0)
CACHET_DURATION_BUCKETS = (0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 15.0)

# ---------------------------------------------------------------------------
# Request-level metrics
# ---------------------------------------------------------------------------

REQUEST_DURATION = Histogram(
    "cachet_bridge_request_duration_seconds",
    "End-to-end webhook request duration in seconds",
    labelnames=["endpoint"],
    buckets=REQUEST_DURATION_BUCKETS,
)

REQUESTS_TOTAL = Counter(
    "cachet_bridge_requests_total",
    "Total number of requests",
    labelnames=["endpoint", "status"],
)

# ---------------------------------------------------------------------------
# Reconciliation metrics
# ---------------------------------------------------------------------------

ALERTS_RECEIVED_TOTAL = Counter(
    "cachet_bridge_alerts_received_total",
    "Alerts received from Alertmanager, by group status",
    labelnames=["status"],
)

ALERTS_SKIPPED_TOTAL = Counter(
    "cachet_bridge_alerts_skipped_total",
    "Alerts that produced no Cachet mutation",
    labelnames=["reason"],
)

INCIDENT_MUTATIONS_TOTAL = Counter(
    "cachet_bridge_incident_mutations_total",
    "Incident create/update calls issued to Cachet",
    labelnames=["operation"],
)

# ---------------------------------------------------------------------------
# Cachet client metrics
# ---------------------------------------------------------------------------

CACHET_CALL_DURATION = Histogram(
    "cachet_bridge_cachet_call_duration_seconds",
    "Duration of individual Cachet API calls in seconds",
    labelnames=["operation"],
    buckets=CACHET_DURATION_BUCKETS,
)

CACHET_ERRORS_TOTAL = Counter(
    "cachet_bridge_cachet_errors_total",
    "Failed Cachet API calls, by error kind",
    labelnames=["kind"],
)

# ---------------------------------------------------------------------------
# Health / info metrics
# ---------------------------------------------------------------------------

COMPONENT_HEALTHY = Gauge(
    "cachet_bridge_component_healthy",
    "Whether a dependency component is healthy (1=healthy, 0=unhealthy)",
    labelnames=["component"],
)

APP_INFO = Info(
    "cachet_bridge",
    "Cachet bridge build information",
)
