"""Application metrics using the Prometheus client library.

Single inventory of everything the service measures.  Other modules
import specific metrics and increment/observe them at the point of
action.  Prometheus scrapes them from GET /metrics.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Registry metrics (populated by CredentialRegistry)
# ---------------------------------------------------------------------------

CREDENTIAL_OPERATIONS = Counter(
    "credential_operations_total",
    "Mutating registry operations by operation and outcome",
    # operation: issue|revoke|transfer|update_uri
    # outcome:   ok, or the error kind (Unauthorized, InvalidUri, ...)
    ["operation", "outcome"],
)

LAST_CREDENTIAL_ID = Gauge(
    "credential_last_id",
    "Highest credential id issued by this process's registry",
)
