"""Prometheus counters for auth outcomes and cleanup sweeps (exposed on /metrics)."""

from prometheus_client import Counter

AUTH_ERRORS = Counter(
    "auth_errors_total",
    "Expected auth failures by kind",
    ["kind"],
)
AUTH_EVENTS = Counter(
    "auth_events_total",
    "Successful auth operations by event",
    ["event"],
)
CLEANUP_DELETED_ROWS = Counter(
    "auth_cleanup_deleted_rows_total",
    "Rows deleted by the cleanup scheduler",
    ["table"],
)
