from __future__ import annotations

from prometheus_client import Counter, Histogram


REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

REQUEST_LATENCY = Histogram(
    "http_request_latency_seconds",
    "HTTP request latency",
    ["path"],
)

ERROR_COUNT = Counter(
    "errors_total",
    "Errors returned to clients",
    ["code", "classification"],
)

DB_RETRY_COUNT = Counter(
    "db_retry_total",
    "Database retry attempts",
    ["operation"],
)

DB_CIRCUIT_OPEN = Counter(
    "db_circuit_open_total",
    "Database circuit breaker openings",
)

DB_COMMIT_LATENCY = Histogram(
    "db_commit_latency_seconds",
    "Database commit latency",
)

MIGRATIONS_APPLIED = Counter(
    "migrations_applied_total",
    "Schema migrations applied",
)

MIGRATION_FAILURES = Counter(
    "migration_failures_total",
    "Schema migrations that failed to apply",
)

MIGRATION_DURATION = Histogram(
    "migration_duration_seconds",
    "Time spent applying a single schema migration",
)

QUERY_DURATION = Histogram(
    "query_duration_seconds",
    "Named query execution time",
    ["query"],
)
