"""Built-in database metrics available to ``/collect``."""

from typing import Tuple

from .db import DatabaseSession
from .metrics import Labels, MetricsRegistry

COLLECT_RUNS_METRIC = "pgmon_collect_runs_total"
COLLECT_DURATION_METRIC = "pgmon_metric_collect_seconds"


def active_connections(session: DatabaseSession) -> Tuple[float, Labels]:
    count = session.query_value("SELECT count(*) FROM pg_stat_activity", name="active_connections")
    return float(count), {}


def pg_version(session: DatabaseSession) -> Tuple[float, Labels]:
    version = session.query_value("SHOW server_version", name="server_version")
    return 1.0, {"version": str(version)}


def database_size(session: DatabaseSession) -> Tuple[float, Labels]:
    size = session.query_value(
        "SELECT pg_database_size(current_database())", name="database_size"
    )
    return float(size), {}


def init_default_metrics(registry: MetricsRegistry) -> None:
    """Register the built-in metric functions and their gauges."""
    registry.register_gauge(
        "db_active_connections", "Number of active PostgreSQL connections", ["db_name", "host"]
    )
    registry.register_metric("db_active_connections", active_connections)

    registry.register_gauge(
        "db_pg_version", "PostgreSQL server version", ["db_name", "host", "version"]
    )
    registry.register_metric("db_pg_version", pg_version)

    registry.register_gauge(
        "db_database_size_bytes", "Size of the current database in bytes", ["db_name", "host"]
    )
    registry.register_metric("db_database_size_bytes", database_size)

    init_collect_metrics(registry)


def init_collect_metrics(registry: MetricsRegistry) -> None:
    """Register the counter and histogram every collection run records into."""
    registry.register_counter(
        COLLECT_RUNS_METRIC, "Collection runs triggered through /collect", ["status"]
    )
    registry.register_histogram(
        COLLECT_DURATION_METRIC,
        "Time spent producing one metric value",
        ["metric"],
        buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
    )
