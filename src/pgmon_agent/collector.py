"""Ad-hoc collection runs that feed the metric registry."""

import logging
import time
from typing import Callable, Iterable, List

from .collectors.sysmetrics import SystemMetric
from .credentials import SecretStore
from .db import DatabaseSession
from .default_metrics import COLLECT_DURATION_METRIC, COLLECT_RUNS_METRIC, init_collect_metrics
from .metrics import MetricsRegistry, NotRegisteredError

logger = logging.getLogger(__name__)


class CollectionError(Exception):
    """A metric function failed."""
    pass


class MetricsCollector:
    """Collects named database metrics into the registry."""

    def __init__(
        self,
        secret_store: SecretStore,
        registry: MetricsRegistry,
        connect: Callable[..., DatabaseSession] = DatabaseSession.connect,
    ):
        self.secret_store = secret_store
        self.registry = registry
        self._connect = connect
        init_collect_metrics(registry)

    def collect(self, secret_path: str, db_name: str, host: str, metric_names: Iterable[str]) -> None:
        """
        Run each named metric function once and publish the values as gauges.

        Args:
            secret_path: Secret holding the database credentials
            db_name: ``db_name`` label value
            host: ``host`` label value
            metric_names: Registered metric names to collect

        Raises:
            SecretError: If credentials cannot be resolved
            DatabaseError: If the connection fails
            NotRegisteredError: For an unknown metric name
            CollectionError: If a metric function fails
        """
        try:
            self._collect(secret_path, db_name, host, list(metric_names))
        except Exception:
            self.registry.inc_counter(COLLECT_RUNS_METRIC, {"status": "error"})
            raise
        self.registry.inc_counter(COLLECT_RUNS_METRIC, {"status": "ok"})

    def _collect(self, secret_path: str, db_name: str, host: str, metric_names: List[str]) -> None:
        credentials = self.secret_store.get_db_credentials(secret_path)

        with self._connect(credentials) as session:
            for name in metric_names:
                fn = self.registry.get_metric(name)
                if fn is None:
                    raise NotRegisteredError(f"metric {name!r} is not registered")

                started = time.perf_counter()
                try:
                    value, extra_labels = fn(session)
                except Exception as e:
                    raise CollectionError(f"collect {name!r} failed: {e}") from e
                self.registry.observe_histogram(
                    COLLECT_DURATION_METRIC, {"metric": name}, time.perf_counter() - started
                )

                labels = {"db_name": db_name, "host": host}
                labels.update(extra_labels or {})
                self.registry.set_gauge(name, labels, value)
                logger.debug(f"{name}{labels} = {value}")

        logger.info(f"Collected {len(metric_names)} metrics for {db_name}@{host}")


def publish_system_metrics(registry: MetricsRegistry, rows: Iterable[SystemMetric]) -> None:
    """Expose a detailed system snapshot as gauges."""
    for row in rows:
        registry.register_gauge(row.name, row.description, sorted(row.labels))
        registry.set_gauge(row.name, row.labels, float(row.value))
