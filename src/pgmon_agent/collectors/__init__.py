"""Collectors for PostgreSQL servers and the host they run on."""

from .pglogs import PGLogsCollector, LogCollectionError, NO_LOGS_MESSAGE
from .serverinfo import ServerInfoCollector, get_config, get_server_info
from .sqlfiles import SearchConfig, SearchMode, SQLFilesError, collect_sql_files
from .sysmetrics import SysMetricsCollector, SystemMetrics, SystemMetric

__all__ = [
    "PGLogsCollector",
    "LogCollectionError",
    "NO_LOGS_MESSAGE",
    "ServerInfoCollector",
    "get_config",
    "get_server_info",
    "SearchConfig",
    "SearchMode",
    "SQLFilesError",
    "collect_sql_files",
    "SysMetricsCollector",
    "SystemMetrics",
    "SystemMetric",
]
