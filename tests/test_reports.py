from datetime import datetime, timezone
from pathlib import Path

from pgmon_agent.collectors.sysmetrics import SystemMetrics
from pgmon_agent.models import Config, ServerData, ServerInfo, SQLFile
from pgmon_agent.reports import (
    default_output_path,
    save_pglogs_report,
    save_server_info_report,
    save_sqlfiles_report,
    save_sysmetrics_report,
)

MB = 1024 * 1024


def test_default_output_path():
    assert default_output_path("pglogs", datetime(2025, 9, 6, 18, 0, 5)) == "pglogs_20250906_180005.txt"


def test_sysmetrics_report(tmp_path):
    metrics = SystemMetrics(
        cpu_cores=8, cpu_load=0.25, ram_total=4096 * MB, ram_used=1024 * MB, ram_free=3072 * MB,
        disk_total=0, disk_used=0, disk_free=0, threads=2, gc_pauses=1500,
        heap_alloc=50 * MB, heap_sys=200 * MB, stack_in_use=16 * MB, memory_source="system",
        hostname="db1", os_name="Ubuntu", os_version="24.04", kernel="6.8.0",
        timestamp=datetime(2025, 9, 6, 18, 0, 0, tzinfo=timezone.utc),
    )

    path = save_sysmetrics_report(metrics, str(tmp_path / "out" / "sys.txt"))
    text = Path(path).read_text()

    assert text.startswith("System Metrics Report")
    assert "Cores: 8" in text
    assert "Used RAM: 1024 MB" in text
    assert "Load Ratio: 0.25" in text


def test_server_info_report(tmp_path):
    data = ServerData(Config(work_mem="4MB"), "prod", ServerInfo("PostgreSQL 16.2", "10.0.0.5", "app"))

    text = Path(save_server_info_report(data, str(tmp_path / "si.txt"))).read_text()

    assert text.startswith("PostgreSQL Server Information")
    assert '"work_mem": "4MB"' in text


def test_pglogs_report(tmp_path):
    path = save_pglogs_report("line one\nline two", str(tmp_path / "logs.txt"),
                              now=datetime(2025, 9, 6, 18, 0, 0))

    text = Path(path).read_text()

    assert text.startswith("PostgreSQL Query Logs (Last 2025-09-06 18:00:00)")
    assert text.endswith("line one\nline two")


def test_sqlfiles_report(tmp_path):
    files = [SQLFile("a.sql", "SELECT 1;\n", "/repo/a.sql"), SQLFile("001.sql", "CREATE TABLE t();", "/m/001.sql", True)]

    text = Path(save_sqlfiles_report(files, str(tmp_path / "sql.txt"))).read_text()

    assert "-- a.sql (query, /repo/a.sql)" in text
    assert "-- 001.sql (migration, /m/001.sql)" in text
    assert "No SQL files found" in Path(save_sqlfiles_report([], str(tmp_path / "empty.txt"))).read_text()
