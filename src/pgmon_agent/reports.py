"""Plain-text reports written by ``pgmon collect``."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .collectors.sysmetrics import SystemMetrics
from .models import ServerData, SQLFile

logger = logging.getLogger(__name__)

MB = 1024 * 1024
GB = 1024 * MB


def default_output_path(kind: str, now: Optional[datetime] = None) -> str:
    """``{kind}_{YYYYmmdd_HHMMSS}.txt`` in the current directory."""
    now = now or datetime.now()
    return f"{kind}_{now.strftime('%Y%m%d_%H%M%S')}.txt"


def _write(path: str, text: str) -> str:
    target = Path(path)
    if target.parent != Path("."):
        target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(text, encoding="utf-8")
    logger.info(f"Report saved to {target}")
    return str(target)


def format_sysmetrics(metrics: SystemMetrics) -> str:
    lines = [
        "System Metrics Report",
        "====================",
        "",
        f"Timestamp: {metrics.timestamp.strftime('%Y-%m-%d %H:%M:%S')}",
        f"Host: {metrics.hostname} ({metrics.os_name} {metrics.os_version}, kernel {metrics.kernel})",
        "",
        "CPU Information:",
        f"  Cores: {metrics.cpu_cores}",
        f"  Load Ratio: {metrics.cpu_load:.2f}",
        "",
        f"Memory Information ({metrics.memory_source}):",
        f"  Total RAM: {metrics.ram_total // MB} MB",
        f"  Used RAM: {metrics.ram_used // MB} MB",
        f"  Free RAM: {metrics.ram_free // MB} MB",
        "",
        "Disk Information:",
        f"  Total Disk: {metrics.disk_total // GB} GB",
        f"  Used Disk: {metrics.disk_used // GB} GB",
        f"  Free Disk: {metrics.disk_free // GB} GB",
        "",
        "Runtime Information:",
        f"  Threads: {metrics.threads}",
        f"  GC Pauses: {metrics.gc_pauses} ns",
        f"  Resident Memory: {metrics.heap_alloc // MB} MB",
        f"  Virtual Memory: {metrics.heap_sys // MB} MB",
        f"  Thread Stacks: {metrics.stack_in_use // 1024} KB",
    ]
    return "\n".join(lines) + "\n"


def save_sysmetrics_report(metrics: SystemMetrics, path: str) -> str:
    return _write(path, format_sysmetrics(metrics))


def save_server_info_report(data: ServerData, path: str) -> str:
    text = (
        "PostgreSQL Server Information\n"
        "============================\n\n"
        f"{json.dumps(data.to_dict())}\n"
    )
    return _write(path, text)


def save_pglogs_report(logs: str, path: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    text = (
        f"PostgreSQL Query Logs (Last {now.strftime('%Y-%m-%d %H:%M:%S')})\n"
        "==================================\n\n"
        f"{logs}"
    )
    return _write(path, text)


def save_sqlfiles_report(files: List[SQLFile], path: str) -> str:
    parts = ["SQL Files", "=========", ""]
    for f in files:
        kind = "migration" if f.is_migration else "query"
        parts.append(f"-- {f.title} ({kind}, {f.path})")
        parts.append(f.content.rstrip("\n"))
        parts.append("")
    if not files:
        parts.append("No SQL files found")
    return _write(path, "\n".join(parts) + "\n")
