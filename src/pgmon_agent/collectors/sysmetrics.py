"""Host and runtime metrics collector."""

import gc
import logging
import platform
import socket
import threading
import time
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from typing import Any, Dict, List, NamedTuple

import distro
import psutil

logger = logging.getLogger(__name__)

# pthread default on Linux when threading.stack_size() was never set
DEFAULT_THREAD_STACK_BYTES = 8 * 1024 * 1024


class _GCPauseTracker:
    """Accumulates time spent inside the cyclic garbage collector."""

    def __init__(self):
        self._lock = threading.Lock()
        self._started: Dict[int, int] = {}
        self.total_ns = 0
        gc.callbacks.append(self._callback)

    def _callback(self, phase: str, info: Dict[str, Any]) -> None:
        ident = threading.get_ident()
        if phase == "start":
            self._started[ident] = time.perf_counter_ns()
        elif phase == "stop":
            started = self._started.pop(ident, None)
            if started is not None:
                with self._lock:
                    self.total_ns += time.perf_counter_ns() - started


_gc_pauses = _GCPauseTracker()


class RuntimeStats(NamedTuple):
    heap_alloc: int
    heap_sys: int
    stack_in_use: int
    gc_pauses: int
    threads: int


def read_runtime_stats() -> RuntimeStats:
    """Process-level memory and interpreter statistics."""
    threads = threading.active_count()
    try:
        mem = psutil.Process().memory_info()
        heap_alloc, heap_sys = mem.rss, mem.vms
    except psutil.Error as e:
        logger.warning(f"Failed to read process memory: {e}")
        heap_alloc = heap_sys = 0

    stack_size = threading.stack_size() or DEFAULT_THREAD_STACK_BYTES
    return RuntimeStats(
        heap_alloc=heap_alloc,
        heap_sys=heap_sys,
        stack_in_use=threads * stack_size,
        gc_pauses=_gc_pauses.total_ns,
        threads=threads,
    )


@dataclass(frozen=True)
class SystemMetrics:
    """
    Point-in-time host snapshot.

    When ``memory_source`` is ``"process"`` the RAM fields describe this
    process, not the machine.
    """

    cpu_cores: int
    cpu_load: float
    ram_total: int
    ram_used: int
    ram_free: int
    disk_total: int
    disk_used: int
    disk_free: int
    threads: int
    gc_pauses: int
    heap_alloc: int
    heap_sys: int
    stack_in_use: int
    memory_source: str
    hostname: str
    os_name: str
    os_version: str
    kernel: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass(frozen=True)
class SystemMetric:
    """One named value from a snapshot."""

    name: str
    value: float
    description: str
    timestamp: datetime
    labels: Dict[str, str] = field(default_factory=dict)


class SysMetricsCollector:
    """Collects system-level metrics."""

    def __init__(self, disk_path: str = "/"):
        self.disk_path = disk_path

    def collect(self) -> SystemMetrics:
        """Take one snapshot. Fields that cannot be read are left at zero."""
        now = datetime.now(timezone.utc)

        cpu_cores = psutil.cpu_count(logical=True) or 1
        runtime = read_runtime_stats()
        cpu_load = runtime.threads / cpu_cores

        memory_source = "system"
        try:
            vm = psutil.virtual_memory()
            ram_total, ram_used, ram_free = vm.total, vm.used, vm.available
        except (OSError, psutil.Error, RuntimeError) as e:
            logger.warning(
                f"Failed to read system memory: {e}. Falling back to process memory stats."
            )
            memory_source = "process"
            ram_total = runtime.heap_sys
            ram_used = runtime.heap_alloc
            ram_free = max(runtime.heap_sys - runtime.heap_alloc, 0)

        try:
            usage = psutil.disk_usage(self.disk_path)
            disk_total, disk_used, disk_free = usage.total, usage.used, usage.free
        except OSError as e:
            logger.warning(f"Failed to read disk stats for {self.disk_path}: {e}")
            disk_total = disk_used = disk_free = 0

        return SystemMetrics(
            cpu_cores=cpu_cores,
            cpu_load=cpu_load,
            ram_total=ram_total,
            ram_used=ram_used,
            ram_free=ram_free,
            disk_total=disk_total,
            disk_used=disk_used,
            disk_free=disk_free,
            threads=runtime.threads,
            gc_pauses=runtime.gc_pauses,
            heap_alloc=runtime.heap_alloc,
            heap_sys=runtime.heap_sys,
            stack_in_use=runtime.stack_in_use,
            memory_source=memory_source,
            hostname=socket.gethostname(),
            os_name=distro.name() or platform.system(),
            os_version=distro.version() or platform.release(),
            kernel=platform.release(),
            timestamp=now,
        )

    def collect_detailed(self) -> List[SystemMetric]:
        """Return the snapshot as separate named metrics."""
        m = self.collect()
        ts = m.timestamp
        disk = {"mountpoint": self.disk_path}

        return [
            SystemMetric("system_cpu_cores", m.cpu_cores, "Number of CPU cores", ts),
            SystemMetric("system_cpu_load_ratio", m.cpu_load, "CPU load ratio (threads per core)", ts),
            SystemMetric("system_memory_total_bytes", m.ram_total,
                         f"Total memory in bytes ({m.memory_source})", ts, {"type": "total"}),
            SystemMetric("system_memory_used_bytes", m.ram_used,
                         f"Used memory in bytes ({m.memory_source})", ts, {"type": "used"}),
            SystemMetric("system_memory_free_bytes", m.ram_free,
                         f"Free memory in bytes ({m.memory_source})", ts, {"type": "free"}),
            SystemMetric("system_disk_total_bytes", m.disk_total,
                         "Total disk space in bytes", ts, {**disk, "type": "total"}),
            SystemMetric("system_disk_used_bytes", m.disk_used,
                         "Used disk space in bytes", ts, {**disk, "type": "used"}),
            SystemMetric("system_disk_free_bytes", m.disk_free,
                         "Free disk space in bytes", ts, {**disk, "type": "free"}),
            SystemMetric("runtime_threads", m.threads, "Number of active threads", ts),
            SystemMetric("runtime_gc_pause_total_ns", m.gc_pauses,
                         "Total garbage collection pause time in nanoseconds", ts),
            SystemMetric("runtime_memory_heap_alloc_bytes", m.heap_alloc,
                         "Resident memory of this process in bytes", ts),
            SystemMetric("runtime_memory_heap_sys_bytes", m.heap_sys,
                         "Virtual memory of this process in bytes", ts),
            SystemMetric("runtime_memory_stack_inuse_bytes", m.stack_in_use,
                         "Thread stack memory reserved by this process in bytes", ts),
        ]
