"""PostgreSQL log collector.

Log files are listed and read through the server itself (``pg_ls_dir`` and
``pg_read_file``), so the agent does not need filesystem access to the data
directory. Only lines written after a cutoff are returned.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

from ..credentials import SecretStore
from ..db import DatabaseError, DatabaseSession

logger = logging.getLogger(__name__)

NO_LOGS_MESSAGE = "No PostgreSQL logs found in the specified time window."

FILE_TIMESTAMP_RE = re.compile(r"postgresql-(\d{4}-\d{2}-\d{2}_\d{6})")
FILE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H%M%S"  # postgresql-%Y-%m-%d_%H%M%S.log
CSV_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f UTC"  # csvlog
STDERR_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S UTC"  # stderr
LOG_SUFFIXES = (".log", ".csv")


class LogCollectionError(Exception):
    """The log directory could not be listed."""
    pass


def _parse_utc(value: str, fmt: str) -> Optional[datetime]:
    try:
        return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def parse_file_timestamp(filename: str) -> Optional[datetime]:
    """Rotation timestamp embedded in a log file name, if any."""
    match = FILE_TIMESTAMP_RE.search(filename)
    if not match:
        return None
    return _parse_utc(match.group(1), FILE_TIMESTAMP_FORMAT)


def parse_line_timestamp(line: str) -> Optional[datetime]:
    """
    Leading timestamp of a csvlog or stderr log line.

    csvlog:  ``2025-09-06 18:00:00.123 UTC,"postgres",...``
    stderr:  ``2025-09-06 18:00:00 UTC [123] LOG: ...``
    """
    if "," in line:
        ts = _parse_utc(line.split(",", 1)[0], CSV_TIMESTAMP_FORMAT)
        if ts is not None:
            return ts

    parts = line.split()
    if len(parts) >= 3:
        return _parse_utc(" ".join(parts[:3]), STDERR_TIMESTAMP_FORMAT)
    return None


def filter_log_files_by_time(files: List[str], cutoff: datetime) -> List[str]:
    """Keep files rotated at or after the cutoff. Unrecognized names are dropped."""
    recent = []
    for name in files:
        ts = parse_file_timestamp(name)
        if ts is not None and ts >= cutoff:
            recent.append(name)
    return recent


def _filter_lines(content: str, cutoff: datetime) -> List[Tuple[datetime, str]]:
    kept = []
    for raw in content.split("\n"):
        line = raw.strip()
        if not line:
            continue
        ts = parse_line_timestamp(line)
        if ts is not None and ts > cutoff:
            kept.append((ts, line))
    return kept


def filter_log_lines_by_time(content: str, cutoff: datetime) -> List[str]:
    """Lines whose timestamp is strictly after the cutoff, in file order."""
    return [line for _, line in _filter_lines(content, cutoff)]


class PGLogsCollector:
    """Collects recent PostgreSQL log lines from the server's log directory."""

    def __init__(
        self,
        secret_store: SecretStore,
        secret_path: str,
        log_dir: str = "log",
        connect: Callable[..., DatabaseSession] = DatabaseSession.connect,
    ):
        self.secret_store = secret_store
        self.secret_path = secret_path
        self.log_dir = log_dir.rstrip("/")
        self._connect = connect

    def collect(self, window_seconds: int, now: Optional[datetime] = None) -> str:
        """
        Collect log lines written during the last ``window_seconds``.

        Returns:
            Newline-joined log lines, or NO_LOGS_MESSAGE when none matched
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(seconds=window_seconds)

        credentials = self.secret_store.get_db_credentials(self.secret_path)
        with self._connect(credentials) as session:
            return self.collect_from(session, cutoff)

    def collect_from(self, session: DatabaseSession, cutoff: datetime) -> str:
        files = self.list_log_files(session)
        recent = filter_log_files_by_time(files, cutoff)
        logger.debug(f"{len(recent)} of {len(files)} log files are recent enough")

        entries: List[Tuple[datetime, str]] = []
        for name in recent:
            try:
                content = self.read_file(session, f"{self.log_dir}/{name}")
            except DatabaseError as e:
                logger.warning(f"Failed to read log file {name}: {e}")
                continue
            entries.extend(_filter_lines(content, cutoff))

        if not entries:
            return NO_LOGS_MESSAGE

        entries.sort()
        return "\n".join(line for _, line in entries)

    def list_log_files(self, session: DatabaseSession) -> List[str]:
        try:
            rows = session.query("SELECT pg_ls_dir(%s)", (self.log_dir,), name="list_log_files")
        except DatabaseError as e:
            raise LogCollectionError(f"failed to list log directory {self.log_dir}: {e}") from e
        return [row[0] for row in rows if row[0].endswith(LOG_SUFFIXES)]

    def read_file(self, session: DatabaseSession, path: str) -> str:
        content = session.query_value("SELECT pg_read_file(%s)", (path,), name="read_log_file")
        return content or ""
