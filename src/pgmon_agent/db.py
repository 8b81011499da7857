"""PostgreSQL session used by a single collection run."""

import logging
from typing import Any, List, Optional, Sequence

import psycopg2

from .credentials import DbCredentials

logger = logging.getLogger(__name__)


class DatabaseError(Exception):
    """Connection or query failure."""
    pass


class DatabaseSession:
    """
    One psycopg2 connection opened for one collection run.

    The connection runs in autocommit mode: every statement is read-only and
    a failed statement must not abort the ones that follow it.
    """

    def __init__(self, connection):
        self._conn = connection

    @classmethod
    def connect(cls, credentials: DbCredentials, connect_timeout: int = 10) -> "DatabaseSession":
        """
        Open a session with resolved credentials.

        Raises:
            DatabaseError: If the connection cannot be established
        """
        try:
            conn = psycopg2.connect(connect_timeout=connect_timeout, **credentials.connect_kwargs())
        except psycopg2.Error as e:
            logger.error(f"Error while creating pg client for {credentials.host}:{credentials.port}: {e}")
            raise DatabaseError(f"db client init failed: {e}") from e

        conn.autocommit = True
        return cls(conn)

    @property
    def closed(self) -> bool:
        return self._conn is None or bool(self._conn.closed)

    def query(self, sql: str, params: Optional[Sequence[Any]] = None, name: str = "") -> List[tuple]:
        """Run a statement and return all rows."""
        label = name or sql.split(None, 1)[0]
        logger.debug(f"[{label}] {' '.join(sql.split())} {tuple(params) if params else ''}")
        if self.closed:
            raise DatabaseError(f"{label}: session is closed")

        try:
            with self._conn.cursor() as cur:
                cur.execute(sql, params)
                return cur.fetchall()
        except psycopg2.Error as e:
            raise DatabaseError(f"{label} failed: {e}") from e

    def query_row(self, sql: str, params: Optional[Sequence[Any]] = None, name: str = "") -> Optional[tuple]:
        """Run a statement and return its first row, or None."""
        rows = self.query(sql, params, name=name)
        return rows[0] if rows else None

    def query_value(self, sql: str, params: Optional[Sequence[Any]] = None, name: str = "") -> Any:
        """Run a statement and return the first column of its first row."""
        row = self.query_row(sql, params, name=name)
        if row is None:
            raise DatabaseError(f"{name or 'query'} returned no rows")
        return row[0]

    def close(self) -> None:
        if self._conn is not None and not self._conn.closed:
            try:
                self._conn.close()
            except psycopg2.Error as e:
                logger.warning(f"Failed to close db client: {e}")
        self._conn = None

    def __enter__(self) -> "DatabaseSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
