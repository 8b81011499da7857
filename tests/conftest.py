import pytest

from pgmon_agent.credentials import DbCredentials
from pgmon_agent.db import DatabaseError
from pgmon_agent.metrics import MetricsRegistry


CREDENTIALS = DbCredentials(
    host="db.internal",
    port="5432",
    username="monitor",
    password="s3cret",
    database="app",
    sslmode="disable",
)


class FakeSession:
    """Stands in for DatabaseSession; answers queries through a responder."""

    def __init__(self, responder):
        self.responder = responder
        self.calls = []
        self.closed = False

    def query(self, sql, params=None, name=""):
        self.calls.append((name, sql, params))
        rows = self.responder(sql, params)
        if isinstance(rows, Exception):
            raise rows
        return rows

    def query_row(self, sql, params=None, name=""):
        rows = self.query(sql, params, name=name)
        return rows[0] if rows else None

    def query_value(self, sql, params=None, name=""):
        row = self.query_row(sql, params, name=name)
        if row is None:
            raise DatabaseError(f"{name or 'query'} returned no rows")
        return row[0]

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class FakeSecretStore:
    def __init__(self, credentials=CREDENTIALS, error=None):
        self.credentials = credentials
        self.error = error
        self.paths = []

    def get_db_credentials(self, path):
        self.paths.append(path)
        if self.error is not None:
            raise self.error
        return self.credentials


def connect_to(session):
    """A ``connect`` callable that always hands out ``session``."""
    def connect(credentials):
        assert credentials == CREDENTIALS
        return session
    return connect


@pytest.fixture
def registry():
    return MetricsRegistry()


@pytest.fixture
def secret_store():
    return FakeSecretStore()
