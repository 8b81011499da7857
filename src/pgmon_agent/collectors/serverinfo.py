"""PostgreSQL server identity and configuration collector."""

import logging
from typing import Callable, Optional

from ..credentials import SecretStore
from ..db import DatabaseError, DatabaseSession
from ..models import CONFIG_SETTINGS, Config, ServerData, ServerInfo

logger = logging.getLogger(__name__)

CONFIG_QUERY = (
    "SELECT name, setting FROM pg_settings WHERE name IN ("
    + ", ".join(f"'{name}'" for name in CONFIG_SETTINGS)
    + ")"
)

SERVER_INFO_QUERY = """
    SELECT
        version() AS version,
        inet_server_addr() AS host,
        current_database() AS database
"""


def get_config(session: DatabaseSession) -> Config:
    """Read the allow-listed settings from pg_settings."""
    rows = session.query(CONFIG_QUERY, name="config_parameters")
    settings = {name: setting for name, setting in rows if name in CONFIG_SETTINGS}
    return Config.from_dict(settings)


def get_server_info(session: DatabaseSession) -> ServerInfo:
    """Read version, listen address and database name."""
    row = session.query_row(SERVER_INFO_QUERY, name="server_info")
    if row is None:
        raise DatabaseError("server info query returned no rows")

    version, host, database = row
    # inet_server_addr() is NULL over a unix socket
    return ServerInfo(
        version=version,
        host=str(host) if host else "localhost",
        database=database,
    )


class ServerInfoCollector:
    """Collects server info and configuration for one secret path."""

    def __init__(
        self,
        secret_store: SecretStore,
        secret_path: str,
        connect: Callable[..., DatabaseSession] = DatabaseSession.connect,
    ):
        self.secret_store = secret_store
        self.secret_path = secret_path
        self._connect = connect

    def _session(self) -> DatabaseSession:
        credentials = self.secret_store.get_db_credentials(self.secret_path)
        return self._connect(credentials)

    def collect_config(self) -> Config:
        with self._session() as session:
            return get_config(session)

    def collect_server_info(self) -> ServerInfo:
        with self._session() as session:
            return get_server_info(session)

    def collect_server_data(self, environment: Optional[str] = None) -> ServerData:
        """
        Collect config and server info in one session.

        Args:
            environment: Environment label; defaults to ``version@host/database``
        """
        with self._session() as session:
            try:
                config = get_config(session)
            except DatabaseError as e:
                raise DatabaseError(f"failed to collect config: {e}") from e
            try:
                info = get_server_info(session)
            except DatabaseError as e:
                raise DatabaseError(f"failed to collect server info: {e}") from e

        if not environment:
            environment = f"{info.version}@{info.host}/{info.database}"
        logger.debug(f"Collected server data for {info.host}/{info.database}")

        return ServerData(config=config, environment=environment, server_info=info)
