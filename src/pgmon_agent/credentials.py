"""Database credentials resolved from a Vault KV v2 secret store."""

import logging
from dataclasses import dataclass
from typing import Dict, Any

import requests

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("Host", "Port", "Username", "Password", "Database", "SSLMode")


class SecretError(Exception):
    """Secret missing, malformed or unreadable."""
    pass


class SecretStoreError(SecretError):
    """The secret store could not be reached or refused the request."""

    def __init__(self, message: str, status_code: int = 0, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


@dataclass(frozen=True)
class DbCredentials:
    """Connection parameters for one PostgreSQL database."""

    host: str
    port: str
    username: str
    password: str
    database: str
    sslmode: str

    def connect_kwargs(self) -> Dict[str, str]:
        """Keyword arguments for ``psycopg2.connect``."""
        return {
            "host": self.host,
            "port": self.port,
            "user": self.username,
            "password": self.password,
            "dbname": self.database,
            "sslmode": self.sslmode,
        }

    def __repr__(self) -> str:
        return (
            f"DbCredentials(host={self.host!r}, port={self.port!r}, "
            f"username={self.username!r}, database={self.database!r}, sslmode={self.sslmode!r})"
        )


def _safe_string(data: Dict[str, Any], key: str) -> str:
    if key not in data:
        raise SecretError(f"key {key!r} not found")
    value = data[key]
    if not isinstance(value, str):
        raise SecretError(f"key {key!r} found but not a string")
    return value


def parse_db_credentials(data: Dict[str, Any]) -> DbCredentials:
    """
    Build credentials from the key-value payload of a secret.

    Raises:
        SecretError: If a required field is missing or not a string
    """
    host, port, username, password, database, sslmode = (
        _safe_string(data, key) for key in REQUIRED_FIELDS
    )
    return DbCredentials(
        host=host,
        port=port,
        username=username,
        password=password,
        database=database,
        sslmode=sslmode,
    )


class SecretStore:
    """Reads versioned key-value secrets from Vault over its HTTP API."""

    def __init__(self, addr: str, token: str, mount: str = "secret", timeout: int = 10):
        self.addr = addr.rstrip("/")
        self.token = token
        self.mount = mount.strip("/")
        self.timeout = timeout

    def read_secret(self, path: str) -> Dict[str, Any]:
        """
        Read the latest version of a KV v2 secret.

        Args:
            path: Logical secret path, e.g. ``db/app1``

        Returns:
            The secret's key-value data

        Raises:
            SecretError: On missing token or unexpected payload
            SecretStoreError: On transport failure or non-200 response
        """
        if not self.token:
            raise SecretError("Vault token is empty")

        url = f"{self.addr}/v1/{self.mount}/data/{path.strip('/')}"
        logger.debug(f"Reading secret {self.mount}/{path}")

        try:
            response = requests.get(
                url,
                headers={"X-Vault-Token": self.token},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise SecretStoreError(f"Secret store request failed: {e}")

        if response.status_code != 200:
            raise SecretStoreError(
                f"Secret store returned status {response.status_code} for {path}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise SecretError(f"Secret store returned invalid JSON: {e}")

        data = None
        if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
            data = payload["data"].get("data")
        if not isinstance(data, dict):
            raise SecretError(f"Secret at {path} has no data")
        return data

    def get_db_credentials(self, path: str) -> DbCredentials:
        """Resolve database connection parameters stored at ``path``."""
        return parse_db_credentials(self.read_secret(path))
