"""Configuration management for pgmon agent."""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import find_dotenv, load_dotenv


@dataclass
class AgentConfig:
    """Agent configuration."""

    vault_addr: str = "http://localhost:8200"
    vault_token: str = "root"
    vault_mount: str = "secret"
    review_api_url: str = "http://localhost:8000"
    log_path: str = "log"  # relative to the PostgreSQL data directory
    environment: str = "production"
    port: int = 8080
    log_level: str = "INFO"
    timeout: int = 30  # seconds


def _get_env(key: str, default: str) -> str:
    value = os.getenv(key)
    return value if value else default


def load_config(env_file: Optional[str] = None) -> AgentConfig:
    """
    Load configuration from environment variables.

    A ``.env`` file is read first (``env_file`` or one found from the current
    directory); variables already present in the environment take precedence.
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv(find_dotenv(usecwd=True))

    defaults = AgentConfig()
    try:
        port = int(_get_env("PORT", str(defaults.port)))
        timeout = int(_get_env("REQUEST_TIMEOUT", str(defaults.timeout)))
    except ValueError as e:
        raise ValueError(f"Invalid numeric setting: {e}") from e

    return AgentConfig(
        vault_addr=_get_env("VAULT_ADDR", defaults.vault_addr),
        vault_token=_get_env("VAULT_TOKEN", defaults.vault_token),
        vault_mount=_get_env("VAULT_MOUNT", defaults.vault_mount),
        review_api_url=_get_env("REVIEW_API_URL", defaults.review_api_url),
        log_path=_get_env("PG_LOG_PATH", defaults.log_path),
        environment=_get_env("ENVIRONMENT", defaults.environment),
        port=port,
        log_level=_get_env("LOG_LEVEL", defaults.log_level).upper(),
        timeout=timeout,
    )
