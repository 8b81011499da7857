"""HTTP client for the review/analysis API."""

import json
import logging
from typing import Any, Dict

import requests

from . import __version__
from .collectors.sysmetrics import SystemMetrics
from .models import (
    BatchReviewRequest,
    BatchReviewResponse,
    MigrationReviewRequest,
    MigrationReviewResponse,
    QueryReviewRequest,
    QueryReviewResponse,
    Recommendation,
    ServerData,
    ServerInfo,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30  # seconds
SCHEDULER_PREFIX = "/scheduler"


class TransportError(Exception):
    """Base exception for transport errors."""
    pass


class ReviewAPIError(TransportError):
    """The API answered with a non-200 status."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"request failed with status {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class ReviewClient:
    """Client for the PostgreSQL config analyzer and SQL review API."""

    def __init__(self, base_url: str, timeout: int = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _url(self, path: str, is_scheduler_task: bool = False) -> str:
        prefix = SCHEDULER_PREFIX if is_scheduler_task else ""
        return f"{self.base_url}{prefix}{path}"

    def _post(self, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST a JSON payload once and decode the JSON answer.

        Args:
            url: Full URL
            payload: Request body

        Returns:
            Decoded response body

        Raises:
            ReviewAPIError: On any non-200 status
            TransportError: On marshal, network or decode failure
        """
        try:
            body = json.dumps(payload).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise TransportError(f"failed to marshal request body: {e}")

        headers = {
            "Content-Type": "application/json",
            "User-Agent": f"pgmon-agent/{__version__}",
        }

        logger.debug(f"POST {url} ({len(body)} bytes)")
        try:
            response = requests.request(
                method="POST",
                url=url,
                headers=headers,
                data=body,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            raise TransportError(f"Request timeout after {self.timeout}s: {url}")
        except requests.exceptions.ConnectionError as e:
            raise TransportError(f"Connection error: {e}")
        except requests.exceptions.RequestException as e:
            raise TransportError(f"failed to send request: {e}")

        if response.status_code != 200:
            raise ReviewAPIError(response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(f"failed to unmarshal response: {e}")
        if not isinstance(data, dict):
            raise TransportError(f"failed to unmarshal response: expected object, got {type(data).__name__}")
        return data

    def analyze_config(self, server_data: ServerData, is_scheduler_task: bool = False) -> Recommendation:
        """Send server configuration for analysis."""
        url = self._url("/config/analyze", is_scheduler_task)
        logger.info(f"Using Review API URL: {url}")
        return Recommendation.from_dict(self._post(url, server_data.to_dict()))

    def analyze_system_metrics(
        self,
        metrics: SystemMetrics,
        server_info: ServerInfo,
        environment: str,
        is_scheduler_task: bool = False,
    ) -> Recommendation:
        """Send a system metrics snapshot together with the server identity."""
        url = self._url("/config/analyze", is_scheduler_task)
        payload = {
            "config": metrics.to_dict(),
            "environment": environment,
            "server_info": {
                "version": server_info.version,
                "host": server_info.host,
                "database": server_info.database,
            },
        }
        return Recommendation.from_dict(self._post(url, payload))

    def review_single_query(self, request: QueryReviewRequest) -> QueryReviewResponse:
        return QueryReviewResponse.from_dict(self._post(self._url("/review/"), request.to_dict()))

    def review_batch_queries(self, request: BatchReviewRequest) -> BatchReviewResponse:
        return BatchReviewResponse.from_dict(self._post(self._url("/review/batch"), request.to_dict()))

    def review_migration(self, request: MigrationReviewRequest) -> MigrationReviewResponse:
        return MigrationReviewResponse.from_dict(self._post(self._url("/review/"), request.to_dict()))
