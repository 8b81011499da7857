"""Collector HTTP server: ``POST /collect`` and ``GET /metrics``."""

import logging
from typing import List, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse, Response
from pydantic import BaseModel, Field

from .collector import MetricsCollector, publish_system_metrics
from .collectors.sysmetrics import SysMetricsCollector
from .metrics import MetricsRegistry

logger = logging.getLogger(__name__)


class CollectRequest(BaseModel):
    secret_path: str
    db_name: str = ""
    host: str = ""
    metric_names: List[str] = Field(default_factory=list)


def create_app(
    collector: MetricsCollector,
    registry: MetricsRegistry,
    sysmetrics: Optional[SysMetricsCollector] = None,
) -> FastAPI:
    """
    Build the collector application.

    Args:
        collector: Runs ``/collect`` requests against the database
        registry: Registry rendered by ``/metrics``
        sysmetrics: When given, host metrics are refreshed on every scrape
    """
    app = FastAPI(title="pgmon collector", docs_url=None, redoc_url=None)

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError) -> PlainTextResponse:
        return PlainTextResponse(f"invalid request: {exc.errors()}", status_code=400)

    @app.post("/collect", response_class=PlainTextResponse)
    def collect(req: CollectRequest) -> PlainTextResponse:
        # sync handler: runs in the threadpool, one database session per request
        try:
            collector.collect(req.secret_path, req.db_name, req.host, req.metric_names)
        except Exception as e:
            logger.error(f"Collect failed for {req.secret_path}: {e}")
            return PlainTextResponse(f"collect failed: {e}", status_code=500)
        return PlainTextResponse("metrics collected")

    @app.get("/metrics")
    def metrics() -> Response:
        if sysmetrics is not None:
            publish_system_metrics(registry, sysmetrics.collect_detailed())
        payload, content_type = registry.exposition()
        return Response(content=payload, media_type=content_type)

    return app


def run_server(app: FastAPI, port: int, log_level: str = "info") -> None:
    logger.info(f"Collector server listening on :{port}")
    uvicorn.run(app, host="0.0.0.0", port=port, log_level=log_level.lower())
