"""FastAPI server exposing the metrics endpoint and a few operator routes."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Response
from fastapi.responses import HTMLResponse
from prometheus_client import CONTENT_TYPE_LATEST

from solr_exporter.exporter import SolrExporter

LANDING_PAGE = """<html>
<head><title>Solr Exporter</title></head>
<body>
<h1>Solr Exporter</h1>
<p><a href="{path}">Metrics</a></p>
</body>
</html>
"""


def create_api_app(exporter: SolrExporter, telemetry_path: str = "/metrics") -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Solr Exporter",
        description="Prometheus exporter for Apache Solr statistics",
        version="0.1.0",
    )
    app.state.exporter = exporter

    @app.get(telemetry_path)
    async def metrics() -> Response:
        body = await exporter.render()
        return Response(content=body, media_type=CONTENT_TYPE_LATEST)

    @app.get("/", response_class=HTMLResponse)
    async def index() -> str:
        return LANDING_PAGE.format(path=telemetry_path)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {"status": "ok", **exporter.status()}

    @app.get("/logs")
    async def get_logs(lines: int = 50) -> list[dict[str, str]]:
        handler = getattr(app.state, "log_handler", None)
        if handler is None:
            return []
        return handler.get_entries(lines)

    return app
