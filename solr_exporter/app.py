"""Application orchestrator — wires together all components."""

from __future__ import annotations

import logging
import sys
from collections import deque
from datetime import datetime, timezone
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from solr_exporter.client import SolrClient
from solr_exporter.config.settings import Settings, load_config
from solr_exporter.exporter import SolrExporter
from solr_exporter.metrics.discovery import CoreFilter

logger = logging.getLogger(__name__)


class BufferedLogHandler(logging.Handler):
    """In-memory log handler that stores recent entries for API access."""

    def __init__(self, capacity: int = 500) -> None:
        super().__init__()
        self._entries: deque[dict[str, str]] = deque(maxlen=capacity)

    def emit(self, record: logging.LogRecord) -> None:
        self._entries.append({
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc,
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": self.format(record),
        })

    def get_entries(self, lines: int = 50) -> list[dict[str, str]]:
        """Return the most recent *lines* log entries."""
        entries = list(self._entries)
        return entries[-lines:]


class Application:
    """Top-level application orchestrator."""

    def __init__(
        self,
        config_path: str | Path | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings if settings is not None else load_config(config_path)
        solr = self.settings.solr
        self.client = SolrClient(
            address=solr.address,
            context_path=solr.context_path,
            timeout=solr.timeout,
        )
        self.exporter = SolrExporter(
            self.client,
            CoreFilter(pattern=solr.excluded_core, ignored=frozenset(solr.ignored_cores)),
            mbeans=self.settings.collectors.mbeans,
            collectors=self.settings.collectors.supplementary,
        )
        self._api_server = None
        self._log_handler: BufferedLogHandler | None = None

    def create_app(self):
        from solr_exporter.api.server import create_api_app

        app = create_api_app(self.exporter, self.settings.web.telemetry_path)
        # Attach log handler so the /logs endpoint can access entries
        if self._log_handler is not None:
            app.state.log_handler = self._log_handler
        return app

    async def start(self) -> None:
        """Initialize logging and serve until interrupted."""
        import uvicorn

        self._setup_logging()
        app = self.create_app()

        config = uvicorn.Config(
            app,
            host=self.settings.web.host,
            port=self.settings.web.port,
            log_level="warning",
        )
        self._api_server = uvicorn.Server(config)
        logger.info("Starting Solr exporter on %s:%d%s for %s",
                    self.settings.web.host, self.settings.web.port,
                    self.settings.web.telemetry_path, self.client.base_url)
        try:
            await self._api_server.serve()
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """Graceful shutdown."""
        logger.info("Shutting down...")
        if self._api_server:
            self._api_server.should_exit = True
        await self.client.close()
        logger.info("Shutdown complete.")

    def _setup_logging(self) -> None:
        cfg = self.settings.logging
        logging.root.setLevel(cfg.level)

        if cfg.format == "rich":
            console_handler: logging.Handler = RichHandler(
                console=Console(stderr=True), show_path=False,
            )
        else:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(logging.Formatter(
                "%(asctime)s %(levelname)s %(name)s: %(message)s",
            ))
        logging.root.addHandler(console_handler)

        # Install buffered log handler for API /logs endpoint
        self._log_handler = BufferedLogHandler(capacity=cfg.buffer_size)
        logging.root.addHandler(self._log_handler)

        # One line per outbound request otherwise
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
