"""Scrape orchestration — one locked discover/extract/emit cycle per pull."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Iterable

from prometheus_client import CollectorRegistry, generate_latest

from solr_exporter.client import SolrClient
from solr_exporter.errors import DiscoveryError, ExporterError, SolrTransportError
from solr_exporter.metrics import COLLECTORS
from solr_exporter.metrics.base import ExtractionResult, FieldError, Sample
from solr_exporter.metrics.discovery import CoreFilter, CoreInfo, admin_samples, discover_cores
from solr_exporter.metrics.mbeans import MBEANS_PARAMS, MBEANS_PATH, extract_mbeans
from solr_exporter.metrics.registry import UP, MetricSet, SolrCollector

logger = logging.getLogger(__name__)


class SolrExporter:
    """Polls one Solr instance and republishes its statistics.

    Each call to :meth:`scrape` or :meth:`render` runs a full cycle under a
    single lock: concurrent callers wait and then run their own cycle.
    """

    def __init__(
        self,
        client: SolrClient,
        core_filter: CoreFilter | None = None,
        *,
        mbeans: bool = True,
        collectors: Iterable[str] = (),
    ) -> None:
        self.client = client
        self.core_filter = core_filter or CoreFilter()
        self.mbeans = mbeans
        self.collectors = list(collectors)
        unknown = [name for name in self.collectors if name not in COLLECTORS]
        if unknown:
            raise ValueError(f"Unknown collectors: {', '.join(unknown)}")

        self.metric_set = MetricSet()
        self.registry = CollectorRegistry(auto_describe=False)
        self.registry.register(SolrCollector(self.metric_set))
        self._lock = asyncio.Lock()

        self.scrapes = 0
        self.last_scrape: float | None = None
        self.last_duration: float | None = None
        self.last_up: bool | None = None

    async def scrape(self) -> bool:
        """Run one cycle and return whether Solr was fully scraped."""
        async with self._lock:
            return await self._cycle()

    async def render(self) -> bytes:
        """Run one cycle and return the text exposition of its result."""
        async with self._lock:
            await self._cycle()
            return generate_latest(self.registry)

    def status(self) -> dict[str, Any]:
        return {
            "solr": self.client.base_url,
            "scrapes": self.scrapes,
            "last_scrape": self.last_scrape,
            "last_duration_seconds": self.last_duration,
            "up": self.last_up,
            "collectors": (["mbeans"] if self.mbeans else []) + self.collectors,
        }

    # ── Cycle ───────────────────────────────────────────────────────

    async def _cycle(self) -> bool:
        started = time.monotonic()
        try:
            up = await self._run()
        finally:
            self.scrapes += 1
            self.last_scrape = time.time()
            self.last_duration = time.monotonic() - started
        self.last_up = up
        logger.debug("Scrape finished in %.3fs, up=%s, %d series",
                     self.last_duration, up, len(self.metric_set))
        return up

    async def _run(self) -> bool:
        self.metric_set.reset()
        self.metric_set.set(UP.name, 0.0)

        try:
            cores = await discover_cores(self.client, self.core_filter)
        except DiscoveryError as exc:
            logger.error("Error while querying Solr for admin stats: %s", exc)
            return False

        samples: list[Sample] = admin_samples(cores)

        if self.mbeans:
            for core in cores:
                try:
                    document = await self.client.get_bytes(
                        MBEANS_PATH.format(core=core.name), MBEANS_PARAMS,
                    )
                except SolrTransportError as exc:
                    # One unreachable core abandons the whole cycle.
                    logger.error("Error while querying Solr for mbeans stats of core %s: %s",
                                 core.name, exc)
                    return False
                result = extract_mbeans(core.name, document)
                _log_extraction_errors(core.name, result)
                samples += result.samples

        self.metric_set.extend(samples)
        await self._run_collectors(cores)
        self.metric_set.set(UP.name, 1.0)
        return True

    async def _run_collectors(self, cores: list[CoreInfo]) -> None:
        for name in self.collectors:
            try:
                extra = await COLLECTORS[name](self.client, cores)
                self.metric_set.extend(extra)
            except ExporterError as exc:
                logger.error("Failed to collect %s metrics: %s", name, exc)


def _log_extraction_errors(core: str, result: ExtractionResult) -> None:
    for error in result.errors:
        if isinstance(error, FieldError):
            logger.warning("Core %s: %s", core, error)
        else:
            logger.error("Core %s: %s", core, error)
