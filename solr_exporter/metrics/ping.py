"""Ping collector — ``solr_ping{core}`` is 1 when the core answers its ping handler."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from solr_exporter.errors import SolrTransportError
from solr_exporter.metrics.base import MetricDescriptor, Sample

if TYPE_CHECKING:
    from solr_exporter.client import SolrClient
    from solr_exporter.metrics.discovery import CoreInfo

logger = logging.getLogger(__name__)

PING_PATH = "/{core}/admin/ping"
PING_PARAMS = {"wt": "json"}

PING_DESCRIPTORS = {
    "solr_ping": MetricDescriptor(
        name="solr_ping",
        help="Whether the core answered its ping handler (1) or not (0).",
        labels=("core",),
    ),
}


async def collect_ping(client: SolrClient, cores: list[CoreInfo]) -> list[Sample]:
    samples: list[Sample] = []
    for core in cores:
        try:
            await client.get_bytes(PING_PATH.format(core=core.name), PING_PARAMS)
        except SolrTransportError as exc:
            logger.warning("Ping failed for core %s: %s", core.name, exc)
            samples.append(Sample("solr_ping", 0.0, (core.name,)))
        else:
            samples.append(Sample("solr_ping", 1.0, (core.name,)))
    return samples
