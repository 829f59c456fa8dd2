"""Metric extraction — maps supplementary collector names to their functions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Callable

from solr_exporter.metrics.admin import collect_admin_metrics
from solr_exporter.metrics.base import Sample
from solr_exporter.metrics.discovery import CoreInfo
from solr_exporter.metrics.jvm import collect_jvm
from solr_exporter.metrics.ping import collect_ping

if TYPE_CHECKING:
    from solr_exporter.client import SolrClient

CollectorFunc = Callable[["SolrClient", list[CoreInfo]], Awaitable[list[Sample]]]

COLLECTORS: dict[str, CollectorFunc] = {
    "ping": collect_ping,
    "jvm": collect_jvm,
    "admin_metrics": collect_admin_metrics,
}
