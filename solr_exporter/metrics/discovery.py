"""Core discovery — which cores Solr currently serves, and their index stats."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable

from pydantic import ValidationError

from solr_exporter.errors import DecodeError, DiscoveryError, SolrTransportError
from solr_exporter.metrics.base import Sample, describe
from solr_exporter.metrics.models import CoresStatus, IndexStats

if TYPE_CHECKING:
    from solr_exporter.client import SolrClient

logger = logging.getLogger(__name__)

CORES_STATUS_PATH = "/admin/cores"
CORES_STATUS_PARAMS = {"action": "STATUS", "wt": "json"}

ADMIN_DESCRIPTORS = describe("solr_admin", {
    "num_docs": "Number of live documents in the core index.",
    "max_docs": "Highest document number in the core index, deleted included.",
    "deleted_docs": "Number of deleted documents not yet merged away.",
    "size_in_bytes": "Size of the core index on disk in bytes.",
}, labels=("core",))


@dataclass
class CoreFilter:
    """Exclusion predicate: a regex searched in the name, plus exact names."""
    pattern: str = ""
    ignored: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        self._regex = re.compile(self.pattern) if self.pattern else None
        self.ignored = frozenset(self.ignored)

    def excludes(self, core: str) -> bool:
        if core in self.ignored:
            return True
        return bool(self._regex and self._regex.search(core))


@dataclass
class CoreInfo:
    name: str
    index: IndexStats


def parse_cores_status(
    payload: Any, core_filter: CoreFilter | None = None,
) -> list[CoreInfo]:
    """Decode a cores STATUS body into the list of cores to scrape."""
    try:
        status = CoresStatus.model_validate(payload)
    except ValidationError as exc:
        raise DecodeError(f"unexpected cores status payload: {exc}") from exc

    cores: list[CoreInfo] = []
    for name, core in status.status.items():
        if core_filter is not None and core_filter.excludes(name):
            logger.debug("Skipping excluded core %s", name)
            continue
        cores.append(CoreInfo(name=name, index=core.index))
    return cores


async def discover_cores(
    client: SolrClient, core_filter: CoreFilter | None = None,
) -> list[CoreInfo]:
    """Fetch the cores STATUS document; any failure aborts the cycle."""
    try:
        payload = await client.get_json(CORES_STATUS_PATH, CORES_STATUS_PARAMS)
        return parse_cores_status(payload, core_filter)
    except (SolrTransportError, DecodeError) as exc:
        raise DiscoveryError(f"core discovery failed: {exc}") from exc


def admin_samples(cores: Iterable[CoreInfo]) -> list[Sample]:
    samples: list[Sample] = []
    for core in cores:
        labels = (core.name,)
        samples.extend([
            Sample("solr_admin_num_docs", float(core.index.num_docs), labels),
            Sample("solr_admin_max_docs", float(core.index.max_doc), labels),
            Sample("solr_admin_deleted_docs", float(core.index.deleted_docs), labels),
            Sample("solr_admin_size_in_bytes", float(core.index.size_in_bytes), labels),
        ])
    return samples
