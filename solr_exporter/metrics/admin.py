"""Aggregate ``/admin/metrics`` extractors — jetty, JVM, node and core registries.

Solr 6.4+ exposes every metric registry in one document::

    {"metrics": {"solr.jetty": {...}, "solr.jvm": {...},
                 "solr.node": {...}, "solr.core.<name>": {...}}}

Keys inside a registry are dotted paths such as ``QUERY./select.requestTimes``;
values are plain numbers or objects (meters and timers) carrying ``count``
and percentile fields.  Durations exported as ``*_seconds*`` are converted
from milliseconds; the ``*_ms`` percentiles are left as Solr reports them.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from solr_exporter.errors import DecodeError
from solr_exporter.metrics.base import MetricDescriptor, Sample, json_float, json_get
from solr_exporter.metrics.normalize import (
    jvm_value,
    ms_to_seconds,
    parse_replication_timestamp,
)

if TYPE_CHECKING:
    from solr_exporter.client import SolrClient
    from solr_exporter.metrics.discovery import CoreInfo

logger = logging.getLogger(__name__)

ADMIN_METRICS_PATH = "/admin/metrics"
ADMIN_METRICS_PARAMS = {
    "group": "all",
    "type": "all",
    "prefix": "",
    "property": "",
    "wt": "json",
}

HELP = "See https://lucene.apache.org/solr/guide/metrics-reporting.html"

JETTY_HANDLER = "org.eclipse.jetty.server.handler.DefaultHandler"
SEARCHER_CACHES = (
    "documentCache",
    "fieldValueCache",
    "filterCache",
    "perSegFilter",
    "queryResultCache",
)

HANDLER_LABELS = ("category", "handler", "core", "collection", "shard", "replica")
CACHE_LABELS = ("category", "core", "type", "item", "collection", "shard", "replica")
ITEM_LABELS = ("category", "core", "item", "collection", "shard", "replica")
CORE_LABELS = ("category", "core", "collection", "shard", "replica")
HIGHLIGHTER_LABELS = ("category", "core", "item", "name", "collection", "shard", "replica")
NODE_LABELS = ("category", "handler")
POOL_LABELS = ("category", "handler", "executor")


def _descriptor(name: str, labels: tuple[str, ...], kind: str = "gauge") -> MetricDescriptor:
    full = f"solr_metrics_{name}"
    return MetricDescriptor(name=full, help=HELP, labels=labels, kind=kind)


_TABLE = [
    # jetty
    _descriptor("jetty_response_total", ("status",), "counter"),
    _descriptor("jetty_requests_total", ("method",), "counter"),
    _descriptor("jetty_dispatches_total", (), "counter"),
    # core request handlers
    _descriptor("core_requests_total", HANDLER_LABELS, "counter"),
    _descriptor("core_client_errors_total", HANDLER_LABELS, "counter"),
    _descriptor("core_errors_total", HANDLER_LABELS, "counter"),
    _descriptor("core_server_errors_total", HANDLER_LABELS, "counter"),
    _descriptor("core_timeouts_total", HANDLER_LABELS, "counter"),
    _descriptor("core_time_seconds_total", HANDLER_LABELS, "counter"),
    _descriptor("core_requests_p75_ms", HANDLER_LABELS),
    _descriptor("core_requests_p95_ms", HANDLER_LABELS),
    _descriptor("core_requests_p99_ms", HANDLER_LABELS),
    _descriptor("core_requests_mean_ms", HANDLER_LABELS),
    _descriptor("core_requests_median_ms", HANDLER_LABELS),
    _descriptor("core_requests_stddev_ms", HANDLER_LABELS),
    # core caches, storage, searcher
    _descriptor("core_field_cache_total", CORE_LABELS, "counter"),
    _descriptor("core_searcher_cache", CACHE_LABELS),
    _descriptor("core_searcher_cache_ratio", CACHE_LABELS),
    _descriptor("core_searcher_warmup_time_seconds", CACHE_LABELS),
    _descriptor("core_searcher_cumulative_cache_total", CACHE_LABELS, "counter"),
    _descriptor("core_searcher_cumulative_cache_ratio", CACHE_LABELS),
    _descriptor("core_fs_bytes", ITEM_LABELS),
    _descriptor("core_highlighter_request_total", HIGHLIGHTER_LABELS, "counter"),
    _descriptor("core_index_size_bytes", CORE_LABELS),
    _descriptor("core_searcher_documents", ITEM_LABELS),
    # core replication
    _descriptor("core_replication_master", HANDLER_LABELS),
    _descriptor("core_replication_slave", HANDLER_LABELS),
    _descriptor("core_replication_last_success", HANDLER_LABELS),
    _descriptor("core_replication_last_fail", HANDLER_LABELS),
    _descriptor("core_replication_success_count", HANDLER_LABELS),
    _descriptor("core_replication_fail_count", HANDLER_LABELS),
    _descriptor("core_replication_replicating", HANDLER_LABELS),
    _descriptor("core_replication_last_cycle_downloaded_bytes", HANDLER_LABELS),
    # core update handler
    _descriptor("core_update_handler_adds", HANDLER_LABELS),
    _descriptor("core_update_handler_adds_total", HANDLER_LABELS, "counter"),
    _descriptor("core_update_handler_auto_commits_total", HANDLER_LABELS, "counter"),
    _descriptor("core_update_handler_commits_total", HANDLER_LABELS, "counter"),
    _descriptor("core_update_handler_deletes_by_id", HANDLER_LABELS),
    _descriptor("core_update_handler_deletes_by_id_total", HANDLER_LABELS, "counter"),
    _descriptor("core_update_handler_deletes_by_query", HANDLER_LABELS),
    _descriptor("core_update_handler_deletes_by_query_total", HANDLER_LABELS, "counter"),
    _descriptor("core_update_handler_errors", HANDLER_LABELS),
    _descriptor("core_update_handler_errors_total", HANDLER_LABELS, "counter"),
    _descriptor("core_update_handler_expunge_deletes_total", HANDLER_LABELS, "counter"),
    _descriptor("core_update_handler_merges_total", HANDLER_LABELS, "counter"),
    _descriptor("core_update_handler_optimizes_total", HANDLER_LABELS, "counter"),
    _descriptor("core_update_handler_pending_docs", HANDLER_LABELS),
    _descriptor("core_update_handler_rollbacks_total", HANDLER_LABELS, "counter"),
    _descriptor("core_update_handler_soft_auto_commits_total", HANDLER_LABELS, "counter"),
    _descriptor("core_update_handler_splits_total", HANDLER_LABELS, "counter"),
    # jvm
    _descriptor("jvm_buffers", ("pool",)),
    _descriptor("jvm_buffers_bytes", ("pool", "item")),
    _descriptor("jvm_gc_total", ("item",), "counter"),
    _descriptor("jvm_gc_seconds_total", ("item",), "counter"),
    _descriptor("jvm_memory_heap_bytes", ("item",)),
    _descriptor("jvm_memory_non_heap_bytes", ("item",)),
    _descriptor("jvm_memory_pools_bytes", ("space", "item")),
    _descriptor("jvm_memory_bytes", ("item",)),
    _descriptor("jvm_os_memory_bytes", ("item",)),
    _descriptor("jvm_os_file_descriptors", ("item",)),
    _descriptor("jvm_os_cpu_load", ("item",)),
    _descriptor("jvm_os_cpu_time_seconds_total", ("item",), "counter"),
    _descriptor("jvm_os_load_average", ("item",)),
    _descriptor("jvm_threads", ("item",)),
    # node
    _descriptor("node_requests_total", NODE_LABELS, "counter"),
    _descriptor("node_client_errors_total", NODE_LABELS, "counter"),
    _descriptor("node_errors_total", NODE_LABELS, "counter"),
    _descriptor("node_server_errors_total", NODE_LABELS, "counter"),
    _descriptor("node_timeouts_total", NODE_LABELS, "counter"),
    _descriptor("node_time_seconds_total", NODE_LABELS, "counter"),
    _descriptor("node_cores", ("category", "item")),
    _descriptor("node_core_root_fs_bytes", ("category", "item")),
    _descriptor("node_thread_pool_completed_total", POOL_LABELS, "counter"),
    _descriptor("node_thread_pool_running", POOL_LABELS),
    _descriptor("node_thread_pool_submitted_total", POOL_LABELS, "counter"),
    _descriptor("node_connections", ("category", "handler", "item")),
]

ADMIN_METRICS_DESCRIPTORS: dict[str, MetricDescriptor] = {d.name: d for d in _TABLE}


def _sample(name: str, value: float, *labels: str) -> Sample:
    return Sample(f"solr_metrics_{name}", value, tuple(labels))


def _count(value: Any) -> float:
    """Meters and timers carry ``count``; plain gauges are the value itself."""
    if isinstance(value, dict):
        return json_float(value.get("count"))
    return json_float(value)


# ── solr.jetty ──────────────────────────────────────────────────────

def _jetty_samples(registry: dict[str, Any]) -> list[Sample]:
    samples: list[Sample] = []
    for key, value in registry.items():
        if not key.startswith(JETTY_HANDLER):
            continue
        leaf = key.rsplit(".", 1)[-1]
        has_count = json_get(value, "count") is not None

        if key.endswith("xx-responses"):
            if not has_count:
                raise DecodeError(f"jetty metric {key} has no count: {value!r}")
            status = leaf.split("-")[0]
            samples.append(_sample("jetty_response_total", _count(value), status))
        elif key.startswith(f"{JETTY_HANDLER}.") and key.endswith("-requests") and has_count:
            method = leaf.split("-")[0]
            samples.append(_sample("jetty_requests_total", _count(value), method))
        elif key.startswith(f"{JETTY_HANDLER}.dispatches"):
            if not has_count:
                raise DecodeError(f"jetty metric {key} has no count: {value!r}")
            samples.append(_sample("jetty_dispatches_total", _count(value)))
    return samples


# ── solr.jvm ────────────────────────────────────────────────────────

OS_MEMORY_KEYS = frozenset({
    "os.committedVirtualMemorySize",
    "os.freePhysicalMemorySize",
    "os.freeSwapSpaceSize",
    "os.totalPhysicalMemorySize",
    "os.totalSwapSpaceSize",
})
OS_FD_KEYS = frozenset({"os.maxFileDescriptorCount", "os.openFileDescriptorCount"})
OS_CPU_LOAD_KEYS = frozenset({"os.processCpuLoad", "os.systemCpuLoad"})


def _jvm_samples(registry: dict[str, Any]) -> list[Sample]:
    samples: list[Sample] = []
    for key, raw in registry.items():
        parts = key.split(".")
        leaf = parts[-1]
        value = jvm_value(raw)

        if key.startswith("buffers.") and len(parts) >= 3:
            if leaf == "Count":
                samples.append(_sample("jvm_buffers", value, parts[1]))
            elif leaf in ("MemoryUsed", "TotalCapacity"):
                samples.append(_sample("jvm_buffers_bytes", value, parts[1], leaf))
        elif key.startswith("gc.") and len(parts) >= 3:
            if leaf == "count":
                samples.append(_sample("jvm_gc_total", value, parts[1]))
            elif leaf == "time":
                samples.append(_sample("jvm_gc_seconds_total", ms_to_seconds(value), parts[1]))
        elif key.startswith("memory.heap.") and leaf != "usage":
            samples.append(_sample("jvm_memory_heap_bytes", value, leaf))
        elif key.startswith("memory.non-heap.") and leaf != "usage":
            samples.append(_sample("jvm_memory_non_heap_bytes", value, leaf))
        elif key.startswith("memory.pools.") and len(parts) >= 4 and leaf != "usage":
            samples.append(_sample("jvm_memory_pools_bytes", value, parts[2], leaf))
        elif key.startswith("memory.total."):
            samples.append(_sample("jvm_memory_bytes", value, leaf))
        elif key in OS_MEMORY_KEYS:
            samples.append(_sample("jvm_os_memory_bytes", value, leaf))
        elif key in OS_FD_KEYS:
            samples.append(_sample("jvm_os_file_descriptors", value, leaf))
        elif key in OS_CPU_LOAD_KEYS:
            samples.append(_sample("jvm_os_cpu_load", value, leaf))
        elif key == "os.processCpuTime":
            samples.append(_sample("jvm_os_cpu_time_seconds_total", ms_to_seconds(value), leaf))
        elif key == "os.systemLoadAverage":
            samples.append(_sample("jvm_os_load_average", value, leaf))
        elif key.startswith("threads.") and leaf == "count" and len(parts) >= 2:
            samples.append(_sample("jvm_threads", value, parts[1]))
    return samples


# ── solr.node ───────────────────────────────────────────────────────

def _node_samples(registry: dict[str, Any]) -> list[Sample]:
    samples: list[Sample] = []
    for key, value in registry.items():
        parts = key.split(".")
        if len(parts) < 3:
            continue
        category, handler = parts[0], parts[1]

        if key.endswith(".clientErrors"):
            samples.append(_sample("node_client_errors_total", _count(value), category, handler))
        elif key.endswith(".errors"):
            samples.append(_sample("node_errors_total", _count(value), category, handler))
        elif key.endswith(".timeouts"):
            samples.append(_sample("node_timeouts_total", _count(value), category, handler))
        elif key.endswith(".serverErrors"):
            samples.append(_sample("node_server_errors_total", _count(value), category, handler))
        elif key.endswith(".requestTimes"):
            samples.append(_sample("node_requests_total", _count(value), category, handler))
        elif key.endswith(".totalTime"):
            samples.append(_sample(
                "node_time_seconds_total", ms_to_seconds(json_float(value)), category, handler,
            ))
        elif key.startswith("CONTAINER.cores."):
            samples.append(_sample("node_cores", json_float(value), category, parts[2]))
        elif key.startswith("CONTAINER.fs.coreRoot.") and parts[-1] in ("totalSpace", "usableSpace"):
            samples.append(_sample("node_core_root_fs_bytes", json_float(value), category, parts[-1]))
        elif ".threadPool." in key and parts[-1] in ("completed", "running", "submitted"):
            # CONTAINER.threadPool.<executor>.<leaf> or
            # <category>.<handler>.threadPool.<executor>.<leaf>
            if len(parts) >= 5:
                pool_handler, executor = handler, parts[3]
            else:
                pool_handler, executor = "", parts[2]
            name = {
                "completed": "node_thread_pool_completed_total",
                "running": "node_thread_pool_running",
                "submitted": "node_thread_pool_submitted_total",
            }[parts[-1]]
            samples.append(_sample(name, _count(value), category, pool_handler, executor))
        elif key.endswith("Connections"):
            samples.append(_sample("node_connections", json_float(value), category, handler, parts[2]))
    return samples


# ── solr.core.<name> ────────────────────────────────────────────────

_REQUEST_PERCENTILES = {
    "core_requests_p75_ms": "p75_ms",
    "core_requests_p95_ms": "p95_ms",
    "core_requests_p99_ms": "p99_ms",
    "core_requests_mean_ms": "mean_ms",
    "core_requests_median_ms": "median_ms",
    "core_requests_stddev_ms": "stddev_ms",
}

_HANDLER_COUNTERS = {
    "clientErrors": "core_client_errors_total",
    "errors": "core_errors_total",
    "serverErrors": "core_server_errors_total",
    "timeouts": "core_timeouts_total",
}

_CACHE_GAUGES = ("lookups", "hits", "size", "evictions", "inserts")
_CACHE_CUMULATIVE = ("cumulative_lookups", "cumulative_hits", "cumulative_evictions", "cumulative_inserts")

# UPDATE.updateHandler.<key> -> (metric, read count from meter)
_UPDATE_HANDLER = {
    "adds": ("core_update_handler_adds", False),
    "autoCommits": ("core_update_handler_auto_commits_total", False),
    "commits": ("core_update_handler_commits_total", True),
    "cumulativeAdds": ("core_update_handler_adds_total", True),
    "cumulativeDeletesById": ("core_update_handler_deletes_by_id_total", True),
    "cumulativeDeletesByQuery": ("core_update_handler_deletes_by_query_total", True),
    "cumulativeErrors": ("core_update_handler_errors_total", True),
    "deletesById": ("core_update_handler_deletes_by_id", False),
    "deletesByQuery": ("core_update_handler_deletes_by_query", False),
    "docsPending": ("core_update_handler_pending_docs", False),
    "errors": ("core_update_handler_errors", False),
    "expungeDeletes": ("core_update_handler_expunge_deletes_total", True),
    "merges": ("core_update_handler_merges_total", True),
    "optimizes": ("core_update_handler_optimizes_total", True),
    "rollbacks": ("core_update_handler_rollbacks_total", True),
    "softAutoCommits": ("core_update_handler_soft_auto_commits_total", False),
    "splits": ("core_update_handler_splits_total", True),
}


def _core_identity(registry_name: str) -> tuple[str, str, str, str]:
    """``solr.core.<core>`` or SolrCloud ``solr.core.<coll>.<shard>.<replica>``."""
    parts = registry_name.split(".")[2:]
    if len(parts) >= 3:
        collection, shard, replica = parts[0], parts[1], ".".join(parts[2:])
        return f"{collection}_{shard}_{replica}", collection, shard, replica
    return ".".join(parts), "", "", ""


def _core_samples(registry_name: str, registry: dict[str, Any]) -> list[Sample]:
    core, collection, shard, replica = _core_identity(registry_name)
    cloud = (collection, shard, replica)
    samples: list[Sample] = []

    for path, value in registry.items():
        parts = path.split(".")
        if len(parts) < 2:
            continue
        category, handler = parts[0], parts[1]
        leaf = parts[-1]
        handler_labels = (category, handler, core, *cloud)

        if handler.startswith("/") and len(parts) >= 3:
            if leaf == "requestTimes":
                samples.append(_sample("core_requests_total", _count(value), *handler_labels))
                for metric, field_name in _REQUEST_PERCENTILES.items():
                    samples.append(_sample(
                        metric, json_float(json_get(value, field_name)), *handler_labels,
                    ))
            elif leaf in _HANDLER_COUNTERS:
                samples.append(_sample(_HANDLER_COUNTERS[leaf], _count(value), *handler_labels))
            elif leaf == "totalTime":
                samples.append(_sample(
                    "core_time_seconds_total", ms_to_seconds(json_float(value)), *handler_labels,
                ))

        if path == "CACHE.core.fieldCache":
            samples.append(_sample(
                "core_field_cache_total", json_float(json_get(value, "entries_count")),
                category, core, *cloud,
            ))
        elif path.startswith("CACHE.searcher.") and path.endswith(SEARCHER_CACHES):
            cache_type = parts[2]
            cache_labels = (category, core, cache_type)
            samples.append(_sample(
                "core_searcher_cache_ratio", json_float(json_get(value, "hitratio")),
                *cache_labels, "hitratio", *cloud,
            ))
            for item in _CACHE_GAUGES:
                samples.append(_sample(
                    "core_searcher_cache", json_float(json_get(value, item)),
                    *cache_labels, item, *cloud,
                ))
            samples.append(_sample(
                "core_searcher_warmup_time_seconds",
                ms_to_seconds(json_float(json_get(value, "warmupTime"))),
                *cache_labels, "warmupTime", *cloud,
            ))
            for item in _CACHE_CUMULATIVE:
                samples.append(_sample(
                    "core_searcher_cumulative_cache_total", json_float(json_get(value, item)),
                    *cache_labels, item, *cloud,
                ))
            samples.append(_sample(
                "core_searcher_cumulative_cache_ratio",
                json_float(json_get(value, "cumulative_hitratio")),
                *cache_labels, "cumulative_hitratio", *cloud,
            ))
        elif path.startswith("CORE.fs.") and leaf in ("totalSpace", "usableSpace"):
            samples.append(_sample("core_fs_bytes", json_float(value), category, core, leaf, *cloud))
        elif path.startswith("HIGHLIGHTER.") and leaf == "requests" and len(parts) >= 4:
            samples.append(_sample(
                "core_highlighter_request_total", _count(value),
                category, core, parts[1], parts[2], *cloud,
            ))
        elif path == "INDEX.sizeInBytes":
            samples.append(_sample("core_index_size_bytes", json_float(value), category, core, *cloud))
        elif path == "REPLICATION./replication.isMaster":
            samples.append(_sample("core_replication_master", json_float(value), *handler_labels))
        elif path == "REPLICATION./replication.isSlave":
            samples.append(_sample("core_replication_slave", json_float(value), *handler_labels))
        elif path == "REPLICATION./replication.fetcher":
            samples += _replication_samples(value, handler_labels)
        elif path in ("SEARCHER.searcher.deletedDocs", "SEARCHER.searcher.maxDoc",
                      "SEARCHER.searcher.numDocs"):
            samples.append(_sample("core_searcher_documents", json_float(value), category, core, leaf, *cloud))
        elif category == "UPDATE" and handler == "updateHandler" and len(parts) == 3:
            mapping = _UPDATE_HANDLER.get(leaf)
            if mapping is not None:
                metric, from_meter = mapping
                number = _count(value) if from_meter else json_float(value)
                samples.append(_sample(metric, number, *handler_labels))
    return samples


def _replication_samples(fetcher: Any, labels: tuple[str, ...]) -> list[Sample]:
    return [
        _sample("core_replication_last_success",
                parse_replication_timestamp(json_get(fetcher, "indexReplicatedAt")), *labels),
        _sample("core_replication_last_fail",
                parse_replication_timestamp(json_get(fetcher, "replicationFailedAt")), *labels),
        _sample("core_replication_success_count",
                json_float(json_get(fetcher, "timesIndexReplicated")), *labels),
        _sample("core_replication_fail_count",
                json_float(json_get(fetcher, "timesFailed")), *labels),
        _sample("core_replication_replicating",
                json_float(json_get(fetcher, "isReplicating")), *labels),
        _sample("core_replication_last_cycle_downloaded_bytes",
                json_float(json_get(fetcher, "lastCycleBytesDownloaded")), *labels),
    ]


# ── Entry points ────────────────────────────────────────────────────

def extract_admin_metrics(payload: Any) -> list[Sample]:
    """Map every recognised key of an ``/admin/metrics`` document to samples."""
    registries = json_get(payload, "metrics")
    if not isinstance(registries, dict):
        raise DecodeError("admin metrics payload has no 'metrics' object")

    samples: list[Sample] = []
    for name, registry in registries.items():
        if not isinstance(registry, dict):
            continue
        if name == "solr.jetty":
            samples += _jetty_samples(registry)
        elif name.startswith("solr.jvm"):
            samples += _jvm_samples(registry)
        elif name.startswith("solr.node"):
            samples += _node_samples(registry)
        elif name.startswith("solr.core."):
            samples += _core_samples(name, registry)
    return samples


async def collect_admin_metrics(client: SolrClient, cores: list[CoreInfo]) -> list[Sample]:
    payload = await client.get_json(ADMIN_METRICS_PATH, ADMIN_METRICS_PARAMS)
    samples = extract_admin_metrics(payload)
    logger.debug("Collected %d aggregate metric samples", len(samples))
    return samples
