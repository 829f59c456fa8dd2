"""JVM collector — ``/admin/metrics?group=jvm`` as label-less ``solr_jvm_*`` metrics."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter

from solr_exporter.errors import DecodeError
from solr_exporter.metrics.base import MetricDescriptor, Sample, json_get
from solr_exporter.metrics.models import JVM_KEYS, JvmFlatValues, JvmWrappedValues, jvm_attr
from solr_exporter.metrics.normalize import decode_first, jvm_value

if TYPE_CHECKING:
    from solr_exporter.client import SolrClient
    from solr_exporter.metrics.discovery import CoreInfo

logger = logging.getLogger(__name__)

JVM_PATH = "/admin/metrics"
JVM_PARAMS = {"group": "jvm", "wt": "json"}

# Solr key -> (metric suffix, help, counter?)
_JVM_METRICS: dict[str, tuple[str, str, bool]] = {
    "gc.ConcurrentMarkSweep.count": ("gc_concurrentmarksweep_count", "Garbage collector concurrent mark sweep count.", True),
    "gc.ConcurrentMarkSweep.time": ("gc_concurrentmarksweep_time", "Garbage collector concurrent mark sweep time in milliseconds.", True),
    "gc.ParNew.count": ("gc_parnew_count", "Garbage collector parnew count.", True),
    "gc.ParNew.time": ("gc_parnew_time", "Garbage collector parnew time in milliseconds.", True),
    "memory.heap.committed": ("memory_heap_committed", "JVM memory heap committed bytes.", False),
    "memory.heap.init": ("memory_heap_init", "JVM memory heap initial bytes.", False),
    "memory.heap.max": ("memory_heap_max", "JVM memory heap max bytes.", False),
    "memory.heap.usage": ("memory_heap_usage", "JVM memory heap usage ratio.", False),
    "memory.heap.used": ("memory_heap_used", "JVM memory heap used bytes.", False),
    "memory.non-heap.committed": ("memory_nonheap_committed", "JVM memory non heap committed bytes.", False),
    "memory.non-heap.init": ("memory_nonheap_init", "JVM memory non heap initial bytes.", False),
    "memory.non-heap.max": ("memory_nonheap_max", "JVM memory non heap max bytes.", False),
    "memory.non-heap.usage": ("memory_nonheap_usage", "JVM memory non heap usage ratio.", False),
    "memory.non-heap.used": ("memory_nonheap_used", "JVM memory non heap used bytes.", False),
    "memory.total.committed": ("memory_total_committed", "JVM memory total committed bytes.", False),
    "memory.total.init": ("memory_total_init", "JVM memory total initial bytes.", False),
    "memory.total.max": ("memory_total_max", "JVM memory total max bytes.", False),
    "memory.total.used": ("memory_total_used", "JVM memory total used bytes.", False),
    "os.availableProcessors": ("os_availableprocessors", "Available number of processors.", False),
    "os.committedVirtualMemorySize": ("os_committedvirtualmemorysize", "Operating system committed virtual memory size in bytes.", False),
    "os.freePhysicalMemorySize": ("os_freephysicalmemorysize", "Operating system free physical memory in bytes.", False),
    "os.freeSwapSpaceSize": ("os_freeswapspacesize", "Operating system free swap memory in bytes.", False),
    "os.maxFileDescriptorCount": ("os_maxfiledescriptorcount", "Operating system maximum number of open file descriptors.", False),
    "os.openFileDescriptorCount": ("os_openfiledescriptorcount", "Operating system current number of open file descriptors.", False),
    "os.processCpuTime": ("os_processcputime", "Time the process was running on the cpu in milliseconds.", True),
    "os.systemLoadAverage": ("os_systemloadaverage", "Operating system load average.", False),
    "os.totalPhysicalMemorySize": ("os_totalphysicalmemorysize", "Operating system total physical memory size in bytes.", False),
    "os.totalSwapSpaceSize": ("os_totalswapspacesize", "Operating system total swap memory size in bytes.", False),
    "threads.blocked.count": ("threads_blocked_count", "Count of blocked threads.", False),
    "threads.daemon.count": ("threads_daemon_count", "Count of daemon threads.", False),
    "threads.deadlock.count": ("threads_deadlock_count", "Count of deadlocked threads.", False),
    "threads.new.count": ("threads_new_count", "Count of new threads.", False),
    "threads.runnable.count": ("threads_runnable_count", "Count of runnable threads.", False),
    "threads.terminated.count": ("threads_terminated_count", "Count of terminated threads.", False),
    "threads.timed_waiting.count": ("threads_timedwaiting_count", "Count of threads in timed_waiting state.", False),
    "threads.waiting.count": ("threads_waiting_count", "Count of waiting threads.", False),
}

JVM_DESCRIPTORS: dict[str, MetricDescriptor] = {
    f"solr_jvm_{suffix}": MetricDescriptor(
        name=f"solr_jvm_{suffix}",
        help=text,
        kind="counter" if counter else "gauge",
    )
    for suffix, text, counter in (_JVM_METRICS[key] for key in JVM_KEYS)
}

# Solr 7+ flat values first, then the Solr 6 {"value": x} wrapping.
_JVM_ADAPTERS = (TypeAdapter(JvmFlatValues), TypeAdapter(JvmWrappedValues))


def extract_jvm(payload: Any) -> list[Sample]:
    """Decode ``metrics["solr.jvm"]`` in either known shape into samples."""
    section = json_get(payload, "metrics", "solr.jvm")
    if not isinstance(section, dict):
        raise DecodeError("jvm metrics payload has no 'metrics.solr.jvm' object")

    values, shape = decode_first(section, _JVM_ADAPTERS)
    if shape:
        logger.debug("JVM metrics use the wrapped value shape")
    dumped = values.model_dump()
    return [
        Sample(f"solr_jvm_{_JVM_METRICS[key][0]}", jvm_value(dumped[jvm_attr(key)]))
        for key in JVM_KEYS
    ]


async def collect_jvm(client: SolrClient, cores: list[CoreInfo]) -> list[Sample]:
    payload = await client.get_json(JVM_PATH, JVM_PARAMS)
    return extract_jvm(payload)
