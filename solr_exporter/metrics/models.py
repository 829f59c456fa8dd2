"""Pydantic shapes for the JSON documents Solr returns.

Field names follow Python conventions; the Solr key is carried as the
alias.  Every model ignores unknown keys and treats an explicit ``null`` as
"absent" so the field default applies, which mirrors how Solr omits values
it has not computed yet.
"""

from __future__ import annotations

from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    StrictStr,
    create_model,
    field_validator,
    model_validator,
)


class _SolrModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class _Bean(_SolrModel):
    """Common envelope of one mbeans entry: ``{class, stats: {...}}``."""
    class_name: str = Field("", alias="class")

    @field_validator("class_name", mode="before")
    @classmethod
    def _class_as_text(cls, value: Any) -> Any:
        return value if isinstance(value, str) else str(value)


# ── /admin/cores?action=STATUS ──────────────────────────────────────

class IndexStats(_SolrModel):
    size_in_bytes: int = Field(0, alias="sizeInBytes")
    num_docs: int = Field(0, alias="numDocs")
    max_doc: int = Field(0, alias="maxDoc")
    deleted_docs: int = Field(0, alias="deletedDocs")


class CoreStatus(_SolrModel):
    index: IndexStats = Field(default_factory=IndexStats)


class CoresStatus(_SolrModel):
    status: dict[str, CoreStatus] = Field(default_factory=dict)


# ── /{core}/admin/mbeans ────────────────────────────────────────────

class ResponseHeader(_SolrModel):
    status: int = 0
    qtime: int = Field(0, alias="QTime")


class MBeansDocument(_SolrModel):
    response_header: ResponseHeader = Field(
        default_factory=ResponseHeader, alias="responseHeader",
    )
    solr_mbeans: list[Any] = Field(alias="solr-mbeans")


class CoreBeanStats(_SolrModel):
    deleted_docs: int = Field(0, alias="deletedDocs")
    max_doc: int = Field(0, alias="maxDoc")
    num_docs: int = Field(0, alias="numDocs")


class CoreBean(_Bean):
    stats: CoreBeanStats = Field(default_factory=CoreBeanStats)


class QueryHandlerStats(_SolrModel):
    # Newer Solr releases; None means the key was not sent.
    rate_15min_reqs: float | None = Field(None, alias="15minRateReqsPerSecond")
    rate_5min_reqs: float | None = Field(None, alias="5MinRateReqsPerSecond")
    # Older releases.
    rate_15min_requests: float = Field(0.0, alias="15minRateRequestsPerSecond")
    rate_5min_requests: float = Field(0.0, alias="5minRateRequestsPerSecond")

    p75_request_time: float = Field(0.0, alias="75thPcRequestTime")
    p95_request_time: float = Field(0.0, alias="95thPcRequestTime")
    p99_request_time: float = Field(0.0, alias="99thPcRequestTime")
    p999_request_time: float = Field(0.0, alias="999thPcRequestTime")
    avg_requests_per_second: float = Field(0.0, alias="avgRequestsPerSecond")
    avg_time_per_request: float = Field(0.0, alias="avgTimePerRequest")
    errors: int = 0
    handler_start: int = Field(0, alias="handlerStart")
    median_request_time: float = Field(0.0, alias="medianRequestTime")
    requests: int = 0
    timeouts: int = 0
    total_time: float = Field(0.0, alias="totalTime")


class QueryHandlerBean(_Bean):
    stats: QueryHandlerStats = Field(default_factory=QueryHandlerStats)


class UpdateHandlerStats(_SolrModel):
    adds: int = 0
    autocommit_max_docs: int = Field(0, alias="autocommit maxDocs")
    # A duration with a unit suffix, e.g. "15000ms".
    autocommit_max_time: StrictStr | StrictInt = Field("", alias="autocommit maxTime")
    autocommits: int = 0
    commits: int = 0
    cumulative_adds: int = Field(0, alias="cumulative_adds")
    cumulative_deletes_by_id: int = Field(0, alias="cumulative_deletesById")
    cumulative_deletes_by_query: int = Field(0, alias="cumulative_deletesByQuery")
    cumulative_errors: int = Field(0, alias="cumulative_errors")
    deletes_by_id: int = Field(0, alias="deletesById")
    deletes_by_query: int = Field(0, alias="deletesByQuery")
    docs_pending: int = Field(0, alias="docsPending")
    errors: int = 0
    expunge_deletes: int = Field(0, alias="expungeDeletes")
    optimizes: int = 0
    rollbacks: int = 0
    soft_autocommits: int = Field(0, alias="soft autocommits")


class UpdateHandlerBean(_Bean):
    stats: UpdateHandlerStats = Field(default_factory=UpdateHandlerStats)


class CacheStats(_SolrModel):
    """Cache counters with ratios serialized as JSON numbers."""
    cumulative_evictions: int = 0
    cumulative_hitratio: StrictFloat = 0.0
    cumulative_hits: int = 0
    cumulative_inserts: int = 0
    cumulative_lookups: int = 0
    evictions: int = 0
    hitratio: StrictFloat = 0.0
    hits: int = 0
    inserts: int = 0
    lookups: int = 0
    size: int = 0
    warmup_time: int = Field(0, alias="warmupTime")


class LegacyCacheStats(CacheStats):
    """Solr 4.x cache counters: ratios arrive as strings like ``"0.95"``."""
    cumulative_hitratio: StrictStr | StrictFloat = "0"
    hitratio: StrictStr | StrictFloat = "0"


class CacheBean(_Bean):
    stats: CacheStats = Field(default_factory=CacheStats)


class LegacyCacheBean(_Bean):
    stats: LegacyCacheStats = Field(default_factory=LegacyCacheStats)


# ── /admin/metrics?group=jvm ────────────────────────────────────────

JVM_KEYS: tuple[str, ...] = (
    "gc.ConcurrentMarkSweep.count",
    "gc.ConcurrentMarkSweep.time",
    "gc.ParNew.count",
    "gc.ParNew.time",
    "memory.heap.committed",
    "memory.heap.init",
    "memory.heap.max",
    "memory.heap.usage",
    "memory.heap.used",
    "memory.non-heap.committed",
    "memory.non-heap.init",
    "memory.non-heap.max",
    "memory.non-heap.usage",
    "memory.non-heap.used",
    "memory.total.committed",
    "memory.total.init",
    "memory.total.max",
    "memory.total.used",
    "os.availableProcessors",
    "os.committedVirtualMemorySize",
    "os.freePhysicalMemorySize",
    "os.freeSwapSpaceSize",
    "os.maxFileDescriptorCount",
    "os.openFileDescriptorCount",
    "os.processCpuTime",
    "os.systemLoadAverage",
    "os.totalPhysicalMemorySize",
    "os.totalSwapSpaceSize",
    "threads.blocked.count",
    "threads.daemon.count",
    "threads.deadlock.count",
    "threads.new.count",
    "threads.runnable.count",
    "threads.terminated.count",
    "threads.timed_waiting.count",
    "threads.waiting.count",
)


def jvm_attr(key: str) -> str:
    """Python attribute name for a dotted JVM metric key."""
    return key.replace(".", "_").replace("-", "_").lower()


class JvmGauge(_SolrModel):
    value: StrictFloat = 0.0


def _jvm_shape(name: str, value_type: Any, default: Any) -> type[BaseModel]:
    fields = {
        jvm_attr(key): (value_type, Field(default, alias=key))
        for key in JVM_KEYS
    }
    return create_model(name, __base__=_SolrModel, **fields)


# Solr 7+: {"memory.heap.used": 123, ...}
JvmFlatValues = _jvm_shape("JvmFlatValues", StrictFloat, 0.0)
# Solr 6.x: {"memory.heap.used": {"value": 123}, ...}
JvmWrappedValues = _jvm_shape("JvmWrappedValues", JvmGauge, JvmGauge())
