"""Per-core mbeans extraction — CORE, QUERY, UPDATE and CACHE sections.

``/{core}/admin/mbeans`` answers with ``"solr-mbeans"``, a flat array that
alternates a section tag and that section's payload::

    ["CORE", {...}, "QUERYHANDLER", {...}, "UPDATEHANDLER", {...}, "CACHE", {...}]

Each payload maps a handler name to ``{"class": ..., "stats": {...}}``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

from pydantic import TypeAdapter, ValidationError

from solr_exporter.errors import DecodeError, StructuralDecodeError
from solr_exporter.metrics.base import ExtractionResult, FieldError, Sample, describe
from solr_exporter.metrics.models import (
    CacheBean,
    CoreBean,
    LegacyCacheBean,
    MBeansDocument,
    QueryHandlerBean,
    UpdateHandlerBean,
)
from solr_exporter.metrics.normalize import (
    decode_first,
    parse_autocommit_max_time,
    parse_ratio,
    resolve_rates,
    rewrite_nan,
    strip_cache_prefixes,
)

logger = logging.getLogger(__name__)

MBEANS_PATH = "/{core}/admin/mbeans"
MBEANS_PARAMS = [
    ("stats", "true"),
    ("wt", "json"),
    ("cat", "CORE"),
    ("cat", "QUERYHANDLER"),
    ("cat", "UPDATEHANDLER"),
    ("cat", "CACHE"),
]

HANDLER_LABELS = ("core", "handler", "class")

QUERY_EXCLUDED_SUBSTRINGS = (
    "@",
    "/admin",
    "/debug/dump",
    "/schema",
    "org.apache.solr.handler.admin",
)
CACHE_EXCLUDED_CLASSES = frozenset({
    "org.apache.solr.search.SolrFieldCacheMBean",
    "org.apache.solr.search.SolrFieldCacheBean",
})


# ── Descriptor tables ───────────────────────────────────────────────

CORE_DESCRIPTORS = describe("solr_core", {
    "num_docs": "Number of live documents seen by the core searcher.",
    "deleted_docs": "Number of deleted documents seen by the core searcher.",
    "max_docs": "Highest document number seen by the core searcher.",
}, labels=HANDLER_LABELS)

QUERY_DESCRIPTORS = describe("solr_queryhandler", {
    "15min_rate_reqs_per_second": "Requests per second, 15 minute rate.",
    "5min_rate_reqs_per_second": "Requests per second, 5 minute rate.",
    "75th_pc_request_time": "75th percentile request time in milliseconds.",
    "95th_pc_request_time": "95th percentile request time in milliseconds.",
    "99th_pc_request_time": "99th percentile request time in milliseconds.",
    "999th_pc_request_time": "99.9th percentile request time in milliseconds.",
    "avg_requests_per_second": "Average requests per second since handler start.",
    "avg_time_per_request": "Average request time in milliseconds.",
    "errors": "Number of requests that raised an error.",
    "handler_start": "Handler start time, epoch milliseconds.",
    "median_request_time": "Median request time in milliseconds.",
    "requests": "Number of requests served.",
    "timeouts": "Number of requests that timed out.",
    "total_time": "Total time spent serving requests in milliseconds.",
}, labels=HANDLER_LABELS)

UPDATE_DESCRIPTORS = describe("solr_updatehandler", {
    "adds": "Documents added since the last commit.",
    "autocommit_max_docs": "Pending documents that trigger an autocommit.",
    "autocommit_max_time": "Maximum time between autocommits in milliseconds.",
    "autocommits": "Number of autocommits.",
    "commits": "Number of commits.",
    "cumulative_adds": "Documents added since the core started.",
    "cumulative_deletes_by_id": "Deletes by id since the core started.",
    "cumulative_deletes_by_query": "Deletes by query since the core started.",
    "cumulative_errors": "Update errors since the core started.",
    "deletes_by_id": "Deletes by id since the last commit.",
    "deletes_by_query": "Deletes by query since the last commit.",
    "docs_pending": "Documents waiting for a commit.",
    "errors": "Update errors since the last commit.",
    "expunge_deletes": "Number of commits with expungeDeletes.",
    "optimizes": "Number of optimize operations.",
    "rollbacks": "Number of rollbacks.",
    "soft_autocommits": "Number of soft autocommits.",
}, labels=HANDLER_LABELS)

CACHE_DESCRIPTORS = describe("solr_cache", {
    "cumulative_evictions": "Evictions since the core started.",
    "cumulative_hitratio": "Hit ratio since the core started.",
    "cumulative_hits": "Hits since the core started.",
    "cumulative_inserts": "Inserts since the core started.",
    "cumulative_lookups": "Lookups since the core started.",
    "evictions": "Evictions for the current searcher.",
    "hitratio": "Hit ratio for the current searcher.",
    "hits": "Hits for the current searcher.",
    "inserts": "Inserts for the current searcher.",
    "lookups": "Lookups for the current searcher.",
    "size": "Number of entries in the cache.",
    "warmup_time": "Autowarm time of the current searcher in milliseconds.",
}, labels=HANDLER_LABELS)


# ── Section lookup ──────────────────────────────────────────────────

def _pairs(entries: list[Any]) -> list[tuple[str, Any]]:
    """Check the tag/payload alternation and return it as pairs."""
    if len(entries) % 2:
        raise StructuralDecodeError(
            f"solr-mbeans has odd length {len(entries)}; tags and payloads must pair up"
        )
    pairs: list[tuple[str, Any]] = []
    for i in range(0, len(entries), 2):
        tag = entries[i]
        if not isinstance(tag, str):
            raise StructuralDecodeError(
                f"solr-mbeans position {i} holds {type(tag).__name__}, expected a section tag"
            )
        pairs.append((tag, entries[i + 1]))
    return pairs


def find_section(entries: list[Any], tag: str) -> Any | None:
    """Return the payload following *tag* (or ``{tag}HANDLER``), else None."""
    wanted = (tag, f"{tag}HANDLER")
    for name, payload in _pairs(entries):
        if name in wanted:
            return payload
    return None


def load_document(document: bytes | str | dict[str, Any]) -> list[Any]:
    """Decode an mbeans response into its ``solr-mbeans`` array."""
    if isinstance(document, (bytes, str)):
        try:
            document = json.loads(document)
        except ValueError as exc:
            raise StructuralDecodeError(f"mbeans body is not JSON: {exc}") from exc
    try:
        parsed = MBeansDocument.model_validate(document)
    except ValidationError as exc:
        raise StructuralDecodeError(f"unexpected mbeans document: {exc}") from exc
    return parsed.solr_mbeans


# ── Section decoders ────────────────────────────────────────────────

_CORE_ADAPTER = TypeAdapter(dict[str, CoreBean])
_QUERY_ADAPTER = TypeAdapter(dict[str, QueryHandlerBean])
_UPDATE_ADAPTER = TypeAdapter(dict[str, UpdateHandlerBean])
_CACHE_ADAPTERS = (
    TypeAdapter(dict[str, CacheBean]),
    TypeAdapter(dict[str, LegacyCacheBean]),
)


def _decode_required(entries: list[Any], tag: str, adapter: TypeAdapter,
                     rewrite: Callable[[Any], Any] | None = None) -> dict[str, Any]:
    payload = find_section(entries, tag)
    if payload is None:
        raise StructuralDecodeError(f"mbeans document has no {tag} section")
    if rewrite is not None:
        payload = rewrite(payload)
    try:
        return adapter.validate_python(payload)
    except ValidationError as exc:
        raise StructuralDecodeError(f"malformed {tag} section: {exc}") from exc


def _core_samples(core: str, beans: dict[str, CoreBean]) -> list[Sample]:
    samples: list[Sample] = []
    for name, bean in beans.items():
        if "@" in name:
            continue
        labels = (core, name, bean.class_name)
        stats = bean.stats
        samples += [
            Sample("solr_core_num_docs", float(stats.num_docs), labels),
            Sample("solr_core_deleted_docs", float(stats.deleted_docs), labels),
            Sample("solr_core_max_docs", float(stats.max_doc), labels),
        ]
    return samples


def _query_excluded(name: str) -> bool:
    return any(marker in name for marker in QUERY_EXCLUDED_SUBSTRINGS)


def _query_samples(core: str, beans: dict[str, QueryHandlerBean]) -> list[Sample]:
    samples: list[Sample] = []
    for name, bean in beans.items():
        if _query_excluded(name):
            continue
        labels = (core, name, bean.class_name)
        s = bean.stats
        rate_15min, rate_5min = resolve_rates(s)
        values = {
            "15min_rate_reqs_per_second": rate_15min,
            "5min_rate_reqs_per_second": rate_5min,
            "75th_pc_request_time": s.p75_request_time,
            "95th_pc_request_time": s.p95_request_time,
            "99th_pc_request_time": s.p99_request_time,
            "999th_pc_request_time": s.p999_request_time,
            "avg_requests_per_second": s.avg_requests_per_second,
            "avg_time_per_request": s.avg_time_per_request,
            "errors": s.errors,
            "handler_start": s.handler_start,
            "median_request_time": s.median_request_time,
            "requests": s.requests,
            "timeouts": s.timeouts,
            "total_time": s.total_time,
        }
        samples += [
            Sample(f"solr_queryhandler_{suffix}", float(value), labels)
            for suffix, value in values.items()
        ]
    return samples


def _update_samples(core: str, beans: dict[str, UpdateHandlerBean]) -> list[Sample]:
    samples: list[Sample] = []
    for name, bean in beans.items():
        if "@" in name or name.startswith("/"):
            continue
        labels = (core, name, bean.class_name)
        s = bean.stats
        values = {
            "adds": s.adds,
            "autocommit_max_docs": s.autocommit_max_docs,
            "autocommit_max_time": parse_autocommit_max_time(s.autocommit_max_time),
            "autocommits": s.autocommits,
            "commits": s.commits,
            "cumulative_adds": s.cumulative_adds,
            "cumulative_deletes_by_id": s.cumulative_deletes_by_id,
            "cumulative_deletes_by_query": s.cumulative_deletes_by_query,
            "cumulative_errors": s.cumulative_errors,
            "deletes_by_id": s.deletes_by_id,
            "deletes_by_query": s.deletes_by_query,
            "docs_pending": s.docs_pending,
            "errors": s.errors,
            "expunge_deletes": s.expunge_deletes,
            "optimizes": s.optimizes,
            "rollbacks": s.rollbacks,
            "soft_autocommits": s.soft_autocommits,
        }
        samples += [
            Sample(f"solr_updatehandler_{suffix}", float(value), labels)
            for suffix, value in values.items()
        ]
    return samples


def _cache_samples(
    core: str, beans: dict[str, CacheBean | LegacyCacheBean],
) -> tuple[list[Sample], list[FieldError]]:
    samples: list[Sample] = []
    errors: list[FieldError] = []
    for name, bean in beans.items():
        if bean.class_name in CACHE_EXCLUDED_CLASSES:
            continue
        labels = (core, name, bean.class_name)
        s = bean.stats

        ratios: dict[str, float] = {}
        for field_name in ("hitratio", "cumulative_hitratio"):
            ratio, problem = parse_ratio(getattr(s, field_name))
            if problem:
                errors.append(FieldError(core, name, field_name, problem))
            ratios[field_name] = ratio

        values = {
            "cumulative_evictions": s.cumulative_evictions,
            "cumulative_hitratio": ratios["cumulative_hitratio"],
            "cumulative_hits": s.cumulative_hits,
            "cumulative_inserts": s.cumulative_inserts,
            "cumulative_lookups": s.cumulative_lookups,
            "evictions": s.evictions,
            "hitratio": ratios["hitratio"],
            "hits": s.hits,
            "inserts": s.inserts,
            "lookups": s.lookups,
            "size": s.size,
            "warmup_time": s.warmup_time,
        }
        samples += [
            Sample(f"solr_cache_{suffix}", float(value), labels)
            for suffix, value in values.items()
        ]
    return samples, errors


def _prepare_cache(payload: Any) -> Any:
    return rewrite_nan(strip_cache_prefixes(payload))


# ── Entry point ─────────────────────────────────────────────────────

def extract_mbeans(core: str, document: bytes | str | dict[str, Any]) -> ExtractionResult:
    """Turn one core's mbeans document into samples.

    A missing or malformed CORE, QUERY or UPDATE section discards every
    sample of the core and returns the structural error.  CACHE problems
    are reported alongside the samples already extracted.
    """
    try:
        entries = load_document(document)
        core_beans = _decode_required(entries, "CORE", _CORE_ADAPTER)
        query_beans = _decode_required(entries, "QUERY", _QUERY_ADAPTER, rewrite_nan)
        update_beans = _decode_required(entries, "UPDATE", _UPDATE_ADAPTER)
    except StructuralDecodeError as exc:
        return ExtractionResult(errors=[exc])

    result = ExtractionResult()
    result.samples += _core_samples(core, core_beans)
    result.samples += _query_samples(core, query_beans)
    result.samples += _update_samples(core, update_beans)

    payload = find_section(entries, "CACHE")
    if payload is None:
        result.errors.append(DecodeError("mbeans document has no CACHE section"))
        return result

    try:
        cache_beans, shape = decode_first(_prepare_cache(payload), _CACHE_ADAPTERS)
    except DecodeError as exc:
        result.errors.append(DecodeError(f"CACHE section matches no known shape: {exc}"))
        return result

    if shape:
        logger.debug("Core %s reports legacy cache stats", core)
    samples, field_errors = _cache_samples(core, cache_beans)
    result.samples += samples
    result.errors += field_errors
    return result
