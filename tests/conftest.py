"""Shared test fixtures."""

from __future__ import annotations

import copy
import json
from typing import Any, Callable

import httpx
import pytest

from solr_exporter.client import SolrClient

SOLR_ADDRESS = "http://solr.test:8983"


# ── Sample Solr payloads ─────────────────────────────────────────────

CORES_STATUS = {
    "responseHeader": {"status": 0, "QTime": 1},
    "initFailures": {},
    "status": {
        "core0": {
            "name": "core0",
            "instanceDir": "/var/solr/data/core0",
            "index": {
                "numDocs": 100,
                "maxDoc": 120,
                "deletedDocs": 20,
                "sizeInBytes": 4096,
                "version": 17,
                "segmentCount": 2,
            },
        },
    },
}

MODERN_MBEANS = {
    "responseHeader": {"status": 0, "QTime": 4},
    "solr-mbeans": [
        "CORE",
        {
            "searcher": {
                "class": "X",
                "description": "index searcher",
                "stats": {"numDocs": 100, "maxDoc": 120, "deletedDocs": 20},
            },
            "Searcher@5d6f64b1[core0] main": {
                "class": "org.apache.solr.search.SolrIndexSearcher",
                "stats": {"numDocs": 100, "maxDoc": 120, "deletedDocs": 20},
            },
        },
        "QUERYHANDLER",
        {
            "/select": {
                "class": "X",
                "stats": {
                    "15minRateReqsPerSecond": 0.5,
                    "5MinRateReqsPerSecond": 0.25,
                    "15minRateRequestsPerSecond": 9.0,
                    "5minRateRequestsPerSecond": 9.0,
                    "75thPcRequestTime": 1.5,
                    "95thPcRequestTime": 2.5,
                    "99thPcRequestTime": 3.5,
                    "999thPcRequestTime": 4.5,
                    "avgRequestsPerSecond": 0.1,
                    "avgTimePerRequest": "NaN",
                    "errors": 1,
                    "handlerStart": 1551780900000,
                    "medianRequestTime": 1.0,
                    "requests": 42,
                    "timeouts": 0,
                    "totalTime": 123.5,
                },
            },
            "/admin/luke": {"class": "org.apache.solr.handler.admin.LukeRequestHandler", "stats": {"requests": 1}},
            "/debug/dump": {"class": "org.apache.solr.handler.DumpRequestHandler", "stats": {"requests": 1}},
            "/schema": {"class": "org.apache.solr.handler.SchemaHandler", "stats": {"requests": 1}},
            "org.apache.solr.handler.admin.CoreAdminHandler": {"class": "X", "stats": {"requests": 1}},
            "SearchHandler@4f7e2b": {"class": "X", "stats": {"requests": 1}},
        },
        "UPDATEHANDLER",
        {
            "updateHandler": {
                "class": "X",
                "stats": {
                    "adds": 3,
                    "autocommit maxDocs": 1000,
                    "autocommit maxTime": "15000ms",
                    "autocommits": 2,
                    "commits": 5,
                    "cumulative_adds": 30,
                    "cumulative_deletesById": 4,
                    "cumulative_deletesByQuery": 1,
                    "cumulative_errors": 0,
                    "deletesById": 2,
                    "deletesByQuery": 0,
                    "docsPending": 3,
                    "errors": 0,
                    "expungeDeletes": 0,
                    "optimizes": 1,
                    "rollbacks": 0,
                    "soft autocommits": 7,
                },
            },
            "/update": {"class": "org.apache.solr.handler.UpdateRequestHandler", "stats": {"requests": 9}},
            "updateHandler@3a1b": {"class": "org.apache.solr.update.DirectUpdateHandler2", "stats": {"commits": 99}},
        },
        "CACHE",
        {
            "filterCache": {
                "class": "X",
                "stats": {
                    "CACHE.searcher.filterCache.lookups": 10,
                    "CACHE.searcher.filterCache.hits": 9,
                    "CACHE.searcher.filterCache.hitratio": 0.95,
                    "CACHE.searcher.filterCache.inserts": 1,
                    "CACHE.searcher.filterCache.evictions": 0,
                    "CACHE.searcher.filterCache.size": 1,
                    "CACHE.searcher.filterCache.warmupTime": 12,
                    "CACHE.searcher.filterCache.cumulative_lookups": 100,
                    "CACHE.searcher.filterCache.cumulative_hits": 90,
                    "CACHE.searcher.filterCache.cumulative_hitratio": 0.9,
                    "CACHE.searcher.filterCache.cumulative_inserts": 10,
                    "CACHE.searcher.filterCache.cumulative_evictions": 2,
                },
            },
            "fieldCache": {
                "class": "org.apache.solr.search.SolrFieldCacheBean",
                "stats": {"CACHE.core.fieldCache.entries_count": 0},
            },
        },
    ],
}

LEGACY_MBEANS = {
    "responseHeader": {"status": 0, "QTime": 2},
    "solr-mbeans": [
        "CORE",
        {
            "searcher": {
                "class": "org.apache.solr.search.SolrIndexSearcher",
                "stats": {"numDocs": 7, "maxDoc": 8, "deletedDocs": 1},
            },
        },
        "QUERYHANDLER",
        {
            "/select": {
                "class": "org.apache.solr.handler.component.SearchHandler",
                "stats": {
                    "15minRateRequestsPerSecond": 1.25,
                    "5minRateRequestsPerSecond": 0.75,
                    "requests": 12,
                    "avgTimePerRequest": 2.0,
                },
            },
        },
        "UPDATEHANDLER",
        {
            "updateHandler": {
                "class": "org.apache.solr.update.DirectUpdateHandler2",
                "stats": {"commits": 1, "autocommit maxTime": "1500ms"},
            },
        },
        "CACHE",
        {
            "queryResultCache": {
                "class": "org.apache.solr.search.LRUCache",
                "stats": {
                    "lookups": 20,
                    "hits": 19,
                    "hitratio": "0.95",
                    "cumulative_hitratio": "0.90",
                    "size": 4,
                    "warmupTime": 0,
                },
            },
            "fieldCache": {
                "class": "org.apache.solr.search.SolrFieldCacheMBean",
                "stats": {"entries_count": 3},
            },
        },
    ],
}


@pytest.fixture
def cores_status() -> dict[str, Any]:
    return copy.deepcopy(CORES_STATUS)


@pytest.fixture
def modern_mbeans() -> dict[str, Any]:
    return copy.deepcopy(MODERN_MBEANS)


@pytest.fixture
def legacy_mbeans() -> dict[str, Any]:
    return copy.deepcopy(LEGACY_MBEANS)


# ── Fake Solr over httpx.MockTransport ───────────────────────────────

Route = Any  # dict/list payload, (status, payload) tuple, or an exception instance


def _respond(route: Route, request: httpx.Request) -> httpx.Response:
    if isinstance(route, Exception):
        raise route
    status, payload = route if isinstance(route, tuple) else (200, route)
    if isinstance(payload, (bytes, str)):
        return httpx.Response(status, content=payload, request=request)
    return httpx.Response(status, content=json.dumps(payload).encode(), request=request)


@pytest.fixture
def fake_solr() -> Callable[..., SolrClient]:
    """Build a SolrClient whose requests are answered from a path map.

    Unknown paths answer 404.  Every request is recorded on the
    returned client's ``requests`` attribute.
    """
    def factory(routes: dict[str, Route], **kwargs: Any) -> SolrClient:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            route = routes.get(request.url.path)
            if route is None:
                return httpx.Response(404, content=b"not found", request=request)
            return _respond(route, request)

        client = SolrClient(
            address=SOLR_ADDRESS,
            transport=httpx.MockTransport(handler),
            **kwargs,
        )
        client.requests = seen
        return client

    return factory
