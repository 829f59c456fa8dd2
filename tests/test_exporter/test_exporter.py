"""End-to-end scrape cycles against a fake Solr."""

from __future__ import annotations

import asyncio
import copy
import logging

import httpx
import pytest
from prometheus_client.parser import text_string_to_metric_families

from solr_exporter.exporter import SolrExporter
from solr_exporter.metrics.discovery import CoreFilter

CORES = "/solr/admin/cores"
MBEANS = "/solr/{core}/admin/mbeans"


def _values(body: bytes) -> dict[tuple[str, tuple], float]:
    """Flatten exposition text into {(sample name, sorted labels): value}."""
    out = {}
    for family in text_string_to_metric_families(body.decode()):
        for sample in family.samples:
            out[(sample.name, tuple(sorted(sample.labels.items())))] = sample.value
    return out


def _two_cores(cores_status):
    status = copy.deepcopy(cores_status)
    status["status"]["core1"] = copy.deepcopy(status["status"]["core0"])
    status["status"]["core1"]["name"] = "core1"
    status["status"]["core1"]["index"]["numDocs"] = 7
    return status


@pytest.fixture
def routes(cores_status, modern_mbeans):
    return {
        CORES: cores_status,
        MBEANS.format(core="core0"): modern_mbeans,
    }


# ── Happy path ──────────────────────────────────────────────────────

async def test_single_core_cycle(fake_solr, routes):
    client = fake_solr(routes)
    exporter = SolrExporter(client)

    values = _values(await exporter.render())

    assert values[("solr_up", ())] == 1.0
    assert values[("solr_admin_num_docs", (("core", "core0"),))] == 100.0
    assert values[("solr_admin_size_in_bytes", (("core", "core0"),))] == 4096.0
    handler = (("class", "X"), ("core", "core0"), ("handler", "searcher"))
    assert values[("solr_core_num_docs", handler)] == 100.0
    select = (("class", "X"), ("core", "core0"), ("handler", "/select"))
    assert values[("solr_queryhandler_requests", select)] == 42.0
    cache = (("class", "X"), ("core", "core0"), ("handler", "filterCache"))
    assert values[("solr_cache_hitratio", cache)] == 0.95
    await client.close()


async def test_mbeans_request_parameters(fake_solr, routes):
    client = fake_solr(routes)

    assert await SolrExporter(client).scrape()

    mbeans_request = client.requests[1]
    assert mbeans_request.url.path == "/solr/core0/admin/mbeans"
    assert mbeans_request.url.params["stats"] == "true"
    assert mbeans_request.url.params.get_list("cat") == [
        "CORE", "QUERYHANDLER", "UPDATEHANDLER", "CACHE",
    ]
    await client.close()


async def test_repeated_cycles_render_identically(fake_solr, routes):
    client = fake_solr(routes)
    exporter = SolrExporter(client)

    first = await exporter.render()
    second = await exporter.render()

    assert first == second
    assert exporter.scrapes == 2
    await client.close()


async def test_concurrent_renders_each_run_a_cycle(fake_solr, routes):
    client = fake_solr(routes)
    exporter = SolrExporter(client)

    first, second = await asyncio.gather(exporter.render(), exporter.render())

    assert first == second
    assert exporter.scrapes == 2
    await client.close()


# ── Discovery and exclusion ─────────────────────────────────────────

async def test_discovery_failure_reports_only_up(fake_solr):
    client = fake_solr({CORES: (500, {"error": "boom"})})
    exporter = SolrExporter(client)

    values = _values(await exporter.render())

    assert values == {("solr_up", ()): 0.0}
    assert exporter.last_up is False
    await client.close()


async def test_excluded_core_is_not_scraped(fake_solr, cores_status, modern_mbeans):
    client = fake_solr({
        CORES: _two_cores(cores_status),
        MBEANS.format(core="core0"): modern_mbeans,
    })
    exporter = SolrExporter(client, CoreFilter(pattern="^core1$"))

    values = _values(await exporter.render())

    assert values[("solr_up", ())] == 1.0
    assert not any(dict(labels).get("core") == "core1" for _, labels in values)
    assert all("core1" not in r.url.path for r in client.requests)
    await client.close()


async def test_series_of_vanished_cores_are_dropped(fake_solr, cores_status, modern_mbeans):
    routes = {
        CORES: _two_cores(cores_status),
        MBEANS.format(core="core0"): modern_mbeans,
        MBEANS.format(core="core1"): modern_mbeans,
    }
    client = fake_solr(routes)
    exporter = SolrExporter(client)

    before = _values(await exporter.render())
    routes[CORES] = cores_status
    after = _values(await exporter.render())

    assert before[("solr_admin_num_docs", (("core", "core1"),))] == 7.0
    assert ("solr_admin_num_docs", (("core", "core1"),)) not in after
    await client.close()


# ── Failures during extraction ──────────────────────────────────────

async def test_mbeans_transport_error_aborts_cycle(fake_solr, cores_status, caplog):
    client = fake_solr({
        CORES: cores_status,
        MBEANS.format(core="core0"): httpx.ReadTimeout("slow"),
    })
    exporter = SolrExporter(client)

    with caplog.at_level(logging.ERROR, logger="solr_exporter.exporter"):
        values = _values(await exporter.render())

    assert values == {("solr_up", ()): 0.0}
    assert "core0" in caplog.text
    await client.close()


async def test_structural_error_drops_only_that_core(fake_solr, cores_status, modern_mbeans):
    client = fake_solr({
        CORES: _two_cores(cores_status),
        MBEANS.format(core="core0"): modern_mbeans,
        MBEANS.format(core="core1"): {"solr-mbeans": ["CORE"]},
    })
    exporter = SolrExporter(client)

    values = _values(await exporter.render())

    assert values[("solr_up", ())] == 1.0
    assert values[("solr_admin_num_docs", (("core", "core1"),))] == 7.0
    core_metric_cores = {
        dict(labels)["core"] for name, labels in values if name.startswith("solr_core_")
    }
    assert core_metric_cores == {"core0"}
    await client.close()


async def test_field_errors_are_logged_as_warnings(fake_solr, cores_status, legacy_mbeans, caplog):
    cache = legacy_mbeans["solr-mbeans"][7]
    cache["queryResultCache"]["stats"]["hitratio"] = "abc"
    client = fake_solr({CORES: cores_status, MBEANS.format(core="core0"): legacy_mbeans})

    with caplog.at_level(logging.WARNING, logger="solr_exporter.exporter"):
        assert await SolrExporter(client).scrape()

    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert any("hitratio" in r.getMessage() for r in warnings)
    await client.close()


# ── Optional collectors ─────────────────────────────────────────────

async def test_mbeans_disabled(fake_solr, cores_status):
    client = fake_solr({CORES: cores_status})
    exporter = SolrExporter(client, mbeans=False)

    values = _values(await exporter.render())

    assert values[("solr_up", ())] == 1.0
    assert not any(name.startswith("solr_core_") for name, _ in values)
    assert [r.url.path for r in client.requests] == [CORES]
    await client.close()


async def test_ping_collector(fake_solr, routes):
    routes["/solr/core0/admin/ping"] = {"status": "OK"}
    client = fake_solr(routes)
    exporter = SolrExporter(client, collectors=["ping"])

    values = _values(await exporter.render())

    assert values[("solr_ping", (("core", "core0"),))] == 1.0
    await client.close()


async def test_failing_collector_keeps_cycle_up(fake_solr, routes):
    client = fake_solr(routes)
    exporter = SolrExporter(client, collectors=["jvm"])

    values = _values(await exporter.render())

    assert values[("solr_up", ())] == 1.0
    assert not any(name.startswith("solr_jvm_") for name, _ in values)
    await client.close()


def test_unknown_collector_rejected(fake_solr):
    with pytest.raises(ValueError):
        SolrExporter(fake_solr({}), collectors=["bogus"])


async def test_status(fake_solr, routes):
    client = fake_solr(routes)
    exporter = SolrExporter(client, collectors=["ping"])

    assert exporter.status()["scrapes"] == 0
    await exporter.scrape()
    status = exporter.status()

    assert status["solr"] == "http://solr.test:8983/solr"
    assert status["scrapes"] == 1
    assert status["up"] is True
    assert status["collectors"] == ["mbeans", "ping"]
    assert status["last_duration_seconds"] >= 0.0
    await client.close()
