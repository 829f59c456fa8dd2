"""Tests for the ping collector."""

from __future__ import annotations

import httpx

from solr_exporter.metrics.discovery import CoreInfo
from solr_exporter.metrics.models import IndexStats
from solr_exporter.metrics.ping import collect_ping


def _cores(*names):
    return [CoreInfo(name=name, index=IndexStats()) for name in names]


async def test_ping_up_and_down(fake_solr):
    client = fake_solr({
        "/solr/core0/admin/ping": {"status": "OK"},
        "/solr/core1/admin/ping": (503, {"status": "FAIL"}),
    })

    samples = await collect_ping(client, _cores("core0", "core1", "core2"))

    values = {s.labels: s.value for s in samples}
    assert values == {("core0",): 1.0, ("core1",): 0.0, ("core2",): 0.0}
    await client.close()


async def test_ping_connection_error(fake_solr):
    client = fake_solr({"/solr/core0/admin/ping": httpx.ConnectError("refused")})

    samples = await collect_ping(client, _cores("core0"))

    assert [(s.metric, s.value) for s in samples] == [("solr_ping", 0.0)]
    await client.close()


async def test_ping_without_cores(fake_solr):
    client = fake_solr({})

    assert await collect_ping(client, []) == []
    assert client.requests == []
    await client.close()
