"""Async HTTP client for Solr's admin endpoints."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Sequence

import httpx

from solr_exporter.errors import DecodeError, SolrTransportError

logger = logging.getLogger(__name__)

Params = Mapping[str, str] | Sequence[tuple[str, str]] | None


class SolrClient:
    """Thin wrapper over httpx.AsyncClient rooted at ``{address}{context_path}``.

    Connection failures, timeouts and non-2xx answers all surface as
    :class:`SolrTransportError`.
    """

    def __init__(
        self,
        address: str = "http://localhost:8983",
        context_path: str = "/solr",
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = address.rstrip("/") + context_path.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def get_bytes(self, path: str, params: Params = None) -> bytes:
        url = f"{self.base_url}{path}"
        try:
            resp = await self._client.get(path, params=params)
        except httpx.TimeoutException as exc:
            raise SolrTransportError(f"timed out querying {url}", url=url) from exc
        except httpx.HTTPError as exc:
            raise SolrTransportError(f"error querying {url}: {exc}", url=url) from exc

        if not resp.is_success:
            raise SolrTransportError(
                f"Solr answered {resp.status_code} for {resp.url}",
                url=str(resp.url),
                status_code=resp.status_code,
            )
        return resp.content

    async def get_json(self, path: str, params: Params = None) -> Any:
        body = await self.get_bytes(path, params)
        try:
            return json.loads(body)
        except ValueError as exc:
            raise DecodeError(f"response from {path} is not JSON: {exc}") from exc

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> SolrClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
