"""Exception types raised across the exporter."""

from __future__ import annotations


class ExporterError(Exception):
    """Base class for all exporter errors."""


class SolrTransportError(ExporterError):
    """Connection failure, timeout or non-2xx answer from Solr."""

    def __init__(self, message: str, url: str = "", status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class DecodeError(ExporterError):
    """A response body could not be decoded into the expected shape."""


class StructuralDecodeError(DecodeError):
    """The mbeans document is malformed or lacks a required section."""


class DiscoveryError(ExporterError):
    """Core discovery failed; the whole scrape cycle is abandoned."""


class LabelMismatchError(ExporterError):
    """A sample's labels do not match its metric descriptor."""
