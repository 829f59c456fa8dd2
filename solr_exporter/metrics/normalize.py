"""Field normalization — reconcile version-specific Solr field shapes.

Every function here is pure.  Coercions that can fail return the fallback
value together with a message instead of raising, so callers decide
whether the problem is worth reporting.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from typing import Any, Sequence, TypeVar

from pydantic import TypeAdapter, ValidationError

from solr_exporter.errors import DecodeError
from solr_exporter.metrics.models import QueryHandlerStats

T = TypeVar("T")

NAN_TOKEN = ':"NaN"'
NAN_REPLACEMENT = ":0.0"

CACHE_KEY_PREFIXES: tuple[str, ...] = (
    "CACHE.searcher.perSegFilter.",
    "CACHE.searcher.queryResultCache.",
    "CACHE.searcher.fieldValueCache.",
    "CACHE.searcher.filterCache.",
    "CACHE.searcher.documentCache.",
)

# Go's time.UnixDate layout, which Solr uses for replication timestamps.
UNIX_DATE_FORMATS: tuple[str, ...] = (
    "%a %b %d %H:%M:%S %Z %Y",
    "%a %b %d %H:%M:%S %z %Y",
)
# Any other zone abbreviation is dropped and the time read at zero offset.
ZONE_ABBREVIATION = re.compile(
    r"^(\w{3} \w{3} \d{1,2} \d\d:\d\d:\d\d) [A-Za-z]{2,5} (\d{4})$"
)
ZONELESS_FORMAT = "%a %b %d %H:%M:%S %Y"


# ── Payload rewrites ────────────────────────────────────────────────

def _compact(fragment: Any) -> str:
    return json.dumps(fragment, separators=(",", ":"))


def rewrite_nan(fragment: Any) -> Any:
    """Replace object values serialized as the string ``"NaN"`` with 0.0."""
    text = _compact(fragment)
    if NAN_TOKEN not in text:
        return fragment
    return json.loads(text.replace(NAN_TOKEN, NAN_REPLACEMENT))


def strip_cache_prefixes(fragment: Any) -> Any:
    """Remove searcher-scoped namespaces Solr 7+ nests into cache stat keys."""
    text = _compact(fragment)
    for prefix in CACHE_KEY_PREFIXES:
        text = text.replace(prefix, "")
    return json.loads(text)


# ── Shape selection ─────────────────────────────────────────────────

def decode_first(payload: Any, adapters: Sequence[TypeAdapter[T]]) -> tuple[T, int]:
    """Validate *payload* against each adapter in priority order.

    Returns the first successful result and the index of the adapter that
    produced it.  Raises :class:`DecodeError` carrying every attempt's
    failure when no shape matches.
    """
    failures: list[str] = []
    for index, adapter in enumerate(adapters):
        try:
            return adapter.validate_python(payload), index
        except ValidationError as exc:
            failures.append(f"shape {index}: {exc.error_count()} error(s), first: "
                            f"{exc.errors()[0]['loc']} {exc.errors()[0]['msg']}")
    raise DecodeError("; ".join(failures) or "no candidate shapes")


# ── Scalar coercions ────────────────────────────────────────────────

def resolve_rates(stats: QueryHandlerStats) -> tuple[float, float]:
    """Return ``(15min, 5min)`` request rates regardless of key naming.

    The newer keys win as soon as either of them was sent; a missing
    partner then counts as zero.  Only when both are absent do the legacy
    keys apply.
    """
    if stats.rate_15min_reqs is None and stats.rate_5min_reqs is None:
        return float(stats.rate_15min_requests), float(stats.rate_5min_requests)
    return float(stats.rate_15min_reqs or 0.0), float(stats.rate_5min_reqs or 0.0)


def parse_ratio(value: Any) -> tuple[float, str | None]:
    """Coerce a hit ratio sent as a number or a numeric string."""
    if isinstance(value, bool):
        return 0.0, f"unexpected boolean ratio {value!r}"
    if isinstance(value, (int, float)):
        return float(value), None
    if isinstance(value, str):
        try:
            return float(value), None
        except ValueError:
            return 0.0, f"cannot convert {value!r} to float"
    return 0.0, f"unexpected ratio type {type(value).__name__}"


def parse_autocommit_max_time(value: Any) -> int:
    """Parse ``"15000ms"`` into 15000.

    The last two characters are the unit.  Strings of two characters or
    fewer, or a remainder that is not an integer, give 0.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if not isinstance(value, str) or len(value) <= 2:
        return 0
    try:
        return int(value[:-2])
    except ValueError:
        return 0


def ms_to_seconds(value: float) -> float:
    return value / 1000.0


def parse_replication_timestamp(value: Any) -> float:
    """Epoch seconds for a replication timestamp, or 0.0 when unusable."""
    if not isinstance(value, str) or not value.strip():
        return 0.0
    text = " ".join(value.split())
    for fmt in UNIX_DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            # %Z only matches UTC, GMT and the local zone names.
            parsed = parsed.replace(tzinfo=timezone.utc)
        return float(parsed.timestamp())

    match = ZONE_ABBREVIATION.match(text)
    if match is None:
        return 0.0
    try:
        parsed = datetime.strptime(f"{match.group(1)} {match.group(2)}", ZONELESS_FORMAT)
    except ValueError:
        return 0.0
    return float(parsed.replace(tzinfo=timezone.utc).timestamp())


def jvm_value(raw: Any) -> float:
    """Unwrap Solr 6 ``{"value": x}`` JVM gauges; plain numbers pass through."""
    if isinstance(raw, dict):
        raw = raw.get("value")
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return 0.0
    return float(raw)
