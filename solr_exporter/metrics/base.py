"""Shared types and JSON helpers for metric extraction."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Sample:
    """A single canonical value bound for one metric descriptor."""
    metric: str
    value: float
    labels: tuple[str, ...] = ()


@dataclass(frozen=True)
class MetricDescriptor:
    """Name, help text, ordered label names and kind of one metric family."""
    name: str
    help: str
    labels: tuple[str, ...] = ()
    kind: str = "gauge"  # gauge | counter


def describe(
    prefix: str, helps: dict[str, str], labels: tuple[str, ...] = (),
    counters: frozenset[str] = frozenset(),
) -> dict[str, MetricDescriptor]:
    """Build descriptors ``{prefix}_{suffix}`` sharing one label schema."""
    return {
        f"{prefix}_{suffix}": MetricDescriptor(
            name=f"{prefix}_{suffix}",
            help=text,
            labels=labels,
            kind="counter" if suffix in counters else "gauge",
        )
        for suffix, text in helps.items()
    }


@dataclass(frozen=True)
class FieldError:
    """A recoverable coercion problem, reported but not fatal."""
    core: str
    handler: str
    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.core}/{self.handler}: {self.field}: {self.message}"


@dataclass
class ExtractionResult:
    """Samples produced for one core plus everything that went wrong."""
    samples: list[Sample] = field(default_factory=list)
    errors: list[Exception | FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


# ── JSON helpers (lenient lookups over decoded Solr payloads) ───────

def json_get(obj: Any, *keys: str, default: Any = None) -> Any:
    """Walk nested mappings by key, returning *default* on any miss."""
    for key in keys:
        if not isinstance(obj, dict) or key not in obj:
            return default
        obj = obj[key]
    return obj


def json_float(value: Any, default: float = 0.0) -> float:
    """Coerce a decoded JSON scalar to float.

    Booleans map to 1/0 and numeric strings are parsed; anything else
    (objects, arrays, null, junk strings) yields *default*.
    """
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return default
    return default
