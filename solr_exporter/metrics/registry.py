"""Metric emission — the descriptor table, the per-cycle value set and its collector."""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily

from solr_exporter.errors import LabelMismatchError
from solr_exporter.metrics.admin import ADMIN_METRICS_DESCRIPTORS
from solr_exporter.metrics.base import MetricDescriptor, Sample
from solr_exporter.metrics.discovery import ADMIN_DESCRIPTORS
from solr_exporter.metrics.jvm import JVM_DESCRIPTORS
from solr_exporter.metrics.mbeans import (
    CACHE_DESCRIPTORS,
    CORE_DESCRIPTORS,
    QUERY_DESCRIPTORS,
    UPDATE_DESCRIPTORS,
)
from solr_exporter.metrics.ping import PING_DESCRIPTORS

UP = MetricDescriptor(name="solr_up", help="Was the last Solr query successful?")

DESCRIPTORS: Mapping[str, MetricDescriptor] = MappingProxyType({
    UP.name: UP,
    **ADMIN_DESCRIPTORS,
    **CORE_DESCRIPTORS,
    **QUERY_DESCRIPTORS,
    **UPDATE_DESCRIPTORS,
    **CACHE_DESCRIPTORS,
    **PING_DESCRIPTORS,
    **JVM_DESCRIPTORS,
    **ADMIN_METRICS_DESCRIPTORS,
})


class MetricSet:
    """Values gathered during one scrape cycle, keyed by descriptor and labels.

    Every sample is checked against its descriptor before it is stored; a
    later sample with the same labels replaces the earlier one.
    """

    def __init__(self, descriptors: Mapping[str, MetricDescriptor] = DESCRIPTORS) -> None:
        self._descriptors = descriptors
        self._values: dict[str, dict[tuple[str, ...], float]] = {}

    def reset(self) -> None:
        self._values = {}

    def validate(self, sample: Sample) -> MetricDescriptor:
        descriptor = self._descriptors.get(sample.metric)
        if descriptor is None:
            raise LabelMismatchError(f"no descriptor registered for {sample.metric}")
        if len(sample.labels) != len(descriptor.labels):
            raise LabelMismatchError(
                f"{sample.metric} expects labels {descriptor.labels}, "
                f"got {len(sample.labels)} value(s): {sample.labels}"
            )
        return descriptor

    def add(self, sample: Sample) -> None:
        self.validate(sample)
        self._values.setdefault(sample.metric, {})[tuple(sample.labels)] = float(sample.value)

    def extend(self, samples: Iterable[Sample]) -> None:
        """Validate all of *samples* first so a bad batch leaves no trace."""
        batch = list(samples)
        for sample in batch:
            self.validate(sample)
        for sample in batch:
            self._values.setdefault(sample.metric, {})[tuple(sample.labels)] = float(sample.value)

    def set(self, metric: str, value: float, labels: tuple[str, ...] = ()) -> None:
        self.add(Sample(metric, value, labels))

    def get(self, metric: str, labels: tuple[str, ...] = ()) -> float | None:
        return self._values.get(metric, {}).get(tuple(labels))

    def samples(self) -> list[Sample]:
        return [
            Sample(metric, value, labels)
            for metric, series in self._values.items()
            for labels, value in series.items()
        ]

    def families(self) -> Iterator[tuple[MetricDescriptor, dict[tuple[str, ...], float]]]:
        """Yield populated families in descriptor-table order."""
        for name, descriptor in self._descriptors.items():
            series = self._values.get(name)
            if series:
                yield descriptor, dict(series)

    def __len__(self) -> int:
        return sum(len(series) for series in self._values.values())


class SolrCollector:
    """prometheus_client custom collector rendering the current MetricSet."""

    def __init__(self, metric_set: MetricSet) -> None:
        self._metric_set = metric_set

    def describe(self) -> list:
        return []

    def collect(self) -> Iterator[GaugeMetricFamily | CounterMetricFamily]:
        for descriptor, series in self._metric_set.families():
            family_cls = CounterMetricFamily if descriptor.kind == "counter" else GaugeMetricFamily
            family = family_cls(descriptor.name, descriptor.help, labels=list(descriptor.labels))
            for labels, value in series.items():
                family.add_metric(list(labels), value)
            yield family
