from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

from jobwatch.contracts.engine import MetricsQuery
from jobwatch.contracts.metrics import (
    MetricKind,
    MetricName,
    MetricResult,
    MetricValue,
    PerStepTable,
)
from jobwatch.errors import MetricNotFoundError
from jobwatch.metrics.merge import reduce_metric_values
from jobwatch.runtime.completion import OnceCell

_logger = logging.getLogger("jobwatch.metrics")

StepTables = Mapping[MetricName, Mapping[str, MetricValue[Any]]]


class MetricsAggregator:
    """
    Reduces per-step metric observations into one value per metric.

    The engine is queried at most once per kind; grouped tables and aggregates
    are cached for the lifetime of the aggregator and handed out as read-only
    mappings.
    """

    def __init__(self, query: MetricsQuery) -> None:
        self._query = query
        self._raw: dict[MetricKind, OnceCell[StepTables]] = {
            kind: OnceCell() for kind in MetricKind
        }
        self._aggregated: dict[MetricKind, OnceCell[Mapping[MetricName, MetricValue[Any]]]] = {
            kind: OnceCell() for kind in MetricKind
        }

    def query_all_raw(self, kind: MetricKind) -> StepTables:
        """Per-step values of every metric of one kind, queried once."""
        kind = MetricKind(kind)
        return self._raw[kind].get_or_init(lambda: self._load(kind))

    def per_step(self, kind: MetricKind) -> StepTables:
        """Same tables as query_all_raw()."""
        return self.query_all_raw(kind)

    def aggregated(self, kind: MetricKind) -> Mapping[MetricName, MetricValue[Any]]:
        """One merged value per metric of one kind."""
        kind = MetricKind(kind)
        return self._aggregated[kind].get_or_init(
            lambda: MappingProxyType(
                {
                    name: reduce_metric_values(kind, table)
                    for name, table in self.query_all_raw(kind).items()
                }
            )
        )

    def value(self, kind: MetricKind, name: MetricName | str) -> MetricValue[Any]:
        """Aggregated value of one metric; MetricNotFoundError if it never reported."""
        key = MetricName.parse(name)
        try:
            return self.aggregated(kind)[key]
        except KeyError as e:
            raise MetricNotFoundError(key) from e

    def at_steps(self, kind: MetricKind, name: MetricName | str) -> PerStepTable:
        """Copy of one metric's per-step table, empty if it never reported."""
        table = self.per_step(kind).get(MetricName.parse(name))
        return dict(table) if table is not None else {}

    def _load(self, kind: MetricKind) -> StepTables:
        rows = list(self._query.query_all(kind))
        grouped = group_by_metric(rows)
        _logger.debug(
            "Queried %d %s rows across %d metrics", len(rows), kind.value, len(grouped)
        )
        return MappingProxyType(
            {name: MappingProxyType(table) for name, table in grouped.items()}
        )


def group_by_metric(rows: Iterable[MetricResult]) -> dict[MetricName, PerStepTable]:
    grouped: dict[MetricName, PerStepTable] = {}
    for row in rows:
        table = grouped.setdefault(row.name, {})
        # One value per step; a repeated step keeps the last row.
        table[row.step] = MetricValue(attempted=row.attempted, committed=row.committed)
    return grouped
