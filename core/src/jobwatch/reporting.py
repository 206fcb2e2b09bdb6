"""DataFrame views over per-step and aggregated metrics, for step-level debugging."""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from typing import Any

import pandas as pd

from jobwatch.contracts.metrics import MetricKind
from jobwatch.metrics.aggregator import MetricsAggregator

_COLUMNS = ["namespace", "name", "step", "attempted", "committed"]


def per_step_frame(aggregator: MetricsAggregator, kind: MetricKind) -> pd.DataFrame:
    records = [
        {
            "namespace": name.namespace,
            "name": name.name,
            "step": step,
            "attempted": _flatten(value.attempted),
            "committed": _flatten(value.committed),
        }
        for name, table in aggregator.per_step(kind).items()
        for step, value in table.items()
    ]
    frame = pd.DataFrame.from_records(records, columns=_COLUMNS)
    return frame.sort_values(["namespace", "name", "step"], ignore_index=True)


def aggregated_frame(aggregator: MetricsAggregator, kind: MetricKind) -> pd.DataFrame:
    records = [
        {
            "namespace": name.namespace,
            "name": name.name,
            "step": None,
            "attempted": _flatten(value.attempted),
            "committed": _flatten(value.committed),
        }
        for name, value in aggregator.aggregated(kind).items()
    ]
    frame = pd.DataFrame.from_records(records, columns=_COLUMNS)
    return frame.sort_values(["namespace", "name"], ignore_index=True)


def _flatten(value: Any) -> Any:
    # Keep structured values (distribution, gauge) readable in a single cell.
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    return value
