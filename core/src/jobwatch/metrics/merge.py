"""Kind-specific merge rules used to fold per-step metric values."""

from __future__ import annotations

from collections.abc import Mapping
from functools import reduce
from typing import Any, Generic, Protocol, TypeVar

from jobwatch.contracts.metrics import (
    DistributionResult,
    GaugeResult,
    MetricKind,
    MetricValue,
)

T = TypeVar("T")


class MergeOperator(Protocol[T]):
    """Associative, commutative combination of two values of one metric kind."""

    def combine(self, left: T, right: T) -> T: ...


class CounterMerge:
    def combine(self, left: int, right: int) -> int:
        """Sum of both counts."""
        return left + right


class DistributionMerge:
    def combine(self, left: DistributionResult, right: DistributionResult) -> DistributionResult:
        """Summed sum and count, widest min/max; the mean is derived afterwards."""
        return DistributionResult(
            sum=left.sum + right.sum,
            count=left.count + right.count,
            min=min(left.min, right.min),
            max=max(left.max, right.max),
        )


class GaugeMerge:
    """
    Last writer wins.

    Workers share no global clock, so this approximates the current value.
    On an exact timestamp tie the right-hand operand is kept.
    """

    def combine(self, left: GaugeResult, right: GaugeResult) -> GaugeResult:
        return left if left.timestamp > right.timestamp else right


MERGE_OPERATORS: Mapping[MetricKind, MergeOperator[Any]] = {
    MetricKind.COUNTER: CounterMerge(),
    MetricKind.DISTRIBUTION: DistributionMerge(),
    MetricKind.GAUGE: GaugeMerge(),
}


def merge_operator(kind: MetricKind) -> MergeOperator[Any]:
    return MERGE_OPERATORS[MetricKind(kind)]


def merge_optional(operator: MergeOperator[T], left: T | None, right: T | None) -> T | None:
    # Absence on either side wins.
    if left is None or right is None:
        return None
    return operator.combine(left, right)


class MetricValueMerge(Generic[T]):
    """Lifts a value merge to MetricValue: attempted and committed merge independently."""

    def __init__(self, operator: MergeOperator[T]) -> None:
        self._operator = operator

    def combine(self, left: MetricValue[T], right: MetricValue[T]) -> MetricValue[T]:
        return MetricValue(
            attempted=self._operator.combine(left.attempted, right.attempted),
            committed=merge_optional(self._operator, left.committed, right.committed),
        )


def reduce_metric_values(kind: MetricKind, table: Mapping[str, MetricValue[Any]]) -> MetricValue[Any]:
    """
    Fold a per-step table into one value.

    Steps are visited in sorted order so the outcome never depends on how the
    engine happened to enumerate them.
    """
    if not table:
        raise ValueError("Cannot reduce an empty per-step table")
    lifted = MetricValueMerge(merge_operator(kind))
    return reduce(lifted.combine, (table[step] for step in sorted(table)))
