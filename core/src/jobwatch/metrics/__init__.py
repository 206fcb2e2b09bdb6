from .aggregator import MetricsAggregator, group_by_metric
from .merge import (
    MERGE_OPERATORS,
    CounterMerge,
    DistributionMerge,
    GaugeMerge,
    MergeOperator,
    MetricValueMerge,
    merge_operator,
    merge_optional,
    reduce_metric_values,
)

__all__ = [
    "MetricsAggregator",
    "group_by_metric",
    "MERGE_OPERATORS",
    "MergeOperator",
    "CounterMerge",
    "DistributionMerge",
    "GaugeMerge",
    "MetricValueMerge",
    "merge_operator",
    "merge_optional",
    "reduce_metric_values",
]
