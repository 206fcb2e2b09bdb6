from __future__ import annotations

import itertools
from datetime import UTC, datetime, timedelta

import pytest

from jobwatch.contracts.metrics import DistributionResult, GaugeResult, MetricKind, MetricValue
from jobwatch.metrics.merge import (
    CounterMerge,
    DistributionMerge,
    GaugeMerge,
    merge_optional,
    reduce_metric_values,
)

T0 = datetime(2024, 1, 1, tzinfo=UTC)


def test_counter_attempted_is_sum_for_every_step_order():
    values = {
        "a": MetricValue(3, 3),
        "b": MetricValue(11, 11),
        "c": MetricValue(-2, -2),
        "d": MetricValue(40, 40),
    }

    for order in itertools.permutations(values):
        table = {step: values[step] for step in order}
        merged = reduce_metric_values(MetricKind.COUNTER, table)
        assert merged.attempted == 52
        assert merged.committed == 52


def test_rows_scenario_missing_committed_suppresses_aggregate_committed():
    table = {
        "A": MetricValue(10, 10),
        "B": MetricValue(5, None),
        "C": MetricValue(7, 7),
    }

    merged = reduce_metric_values(MetricKind.COUNTER, table)

    assert merged.attempted == 22
    assert merged.committed is None


def test_merge_optional_requires_both_sides():
    op = CounterMerge()

    assert merge_optional(op, 1, 2) == 3
    assert merge_optional(op, 1, None) is None
    assert merge_optional(op, None, 2) is None
    assert merge_optional(op, None, None) is None


def test_distribution_merge_bounds_and_counts():
    table = {
        "read": MetricValue(DistributionResult(sum=10.0, count=4, min=1.0, max=4.0)),
        "parse": MetricValue(DistributionResult(sum=30.0, count=2, min=12.0, max=18.0)),
        "write": MetricValue(DistributionResult(sum=-5.0, count=5, min=-3.0, max=2.0)),
    }

    merged = reduce_metric_values(MetricKind.DISTRIBUTION, table).attempted

    assert merged.count == 11
    assert merged.sum == pytest.approx(35.0)
    for value in table.values():
        assert merged.min <= value.attempted.min
        assert merged.max >= value.attempted.max
    assert merged.min == -3.0
    assert merged.max == 18.0


def test_distribution_mean_is_derived_after_merge():
    left = DistributionResult(sum=2.0, count=2, min=1.0, max=1.0)
    right = DistributionResult(sum=30.0, count=3, min=10.0, max=10.0)

    merged = DistributionMerge().combine(left, right)

    # Averaging the per-step means would give 5.5.
    assert merged.mean == pytest.approx(32.0 / 5)
    assert DistributionResult(sum=0.0, count=0, min=0.0, max=0.0).mean is None


def test_gauge_merge_keeps_latest_timestamp():
    older = GaugeResult(value=1.0, timestamp=T0)
    newer = GaugeResult(value=2.0, timestamp=T0 + timedelta(seconds=5))
    op = GaugeMerge()

    assert op.combine(older, newer) is newer
    assert op.combine(newer, older) is newer


def test_gauge_merge_tie_is_deterministic_for_pair_order():
    left = GaugeResult(value=1.0, timestamp=T0)
    right = GaugeResult(value=2.0, timestamp=T0)
    op = GaugeMerge()

    assert op.combine(left, right) is right
    assert op.combine(left, right) is right


def test_gauge_reduce_is_idempotent_on_single_value():
    gauge = GaugeResult(value=7.0, timestamp=T0)
    value = MetricValue(gauge, gauge)

    assert reduce_metric_values(MetricKind.GAUGE, {"only": value}) == value
    assert GaugeMerge().combine(gauge, gauge) == gauge


def test_gauge_reduce_ties_do_not_depend_on_step_order():
    tied = {
        "b": MetricValue(GaugeResult(value=2.0, timestamp=T0)),
        "a": MetricValue(GaugeResult(value=1.0, timestamp=T0)),
    }
    reversed_table = dict(reversed(list(tied.items())))

    assert reduce_metric_values(MetricKind.GAUGE, tied) == reduce_metric_values(
        MetricKind.GAUGE, reversed_table
    )


def test_reduce_empty_table_is_rejected():
    with pytest.raises(ValueError, match="empty"):
        reduce_metric_values(MetricKind.COUNTER, {})
