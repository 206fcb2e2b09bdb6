from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta

import pytest

from jobwatch.api import track_job
from jobwatch.contracts import AppConfig, ExecutionState, MetricKind, MetricName
from jobwatch.engines.local import LocalJob, StepMetrics
from jobwatch.errors import ExecutionNotDoneError


class _Clock:
    def __init__(self) -> None:
        self._now = datetime(2024, 5, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now


def _read(metrics: StepMetrics) -> None:
    metrics.inc("etl", "rows", 10)
    metrics.update("etl", "latency_ms", 4.0)
    metrics.update("etl", "latency_ms", 8.0)
    metrics.set("etl", "watermark", 1.0)


def _transform(metrics: StepMetrics) -> None:
    metrics.inc("etl", "rows", 7)
    metrics.update("etl", "latency_ms", 1.0)
    metrics.set("etl", "watermark", 2.0)


def _broken(metrics: StepMetrics) -> None:
    metrics.inc("etl", "rows", 5)
    raise ValueError("bad record")


def test_local_job_requires_run_before_state_queries():
    job = LocalJob({"read": _read})

    with pytest.raises(RuntimeError, match="not registered"):
        job.current_state()
    with pytest.raises(RuntimeError, match="not been started"):
        job.wait_until_finish()


def test_local_job_tracks_and_aggregates_metrics():
    job = LocalJob({"read": _read, "transform": _transform}, clock=_Clock())
    result = track_job(job.run(), metrics=job, app=AppConfig(name="local-etl"))

    result.wait_until_done(timeout=5)

    rows = result.counter("etl:rows")
    assert rows.attempted == 17
    assert rows.committed == 17

    latency = result.distribution("etl:latency_ms").attempted
    assert (latency.sum, latency.count, latency.min, latency.max) == (13.0, 3, 1.0, 8.0)
    assert latency.mean == pytest.approx(13.0 / 3)

    watermark = result.gauge("etl:watermark")
    assert watermark.attempted.value == 2.0
    assert watermark.committed == watermark.attempted

    assert set(result.counter_at_steps(MetricName("etl", "rows"))) == {"read", "transform"}


def test_failed_step_leaves_attempted_only_values():
    job = LocalJob([("read", _read), ("broken", _broken), ("transform", _transform)])
    result = track_job(job.run(), metrics=job, app=AppConfig(name="local-etl"))

    with pytest.raises(ExecutionNotDoneError):
        result.wait_until_done(timeout=5)

    assert result.state() is ExecutionState.FAILED
    assert isinstance(job.error, ValueError)
    rows = result.counter("etl:rows")
    assert rows.attempted == 15
    assert rows.committed is None
    assert "transform" not in result.counter_at_steps("etl:rows")


def test_cancelled_job_stops_before_next_step():
    started = threading.Event()
    release = threading.Event()

    def blocking(metrics: StepMetrics) -> None:
        metrics.inc("etl", "rows", 1)
        started.set()
        release.wait(5)

    job = LocalJob([("first", blocking), ("second", _transform)])
    result = track_job(job.run(), metrics=job, app=AppConfig(name="local-etl"))

    assert started.wait(5)
    job.cancel()
    release.set()
    result.wait_until_finish(timeout=5)

    assert result.state() is ExecutionState.CANCELLED
    assert result.all_counters_at_steps()[MetricName("etl", "rows")].keys() == {"first"}


def test_local_job_rejects_duplicate_steps_and_double_run():
    with pytest.raises(ValueError, match="unique"):
        LocalJob([("a", _read), ("a", _transform)])

    job = LocalJob({"read": _read}).run()
    with pytest.raises(RuntimeError, match="already been started"):
        job.run()
    job.wait_until_finish()


def test_query_all_filters_by_kind():
    job = LocalJob({"read": _read}).run()
    job.wait_until_finish()

    counters = list(job.query_all(MetricKind.COUNTER))
    gauges = list(job.query_all(MetricKind.GAUGE))

    assert [row.name for row in counters] == [MetricName("etl", "rows")]
    assert [row.name for row in gauges] == [MetricName("etl", "watermark")]
