from __future__ import annotations

import json
import threading
from datetime import UTC, datetime

import pytest
import yaml

from jobwatch.assembler import ServiceMetricsAssembler
from jobwatch.contracts import AppConfig, ExecutionState, RemoteMetric, RemoteMetricName
from jobwatch.errors import PreconditionFailedError
from jobwatch.testkit.fakes import FakeJobHandle, FakeRemoteMetricsFetcher, InMemorySink
from jobwatch.version import __version__, library_version

UPDATED = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


def _remote_metric() -> RemoteMetric:
    return RemoteMetric(
        name=RemoteMetricName(name="ElementCount", origin="service", context={"step": "read"}),
        scalar=1200,
        update_time=UPDATED,
    )


def _assembler(
    job: FakeJobHandle,
    *,
    runner: str = "remote",
    fetcher: FakeRemoteMetricsFetcher | None = None,
    sink: InMemorySink | None = None,
) -> ServiceMetricsAssembler:
    return ServiceMetricsAssembler(
        job=job,
        app=AppConfig(name="daily-report", runner=runner),
        state=job.current_state,
        is_completed=lambda: job.current_state().is_terminal,
        fetcher=fetcher,
        sink=sink,
    )


def test_local_runner_uses_app_name_as_job_id_and_skips_remote():
    job = FakeJobHandle(final_state=ExecutionState.DONE, job_id="ignored")
    fetcher = FakeRemoteMetricsFetcher([_remote_metric()])

    document = _assembler(job, runner="local", fetcher=fetcher).build()

    assert document.job_name == "daily-report"
    assert document.job_id == "daily-report"
    assert document.state == "DONE"
    assert document.remote_metrics == ()
    assert document.tool_version == __version__
    assert document.library_version == library_version()
    assert fetcher.fetched_job_ids == []


def test_remote_runner_fetches_service_metrics_once():
    job = FakeJobHandle(final_state=ExecutionState.DONE, job_id="job-42")
    fetcher = FakeRemoteMetricsFetcher([_remote_metric()])
    assembler = _assembler(job, fetcher=fetcher)

    first = assembler.build()
    second = assembler.build()

    assert first.job_id == "job-42"
    assert first.remote_metrics == (_remote_metric(),)
    assert second.remote_metrics == first.remote_metrics
    assert fetcher.fetched_job_ids == ["job-42"]


def test_remote_fetch_failure_degrades_to_empty(caplog):
    job = FakeJobHandle(final_state=ExecutionState.FAILED, job_id="job-42")
    fetcher = FakeRemoteMetricsFetcher(error=ConnectionError("service down"))
    assembler = _assembler(job, fetcher=fetcher)

    outcome = assembler.fetch_remote_metrics()
    document = assembler.build()

    assert outcome.degraded is True
    assert outcome.metrics == ()
    assert "service down" in outcome.error
    assert document.remote_metrics == ()
    assert document.state == "FAILED"
    assert "Failed to fetch remote service metrics" in caplog.text
    # Degraded fetches are retried on the next export.
    assert fetcher.fetched_job_ids == ["job-42", "job-42"]


def test_build_before_terminal_state_is_a_precondition_failure():
    job = FakeJobHandle(job_id="job-42")
    fetcher = FakeRemoteMetricsFetcher([_remote_metric()])
    sink = InMemorySink()
    assembler = _assembler(job, fetcher=fetcher, sink=sink)

    with pytest.raises(PreconditionFailedError, match="has to be finished"):
        assembler.build()
    with pytest.raises(PreconditionFailedError, match="has to be finished"):
        assembler.save("metrics.json")

    assert fetcher.fetched_job_ids == []
    assert sink.opened_paths == []


def test_save_writes_json_with_stable_field_names():
    job = FakeJobHandle(final_state=ExecutionState.DONE, job_id="job-42")
    sink = InMemorySink()
    assembler = _assembler(job, fetcher=FakeRemoteMetricsFetcher([_remote_metric()]), sink=sink)

    assembler.save("exports/metrics.json")

    payload = json.loads(sink.files["exports/metrics.json"])
    assert set(payload) == {
        "toolVersion",
        "libraryVersion",
        "jobName",
        "jobId",
        "state",
        "remoteMetrics",
    }
    assert payload["remoteMetrics"] == [
        {
            "name": "ElementCount",
            "origin": "service",
            "context": {"step": "read"},
            "value": 1200,
            "updateTime": UPDATED.isoformat(),
        }
    ]
    assert sink.closed_paths == ["exports/metrics.json"]


def test_save_picks_yaml_for_yaml_suffix():
    job = FakeJobHandle(final_state=ExecutionState.DONE, job_id="job-42")
    sink = InMemorySink()

    _assembler(job, runner="local", sink=sink).save("exports/metrics.yaml")

    payload = yaml.safe_load(sink.files["exports/metrics.yaml"])
    assert payload["jobId"] == "daily-report"
    assert payload["remoteMetrics"] == []


def test_save_closes_handle_when_write_fails():
    job = FakeJobHandle(final_state=ExecutionState.DONE, job_id="job-42")
    sink = InMemorySink(fail_on_write=True)

    with pytest.raises(OSError, match="write failed"):
        _assembler(job, sink=sink).save("exports/metrics.json")

    assert sink.closed_paths == ["exports/metrics.json"]


def test_remote_runner_without_job_id_is_rejected():
    job = FakeJobHandle(final_state=ExecutionState.DONE)

    with pytest.raises(RuntimeError, match="job id"):
        _assembler(job).build()


def test_concurrent_builds_share_one_remote_fetch():
    job = FakeJobHandle(final_state=ExecutionState.DONE, job_id="job-42")
    fetcher = FakeRemoteMetricsFetcher([_remote_metric()], delay_s=0.05)
    assembler = _assembler(job, fetcher=fetcher)
    barrier = threading.Barrier(4)
    documents = []

    def export() -> None:
        barrier.wait()
        documents.append(assembler.build())

    threads = [threading.Thread(target=export) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert fetcher.fetched_job_ids == ["job-42"]
    assert [document.remote_metrics for document in documents] == [(_remote_metric(),)] * 4
