from __future__ import annotations

from pathlib import Path

from jobwatch.configuration import load_watch_config
from jobwatch.contracts.engine import (
    DocumentSerializer,
    JobHandle,
    MetricsQuery,
    MetricsSink,
    RemoteMetricsFetcher,
)
from jobwatch.contracts.watch_config import AppConfig, WatchConfig
from jobwatch.engines.mlflow_engine import (
    MlflowMetricsQuery,
    MlflowRunHandle,
    MlflowServiceMetricsFetcher,
    create_mlflow_client,
)
from jobwatch.errors import ConfigError
from jobwatch.result import PipelineResult


def track_job(
    job: JobHandle,
    *,
    metrics: MetricsQuery,
    app: AppConfig,
    fetcher: RemoteMetricsFetcher | None = None,
    sink: MetricsSink | None = None,
    serializer: DocumentSerializer | None = None,
) -> PipelineResult:
    """Wrap a submitted job and start waiting for it in the background."""
    result = PipelineResult(
        job,
        metrics=metrics,
        app=app,
        fetcher=fetcher,
        sink=sink,
        serializer=serializer,
    )
    return result.start()


def track_mlflow_run(
    run_id: str,
    *,
    config: WatchConfig,
    sink: MetricsSink | None = None,
) -> PipelineResult:
    if config.app.is_local_runner:
        raise ConfigError("watch.app.runner: MLflow runs require the 'remote' runner")
    client = create_mlflow_client(config.remote.tracking_uri)
    handle = MlflowRunHandle(
        run_id,
        client=client,
        poll_interval_s=config.remote.poll_interval_s,
    )
    return track_job(
        handle,
        metrics=MlflowMetricsQuery(run_id, client=client),
        app=config.app,
        fetcher=MlflowServiceMetricsFetcher(client=client),
        sink=sink,
    )


def track_from_yaml(config_yaml: str | Path, *, run_id: str) -> PipelineResult:
    return track_mlflow_run(run_id, config=load_watch_config(config_yaml))
