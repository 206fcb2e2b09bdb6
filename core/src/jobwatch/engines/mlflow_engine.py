from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Sequence
from datetime import UTC, datetime
from typing import Any

from jobwatch.contracts.metrics import GaugeResult, MetricKind, MetricName, MetricResult
from jobwatch.contracts.service_metrics import RemoteMetric, RemoteMetricName
from jobwatch.contracts.state import ExecutionState
from jobwatch.metrics.merge import GaugeMerge

try:
    import mlflow as _mlflow
except Exception:  # pragma: no cover - handled via runtime error
    _mlflow = None

MLFLOW_NAMESPACE = "mlflow"

_logger = logging.getLogger("jobwatch.engines.mlflow")


def _require_mlflow() -> Any:
    if _mlflow is None:
        raise RuntimeError(
            "mlflow is not installed. Install mlflow or provide a fake module for tests."
        )
    return _mlflow


def create_mlflow_client(tracking_uri: str | None = None) -> Any:
    return _require_mlflow().MlflowClient(tracking_uri=tracking_uri)


class MlflowRunHandle:
    """
    JobHandle observing an MLflow run.

    MLflow has no blocking wait, so wait_until_finish() polls the run status.
    """

    def __init__(
        self,
        run_id: str,
        *,
        client: Any | None = None,
        tracking_uri: str | None = None,
        poll_interval_s: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if poll_interval_s <= 0:
            raise ValueError("poll_interval_s must be > 0")
        self._run_id = run_id
        self._client = client if client is not None else create_mlflow_client(tracking_uri)
        self._poll_interval_s = poll_interval_s
        self._sleep = sleep

    @property
    def job_id(self) -> str | None:
        return self._run_id

    @property
    def client(self) -> Any:
        return self._client

    def wait_until_finish(self) -> ExecutionState:
        while True:
            state = self.current_state()
            if self.is_terminal_state(state):
                return state
            _logger.debug("Run %s is %s; polling again in %ss", self._run_id, state, self._poll_interval_s)
            self._sleep(self._poll_interval_s)

    def current_state(self) -> ExecutionState:
        run = self._client.get_run(self._run_id)
        return _map_run_status(run.info.status)

    def is_terminal_state(self, state: ExecutionState) -> bool:
        return state.is_terminal


class MlflowMetricsQuery:
    """
    MetricsQuery over an MLflow run's metric history.

    MLflow only records point values, so every metric is exposed as a gauge
    per MLflow step; values are committed once the run is FINISHED.
    """

    def __init__(self, run_id: str, *, client: Any) -> None:
        self._run_id = run_id
        self._client = client

    def query_all(self, kind: MetricKind) -> Iterable[MetricResult]:
        if MetricKind(kind) is not MetricKind.GAUGE:
            return []

        run = self._client.get_run(self._run_id)
        finished = _map_run_status(run.info.status) is ExecutionState.DONE
        merge = GaugeMerge()
        rows: list[MetricResult] = []
        for key in sorted(run.data.metrics):
            latest_per_step: dict[str, GaugeResult] = {}
            for entry in self._client.get_metric_history(self._run_id, key):
                step = str(entry.step)
                gauge = GaugeResult(value=float(entry.value), timestamp=_from_millis(entry.timestamp))
                current = latest_per_step.get(step)
                latest_per_step[step] = gauge if current is None else merge.combine(current, gauge)
            for step, gauge in latest_per_step.items():
                rows.append(
                    MetricResult(
                        name=MetricName(MLFLOW_NAMESPACE, key),
                        step=step,
                        attempted=gauge,
                        committed=gauge if finished else None,
                    )
                )
        return rows


class MlflowServiceMetricsFetcher:
    """Fetch the latest value of every run metric as remote service metrics."""

    def __init__(self, *, client: Any) -> None:
        self._client = client

    def fetch(self, job_id: str) -> Sequence[RemoteMetric]:
        run = self._client.get_run(job_id)
        metrics: list[RemoteMetric] = []
        for key in sorted(run.data.metrics):
            history = list(self._client.get_metric_history(job_id, key))
            if not history:
                continue
            latest = max(history, key=lambda entry: (entry.timestamp, entry.step))
            metrics.append(
                RemoteMetric(
                    name=RemoteMetricName(
                        name=key,
                        origin=MLFLOW_NAMESPACE,
                        context={"run_id": job_id, "step": str(latest.step)},
                    ),
                    scalar=latest.value,
                    update_time=_from_millis(latest.timestamp),
                )
            )
        return metrics


def _from_millis(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=UTC)


def _map_run_status(status: str) -> ExecutionState:
    mapping = {
        "RUNNING": ExecutionState.RUNNING,
        "SCHEDULED": ExecutionState.RUNNING,
        "FINISHED": ExecutionState.DONE,
        "FAILED": ExecutionState.FAILED,
        "KILLED": ExecutionState.CANCELLED,
    }
    return mapping.get(str(status), ExecutionState.UNKNOWN)
