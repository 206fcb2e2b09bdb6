from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from contextlib import closing
from pathlib import Path

from jobwatch.contracts.engine import (
    DocumentSerializer,
    JobHandle,
    MetricsSink,
    RemoteMetricsFetcher,
)
from jobwatch.contracts.outcomes import RemoteMetricsOutcome
from jobwatch.contracts.service_metrics import ServiceMetrics
from jobwatch.contracts.state import ExecutionState
from jobwatch.contracts.watch_config import AppConfig
from jobwatch.errors import require
from jobwatch.runtime.sinks import LocalFileSink, serializer_for_path
from jobwatch.version import __version__, library_version

_logger = logging.getLogger("jobwatch.assembler")


class ServiceMetricsAssembler:
    """
    Builds and saves the metrics document of a finished job.

    Remote service metrics are best-effort: a failed fetch is logged and the
    document is still produced with no remote metrics. A successful fetch is
    cached so repeated exports do not hit the service again.
    """

    def __init__(
        self,
        *,
        job: JobHandle,
        app: AppConfig,
        state: Callable[[], ExecutionState],
        is_completed: Callable[[], bool],
        fetcher: RemoteMetricsFetcher | None = None,
        sink: MetricsSink | None = None,
        serializer: DocumentSerializer | None = None,
    ) -> None:
        self._job = job
        self._app = app
        self._state = state
        self._is_completed = is_completed
        self._fetcher = fetcher
        self._sink = sink or LocalFileSink()
        self._serializer = serializer
        self._remote_lock = threading.Lock()
        self._remote: RemoteMetricsOutcome | None = None

    def job_id(self) -> str:
        if self._app.is_local_runner:
            # No remote service on the local runner: reuse the app name so the
            # document always carries a job id.
            return self._app.name
        job_id = self._job.job_id
        if not job_id:
            raise RuntimeError("Remote runner job handle did not report a job id")
        return job_id

    def fetch_remote_metrics(self) -> RemoteMetricsOutcome:
        """Remote service metrics, fetched once; a failed fetch is retried next time."""
        if self._app.is_local_runner or self._fetcher is None:
            return RemoteMetricsOutcome()
        # Held across the fetch so concurrent exports share one remote call.
        with self._remote_lock:
            if self._remote is not None:
                return self._remote
            job_id = self.job_id()
            try:
                metrics = tuple(self._fetcher.fetch(job_id))
            except Exception as exc:
                _logger.error(
                    "Failed to fetch remote service metrics for %s", job_id, exc_info=True
                )
                return RemoteMetricsOutcome.fallback(exc)
            self._remote = RemoteMetricsOutcome(metrics=metrics)
            return self._remote

    def build(self) -> ServiceMetrics:
        require(self._is_completed(), "Pipeline has to be finished to get metrics.")
        remote = self.fetch_remote_metrics()
        return ServiceMetrics(
            tool_version=__version__,
            library_version=library_version(),
            job_name=self._app.name,
            job_id=self.job_id(),
            state=str(self._state()),
            remote_metrics=tuple(remote.metrics),
        )

    def save(self, path: str | Path) -> None:
        require(self._is_completed(), "Pipeline has to be finished to save metrics.")
        serializer = self._serializer or serializer_for_path(path)
        payload = serializer.serialize(self.build())
        with closing(self._sink.open(str(path))) as out:
            out.write(payload)
        _logger.info("Saved metrics for %s to %s", self._app.name, path)
