from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import BinaryIO, Protocol, runtime_checkable

from .metrics import MetricKind, MetricResult
from .service_metrics import RemoteMetric, ServiceMetrics
from .state import ExecutionState


@runtime_checkable
class JobHandle(Protocol):
    """
    Facade contract for a submitted pipeline job.

    The engine owns execution; this side only observes it.
    """

    @property
    def job_id(self) -> str | None:
        """Return the engine's job id, if the engine assigns one."""
        ...

    def wait_until_finish(self) -> ExecutionState:
        """Block until the job reaches a terminal state and return it."""
        ...

    def current_state(self) -> ExecutionState:
        """Return the job's state now. May raise if the job is not registered yet."""
        ...

    def is_terminal_state(self, state: ExecutionState) -> bool:
        """Return whether no further progress can happen from `state`."""
        ...


@runtime_checkable
class MetricsQuery(Protocol):
    def query_all(self, kind: MetricKind) -> Iterable[MetricResult]:
        """Return one row per (metric, step) for every metric of `kind`."""
        ...


@runtime_checkable
class RemoteMetricsFetcher(Protocol):
    def fetch(self, job_id: str) -> Sequence[RemoteMetric]:
        """Fetch service-level metrics for a job. May raise."""
        ...


@runtime_checkable
class MetricsSink(Protocol):
    def open(self, path: str) -> BinaryIO:
        """Open a writable binary handle for `path`."""
        ...


@runtime_checkable
class DocumentSerializer(Protocol):
    def serialize(self, document: ServiceMetrics) -> bytes:
        """Encode a metrics document."""
        ...
