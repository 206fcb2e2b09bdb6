from __future__ import annotations

import io
import threading
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from jobwatch.contracts.metrics import MetricKind, MetricName, MetricResult
from jobwatch.contracts.service_metrics import RemoteMetric
from jobwatch.contracts.state import ExecutionState


@dataclass(frozen=True, slots=True)
class EngineCall:
    """Record of a collaborator call for assertions in tests."""

    name: str
    kwargs: dict[str, Any]


class FakeJobHandle:
    """
    Scriptable JobHandle for unit tests.

    `wait_until_finish()` blocks until `finish()` is called (or returns at once
    when `final_state` is given up front). `current_state()` raises until the
    job is registered.
    """

    def __init__(
        self,
        *,
        final_state: ExecutionState | None = None,
        job_id: str | None = None,
        registered: bool = True,
        wait_error: Exception | None = None,
    ) -> None:
        self._job_id = job_id
        self._lock = threading.Lock()
        self._finished = threading.Event()
        self._registered = registered
        self._state = ExecutionState.RUNNING
        self._wait_error = wait_error
        self._calls: list[EngineCall] = []
        if final_state is not None:
            self.finish(final_state)

    @property
    def job_id(self) -> str | None:
        return self._job_id

    @property
    def calls(self) -> list[EngineCall]:
        with self._lock:
            return list(self._calls)

    def register(self) -> None:
        with self._lock:
            self._registered = True

    def set_state(self, state: ExecutionState) -> None:
        with self._lock:
            self._state = state

    def finish(self, state: ExecutionState = ExecutionState.DONE) -> None:
        with self._lock:
            self._registered = True
            self._state = state
        self._finished.set()

    def wait_until_finish(self) -> ExecutionState:
        self._record("wait_until_finish")
        self._finished.wait()
        if self._wait_error is not None:
            raise self._wait_error
        with self._lock:
            return self._state

    def current_state(self) -> ExecutionState:
        self._record("current_state")
        with self._lock:
            if not self._registered:
                raise RuntimeError("Job is not registered yet")
            return self._state

    def is_terminal_state(self, state: ExecutionState) -> bool:
        return state.is_terminal

    def _record(self, name: str, **kwargs: Any) -> None:
        with self._lock:
            self._calls.append(EngineCall(name=name, kwargs=kwargs))


class FakeMetricsQuery:
    """In-memory MetricsQuery counting how often each kind is queried."""

    def __init__(self, rows: Iterable[tuple[MetricKind, MetricResult]] = ()) -> None:
        self._rows: list[tuple[MetricKind, MetricResult]] = list(rows)
        self._lock = threading.Lock()
        self.query_counts: dict[MetricKind, int] = {kind: 0 for kind in MetricKind}

    def add(
        self,
        kind: MetricKind,
        name: MetricName | str,
        step: str,
        attempted: Any,
        committed: Any | None = None,
    ) -> FakeMetricsQuery:
        self._rows.append(
            (
                MetricKind(kind),
                MetricResult(
                    name=MetricName.parse(name),
                    step=step,
                    attempted=attempted,
                    committed=committed,
                ),
            )
        )
        return self

    def query_all(self, kind: MetricKind) -> Iterable[MetricResult]:
        kind = MetricKind(kind)
        with self._lock:
            self.query_counts[kind] += 1
        return [row for row_kind, row in self._rows if row_kind is kind]


class FakeRemoteMetricsFetcher:
    def __init__(
        self,
        metrics: Sequence[RemoteMetric] = (),
        *,
        error: Exception | None = None,
        delay_s: float = 0.0,
    ) -> None:
        self._metrics = list(metrics)
        self._error = error
        self._delay_s = delay_s
        self._lock = threading.Lock()
        self.fetched_job_ids: list[str] = []

    def fetch(self, job_id: str) -> Sequence[RemoteMetric]:
        with self._lock:
            self.fetched_job_ids.append(job_id)
        if self._delay_s:
            time.sleep(self._delay_s)
        if self._error is not None:
            raise self._error
        return list(self._metrics)


class _RecordingHandle(io.BytesIO):
    def __init__(self, sink: InMemorySink, path: str, fail_on_write: bool) -> None:
        super().__init__()
        self._sink = sink
        self._path = path
        self._fail_on_write = fail_on_write

    def write(self, data: Any) -> int:
        if self._fail_on_write:
            raise OSError(f"write failed for {self._path}")
        return super().write(data)

    def close(self) -> None:
        if not self.closed:
            self._sink.files[self._path] = self.getvalue()
            self._sink.closed_paths.append(self._path)
        super().close()


class InMemorySink:
    """MetricsSink keeping written documents in memory."""

    def __init__(self, *, fail_on_write: bool = False) -> None:
        self._fail_on_write = fail_on_write
        self.files: dict[str, bytes] = {}
        self.opened_paths: list[str] = []
        self.closed_paths: list[str] = []

    def open(self, path: str) -> _RecordingHandle:
        self.opened_paths.append(path)
        return _RecordingHandle(self, path, self._fail_on_write)
