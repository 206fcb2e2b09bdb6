"""
In-process engine for local and test runs.

Steps run sequentially on a background thread. Each step records metrics
through a StepMetrics recorder; values become committed only when the step
returns without raising.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from jobwatch.contracts.metrics import (
    DistributionResult,
    GaugeResult,
    MetricKind,
    MetricName,
    MetricResult,
)
from jobwatch.contracts.state import ExecutionState
from jobwatch.metrics.merge import merge_operator

StepFn = Callable[["StepMetrics"], None]
Clock = Callable[[], datetime]

_logger = logging.getLogger("jobwatch.engines.local")


def _utc_now() -> datetime:
    return datetime.now(UTC)


class StepMetrics:
    """Metric recorder handed to one step."""

    def __init__(self, step: str, *, clock: Clock) -> None:
        self.step = step
        self._clock = clock
        self._values: dict[tuple[MetricKind, MetricName], Any] = {}

    def inc(self, namespace: str, name: str, amount: int = 1) -> None:
        self._merge(MetricKind.COUNTER, MetricName(namespace, name), int(amount))

    def update(self, namespace: str, name: str, value: float) -> None:
        self._merge(MetricKind.DISTRIBUTION, MetricName(namespace, name), DistributionResult.of(value))

    def set(self, namespace: str, name: str, value: float) -> None:
        self._merge(
            MetricKind.GAUGE,
            MetricName(namespace, name),
            GaugeResult(value=value, timestamp=self._clock()),
        )

    def snapshot(self) -> dict[tuple[MetricKind, MetricName], Any]:
        return dict(self._values)

    def _merge(self, kind: MetricKind, name: MetricName, value: Any) -> None:
        key = (kind, name)
        current = self._values.get(key)
        self._values[key] = value if current is None else merge_operator(kind).combine(current, value)


class LocalJob:
    """
    Local runner implementing both JobHandle and MetricsQuery.

    `current_state()` raises until `run()` registers the job.
    """

    def __init__(
        self,
        steps: Mapping[str, StepFn] | Sequence[tuple[str, StepFn]],
        *,
        clock: Clock | None = None,
    ) -> None:
        self._steps = list(steps.items()) if isinstance(steps, Mapping) else list(steps)
        names = [name for name, _ in self._steps]
        if len(set(names)) != len(names):
            raise ValueError("Step names must be unique")
        self._clock = clock or _utc_now
        self._lock = threading.Lock()
        self._finished = threading.Event()
        self._cancel = threading.Event()
        self._state: ExecutionState | None = None
        self._attempted: dict[tuple[MetricKind, MetricName, str], Any] = {}
        self._committed: dict[tuple[MetricKind, MetricName, str], Any] = {}
        self._error: BaseException | None = None

    @property
    def job_id(self) -> str | None:
        return None

    @property
    def error(self) -> BaseException | None:
        return self._error

    def run(self) -> LocalJob:
        with self._lock:
            if self._state is not None:
                raise RuntimeError("LocalJob has already been started")
            self._state = ExecutionState.RUNNING
        threading.Thread(target=self._execute, name="jobwatch-local-job", daemon=True).start()
        return self

    def cancel(self) -> None:
        """Request cancellation; takes effect before the next step starts."""
        self._cancel.set()

    def wait_until_finish(self) -> ExecutionState:
        with self._lock:
            if self._state is None:
                raise RuntimeError("LocalJob has not been started")
        self._finished.wait()
        return self.current_state()

    def current_state(self) -> ExecutionState:
        with self._lock:
            if self._state is None:
                raise RuntimeError("LocalJob is not registered yet")
            return self._state

    def is_terminal_state(self, state: ExecutionState) -> bool:
        return state.is_terminal

    def query_all(self, kind: MetricKind) -> Iterable[MetricResult]:
        kind = MetricKind(kind)
        with self._lock:
            return [
                MetricResult(
                    name=name,
                    step=step,
                    attempted=value,
                    committed=self._committed.get((row_kind, name, step)),
                )
                for (row_kind, name, step), value in self._attempted.items()
                if row_kind is kind
            ]

    def _execute(self) -> None:
        final = ExecutionState.DONE
        try:
            for step, fn in self._steps:
                if self._cancel.is_set():
                    final = ExecutionState.CANCELLED
                    break
                recorder = StepMetrics(step, clock=self._clock)
                try:
                    fn(recorder)
                except Exception as exc:
                    self._publish(recorder, committed=False)
                    _logger.warning("Step %s failed", step, exc_info=True)
                    self._error = exc
                    final = ExecutionState.FAILED
                    break
                self._publish(recorder, committed=True)
        finally:
            with self._lock:
                self._state = final
            self._finished.set()

    def _publish(self, recorder: StepMetrics, *, committed: bool) -> None:
        with self._lock:
            for (kind, name), value in recorder.snapshot().items():
                key = (kind, name, recorder.step)
                self._attempted[key] = value
                if committed:
                    self._committed[key] = value
