from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from jobwatch.assembler import ServiceMetricsAssembler
from jobwatch.contracts.engine import (
    DocumentSerializer,
    JobHandle,
    MetricsQuery,
    MetricsSink,
    RemoteMetricsFetcher,
)
from jobwatch.contracts.metrics import (
    DistributionResult,
    GaugeResult,
    MetricKind,
    MetricName,
    MetricValue,
    PerStepTable,
)
from jobwatch.contracts.outcomes import StateOutcome
from jobwatch.contracts.service_metrics import ServiceMetrics
from jobwatch.contracts.state import ExecutionState
from jobwatch.contracts.watch_config import AppConfig
from jobwatch.errors import ExecutionNotDoneError, WaitTimeoutError, require
from jobwatch.metrics.aggregator import MetricsAggregator, StepTables
from jobwatch.runtime.completion import CompletionSignal

_logger = logging.getLogger("jobwatch.result")

MetricKey = MetricName | str


class PipelineResult:
    """
    Observable result of a submitted pipeline job.

    A single background thread performs the engine's blocking wait; callers
    observe completion through `wait_until_finish()` / `final_state()` and
    query aggregated metrics once the job is terminal.
    """

    def __init__(
        self,
        job: JobHandle,
        *,
        metrics: MetricsQuery,
        app: AppConfig,
        fetcher: RemoteMetricsFetcher | None = None,
        sink: MetricsSink | None = None,
        serializer: DocumentSerializer | None = None,
    ) -> None:
        self._job = job
        self._app = app
        self._aggregator = MetricsAggregator(metrics)
        self._assembler = ServiceMetricsAssembler(
            job=job,
            app=app,
            state=self.state,
            is_completed=self._has_finished,
            fetcher=fetcher,
            sink=sink,
            serializer=serializer,
        )
        self._signal: CompletionSignal[ExecutionState] = CompletionSignal()
        self._state_lock = threading.Lock()
        self._last_known_state = ExecutionState.UNKNOWN
        self._state_listeners: list[Callable[[ExecutionState], None]] = []
        self._listeners_notified = False
        self._start_lock = threading.Lock()
        self._thread: threading.Thread | None = None

    @property
    def job(self) -> JobHandle:
        return self._job

    @property
    def aggregator(self) -> MetricsAggregator:
        return self._aggregator

    @property
    def last_known_state(self) -> ExecutionState:
        """State recorded by the background wait, UNKNOWN until it reports."""
        with self._state_lock:
            return self._last_known_state

    # Completion tracking

    def start(self) -> PipelineResult:
        with self._start_lock:
            if self._thread is None:
                self._thread = threading.Thread(
                    target=self._await_terminal_state,
                    name=f"jobwatch-wait-{self._app.name}",
                    daemon=True,
                )
                self._thread.start()
        return self

    def add_done_callback(self, callback: Callable[[PipelineResult], None]) -> None:
        """Call `callback(result)` once, after the completion signal fires."""
        self._signal.add_done_callback(lambda _signal: callback(self))

    def add_state_listener(self, listener: Callable[[ExecutionState], None]) -> None:
        """
        Call `listener(state)` once with the state the engine's wait returned.

        Listeners run on the background thread before the configured metrics
        document is saved; one registered after that point runs immediately.
        """
        with self._state_lock:
            if not self._listeners_notified:
                self._state_listeners.append(listener)
                return
            state = self._last_known_state
        self._notify(listener, state)

    def wait_until_finish(self, timeout: float | None = None) -> PipelineResult:
        """Wait until the job finishes; the job keeps running if the wait times out."""
        self.start()
        if not self._signal.wait(timeout):
            raise WaitTimeoutError(
                f"Job {self._app.name} did not finish within {timeout}s (state {self.state()})"
            )
        return self

    def wait_until_done(self, timeout: float | None = None) -> PipelineResult:
        """
        Wait until the job finishes with DONE (as opposed to CANCELLED, FAILED
        or STOPPED). Raise ExecutionNotDoneError otherwise.
        """
        self.wait_until_finish(timeout)
        state = self.state()
        if state is not ExecutionState.DONE:
            raise ExecutionNotDoneError(state)
        return self

    def final_state(self, timeout: float | None = None) -> ExecutionState:
        """Final state once finished; re-raises the error of a failed background wait."""
        self.start()
        return self._signal.result(timeout)

    def is_completed(self) -> bool:
        outcome = self.query_state()
        if outcome.degraded:
            return False
        return self._job.is_terminal_state(outcome.state)

    def state(self) -> ExecutionState:
        return self.query_state().state

    def query_state(self) -> StateOutcome:
        try:
            return StateOutcome(state=self._job.current_state())
        except Exception as exc:
            _logger.debug("State query failed for %s", self._app.name, exc_info=True)
            return StateOutcome.fallback(exc)

    def _record_state(self, state: ExecutionState) -> None:
        with self._state_lock:
            self._last_known_state = state

    def _notify_state_listeners(self, state: ExecutionState) -> None:
        with self._state_lock:
            listeners, self._state_listeners = self._state_listeners, []
            self._listeners_notified = True
        for listener in listeners:
            self._notify(listener, state)

    def _notify(self, listener: Callable[[ExecutionState], None], state: ExecutionState) -> None:
        try:
            listener(state)
        except Exception:
            _logger.warning("State listener %r failed", listener, exc_info=True)

    def _await_terminal_state(self) -> None:
        try:
            state = self._job.wait_until_finish()
            self._record_state(state)
            self._notify_state_listeners(state)
            if self._app.metrics_location is not None:
                self._save_metrics_best_effort(self._app.metrics_location)
            final = self.state()
        except Exception as exc:
            self._record_state(self.state())
            _logger.warning("Waiting for %s failed", self._app.name, exc_info=True)
            self._signal.set_exception(exc)
            return
        _logger.info("Job %s finished with state %s", self._app.name, final)
        self._signal.set_result(final)

    def _save_metrics_best_effort(self, location: str) -> None:
        try:
            self.save_metrics(location)
        except Exception:
            _logger.warning(
                "Job %s finished but saving metrics to %s failed",
                self._app.name,
                location,
                exc_info=True,
            )

    # Service metrics

    def get_metrics(self) -> ServiceMetrics:
        """Metrics document of the finished job."""
        return self._assembler.build()

    def save_metrics(self, path: str | Path) -> None:
        """Save the metrics document of the finished job."""
        self._assembler.save(path)

    # Aggregated metrics

    def counter(self, name: MetricKey) -> MetricValue[int]:
        """Aggregated value of a single counter."""
        return self._value(MetricKind.COUNTER, name)

    def distribution(self, name: MetricKey) -> MetricValue[DistributionResult]:
        """Aggregated value of a single distribution."""
        return self._value(MetricKind.DISTRIBUTION, name)

    def gauge(self, name: MetricKey) -> MetricValue[GaugeResult]:
        """Latest value of a single gauge."""
        return self._value(MetricKind.GAUGE, name)

    def counter_at_steps(self, name: MetricKey) -> PerStepTable:
        """Per-step values of a single counter, empty if it never reported."""
        return self._at_steps(MetricKind.COUNTER, name)

    def distribution_at_steps(self, name: MetricKey) -> PerStepTable:
        """Per-step values of a single distribution, empty if it never reported."""
        return self._at_steps(MetricKind.DISTRIBUTION, name)

    def gauge_at_steps(self, name: MetricKey) -> PerStepTable:
        """Per-step values of a single gauge, empty if it never reported."""
        return self._at_steps(MetricKind.GAUGE, name)

    def all_counters(self) -> Mapping[MetricName, MetricValue[Any]]:
        """Aggregated value of every counter."""
        return self._all(MetricKind.COUNTER)

    def all_distributions(self) -> Mapping[MetricName, MetricValue[Any]]:
        """Aggregated value of every distribution."""
        return self._all(MetricKind.DISTRIBUTION)

    def all_gauges(self) -> Mapping[MetricName, MetricValue[Any]]:
        """Latest value of every gauge."""
        return self._all(MetricKind.GAUGE)

    def all_counters_at_steps(self) -> StepTables:
        """Read-only per-step tables of every counter."""
        return self._all_at_steps(MetricKind.COUNTER)

    def all_distributions_at_steps(self) -> StepTables:
        """Read-only per-step tables of every distribution."""
        return self._all_at_steps(MetricKind.DISTRIBUTION)

    def all_gauges_at_steps(self) -> StepTables:
        """Read-only per-step tables of every gauge."""
        return self._all_at_steps(MetricKind.GAUGE)

    def _value(self, kind: MetricKind, name: MetricKey) -> MetricValue[Any]:
        self._require_terminal()
        return self._aggregator.value(kind, name)

    def _at_steps(self, kind: MetricKind, name: MetricKey) -> PerStepTable:
        self._require_terminal()
        return self._aggregator.at_steps(kind, name)

    def _all(self, kind: MetricKind) -> Mapping[MetricName, MetricValue[Any]]:
        self._require_terminal()
        return self._aggregator.aggregated(kind)

    def _all_at_steps(self, kind: MetricKind) -> StepTables:
        self._require_terminal()
        return self._aggregator.per_step(kind)

    def _has_finished(self) -> bool:
        # A terminal state recorded by the background wait stays terminal, so a
        # later failing state query does not hide it.
        return self.last_known_state.is_terminal or self.is_completed()

    def _require_terminal(self) -> None:
        # Never let the cache capture a pre-terminal snapshot.
        require(self._has_finished(), "Pipeline has to be finished to query metrics.")

    def __repr__(self) -> str:
        return f"PipelineResult(app={self._app.name!r}, state={self.state()})"
