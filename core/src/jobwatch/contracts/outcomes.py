from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from .service_metrics import RemoteMetric
from .state import ExecutionState


@dataclass(frozen=True, slots=True)
class StateOutcome:
    """
    Result of a state query against the engine.

    `degraded` is set when the query failed and `state` fell back to UNKNOWN.
    """

    state: ExecutionState
    degraded: bool = False
    error: str | None = None

    @classmethod
    def fallback(cls, exc: BaseException) -> StateOutcome:
        return cls(state=ExecutionState.UNKNOWN, degraded=True, error=str(exc))


@dataclass(frozen=True, slots=True)
class RemoteMetricsOutcome:
    """
    Result of fetching remote service metrics.

    `degraded` is set when the fetch failed and `metrics` fell back to empty.
    """

    metrics: Sequence[RemoteMetric] = field(default_factory=tuple)
    degraded: bool = False
    error: str | None = None

    @classmethod
    def fallback(cls, exc: BaseException) -> RemoteMetricsOutcome:
        return cls(metrics=(), degraded=True, error=str(exc))
