from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class MetricKind(str, Enum):
    COUNTER = "counter"
    DISTRIBUTION = "distribution"
    GAUGE = "gauge"


@dataclass(frozen=True, slots=True)
class MetricName:
    """
    Identity of a metric series across all steps of a job.
    """

    namespace: str
    name: str

    @classmethod
    def parse(cls, value: str | MetricName) -> MetricName:
        """Accept a MetricName or a "namespace:name" string."""
        if isinstance(value, MetricName):
            return value
        namespace, sep, name = value.rpartition(":")
        if not sep or not name:
            raise ValueError(f"Metric name must look like 'namespace:name', got {value!r}")
        return cls(namespace=namespace, name=name)

    def __str__(self) -> str:
        return f"{self.namespace}:{self.name}"


@dataclass(frozen=True, slots=True)
class MetricValue(Generic[T]):
    """
    Value of one metric at one step (or aggregated over steps).

    `committed` is only present once the step's work is durably finalized.
    """

    attempted: T
    committed: T | None = None


@dataclass(frozen=True, slots=True)
class DistributionResult:
    sum: float
    count: int
    min: float
    max: float

    @property
    def mean(self) -> float | None:
        # Always derived from merged sum/count, never from per-step means.
        if self.count == 0:
            return None
        return self.sum / self.count

    @classmethod
    def of(cls, value: float) -> DistributionResult:
        return cls(sum=value, count=1, min=value, max=value)


@dataclass(frozen=True, slots=True)
class GaugeResult:
    value: float
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class MetricResult:
    """Raw row returned by a metrics query: one metric observed at one step."""

    name: MetricName
    step: str
    attempted: Any
    committed: Any | None = None


PerStepTable = dict[str, MetricValue[Any]]
