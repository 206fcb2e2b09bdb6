from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True, slots=True)
class RemoteMetricName:
    name: str
    origin: str
    context: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RemoteMetric:
    """Service-level metric reported by the remote metrics service."""

    name: RemoteMetricName
    scalar: Any
    update_time: datetime | str | None = None


@dataclass(frozen=True, slots=True)
class ServiceMetrics:
    """
    Exportable metrics document of a finished job.

    Keep the serialized field names stable: downstream readers depend on them.
    """

    tool_version: str
    library_version: str
    job_name: str
    job_id: str
    state: str
    remote_metrics: Sequence[RemoteMetric] = field(default_factory=tuple)

    def to_payload(self) -> dict[str, Any]:
        return {
            "toolVersion": self.tool_version,
            "libraryVersion": self.library_version,
            "jobName": self.job_name,
            "jobId": self.job_id,
            "state": self.state,
            "remoteMetrics": [
                {
                    "name": metric.name.name,
                    "origin": metric.name.origin,
                    "context": dict(metric.name.context),
                    "value": metric.scalar,
                    "updateTime": _format_time(metric.update_time),
                }
                for metric in self.remote_metrics
            ],
        }


def _format_time(value: datetime | str | None) -> str | None:
    if isinstance(value, datetime):
        return value.isoformat()
    return value
