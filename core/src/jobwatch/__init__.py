"""Track pipeline job completion and aggregate the metrics it emits."""

from jobwatch.api import track_from_yaml, track_job, track_mlflow_run
from jobwatch.contracts import (
    AppConfig,
    DistributionResult,
    ExecutionState,
    GaugeResult,
    MetricKind,
    MetricName,
    MetricValue,
    ServiceMetrics,
    WatchConfig,
)
from jobwatch.errors import (
    ConfigError,
    ExecutionNotDoneError,
    JobWatchError,
    MetricNotFoundError,
    PreconditionFailedError,
    WaitTimeoutError,
)
from jobwatch.result import PipelineResult
from jobwatch.version import __version__

__all__ = [
    "__version__",
    "track_job",
    "track_mlflow_run",
    "track_from_yaml",
    "PipelineResult",
    "AppConfig",
    "WatchConfig",
    "DistributionResult",
    "ExecutionState",
    "GaugeResult",
    "MetricKind",
    "MetricName",
    "MetricValue",
    "ServiceMetrics",
    "ConfigError",
    "ExecutionNotDoneError",
    "JobWatchError",
    "MetricNotFoundError",
    "PreconditionFailedError",
    "WaitTimeoutError",
]
