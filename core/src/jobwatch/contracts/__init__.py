from .engine import (
    DocumentSerializer,
    JobHandle,
    MetricsQuery,
    MetricsSink,
    RemoteMetricsFetcher,
)
from .metrics import (
    DistributionResult,
    GaugeResult,
    MetricKind,
    MetricName,
    MetricResult,
    MetricValue,
    PerStepTable,
)
from .outcomes import RemoteMetricsOutcome, StateOutcome
from .service_metrics import RemoteMetric, RemoteMetricName, ServiceMetrics
from .state import ExecutionState
from .watch_config import AppConfig, LoggingConfig, RemoteConfig, Runner, WatchConfig

__all__ = [
    "DistributionResult",
    "GaugeResult",
    "MetricKind",
    "MetricName",
    "MetricResult",
    "MetricValue",
    "PerStepTable",
    "ExecutionState",
    "RemoteMetric",
    "RemoteMetricName",
    "ServiceMetrics",
    "StateOutcome",
    "RemoteMetricsOutcome",
    "JobHandle",
    "MetricsQuery",
    "RemoteMetricsFetcher",
    "MetricsSink",
    "DocumentSerializer",
    "WatchConfig",
    "AppConfig",
    "RemoteConfig",
    "LoggingConfig",
    "Runner",
]
