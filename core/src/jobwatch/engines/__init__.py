from .local import LocalJob, StepMetrics
from .mlflow_engine import (
    MlflowMetricsQuery,
    MlflowRunHandle,
    MlflowServiceMetricsFetcher,
    create_mlflow_client,
)

__all__ = [
    "LocalJob",
    "StepMetrics",
    "MlflowRunHandle",
    "MlflowMetricsQuery",
    "MlflowServiceMetricsFetcher",
    "create_mlflow_client",
]
