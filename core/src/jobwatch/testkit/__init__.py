from .fakes import (
    EngineCall,
    FakeJobHandle,
    FakeMetricsQuery,
    FakeRemoteMetricsFetcher,
    InMemorySink,
)

__all__ = [
    "EngineCall",
    "FakeJobHandle",
    "FakeMetricsQuery",
    "FakeRemoteMetricsFetcher",
    "InMemorySink",
]
