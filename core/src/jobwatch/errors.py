from __future__ import annotations

from jobwatch.contracts.metrics import MetricName
from jobwatch.contracts.state import ExecutionState


class JobWatchError(Exception):
    pass


class WaitTimeoutError(JobWatchError, TimeoutError):
    pass


class ExecutionNotDoneError(JobWatchError, RuntimeError):
    """Raised when a job finished in a terminal state other than DONE."""

    def __init__(self, state: ExecutionState) -> None:
        super().__init__(f"Job finished with state {state}")
        self.state = state


class PreconditionFailedError(JobWatchError, RuntimeError):
    pass


class MetricNotFoundError(JobWatchError, KeyError):
    def __init__(self, name: MetricName) -> None:
        super().__init__(f"No step reported metric {name}")
        self.name = name

    def __str__(self) -> str:
        return str(self.args[0])


class ConfigError(ValueError):
    pass


def require(condition: bool, message: str) -> None:
    if not condition:
        raise PreconditionFailedError(message)
