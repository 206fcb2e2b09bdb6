from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Generic, TypeVar

from jobwatch.errors import WaitTimeoutError

T = TypeVar("T")

_logger = logging.getLogger("jobwatch.completion")


class CompletionSignal(Generic[T]):
    """
    Write-once completion cell observable by any number of waiters.

    Exactly one of set_result()/set_exception() takes effect; callbacks run
    once, on the completing thread (or immediately if already complete).
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._result: T | None = None
        self._exception: BaseException | None = None
        self._callbacks: list[Callable[[CompletionSignal[T]], None]] = []

    def done(self) -> bool:
        return self._event.is_set()

    def set_result(self, result: T) -> None:
        self._complete(result=result, exception=None)

    def set_exception(self, exception: BaseException) -> None:
        self._complete(result=None, exception=exception)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until completion; zero or negative timeout only polls."""
        if timeout is not None and timeout <= 0:
            return self._event.is_set()
        return self._event.wait(timeout)

    def result(self, timeout: float | None = None) -> T:
        if not self.wait(timeout):
            raise WaitTimeoutError(f"Not completed within {timeout}s")
        if self._exception is not None:
            raise self._exception
        return self._result  # type: ignore[return-value]

    def exception(self, timeout: float | None = None) -> BaseException | None:
        if not self.wait(timeout):
            raise WaitTimeoutError(f"Not completed within {timeout}s")
        return self._exception

    def add_done_callback(self, callback: Callable[[CompletionSignal[T]], None]) -> None:
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        self._invoke(callback)

    def _complete(self, *, result: T | None, exception: BaseException | None) -> None:
        with self._lock:
            if self._event.is_set():
                raise RuntimeError("CompletionSignal is already completed")
            self._result = result
            self._exception = exception
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            self._invoke(callback)

    def _invoke(self, callback: Callable[[CompletionSignal[T]], None]) -> None:
        try:
            callback(self)
        except Exception:
            _logger.warning("Completion callback %r failed", callback, exc_info=True)


class OnceCell(Generic[T]):
    """Lazily computed value, initialized at most once even under concurrent access."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._initialized = False
        self._value: T | None = None

    @property
    def initialized(self) -> bool:
        return self._initialized

    def get_or_init(self, factory: Callable[[], T]) -> T:
        if self._initialized:
            return self._value  # type: ignore[return-value]
        with self._lock:
            if not self._initialized:
                self._value = factory()
                self._initialized = True
        return self._value  # type: ignore[return-value]
