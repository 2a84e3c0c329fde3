"""Dispatcher protocol and adapters.

The sweeper only needs fire-and-forget submission from whatever runs its
work. Executors from :mod:`concurrent.futures` additionally provide
result-bearing submission and graceful shutdown; everything else gets a
single-slot completion channel when a result is needed.
"""

import concurrent.futures
import queue
import threading
from collections.abc import Callable
from concurrent.futures import Executor, Future
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from cleansweep.utils.errors import DispatcherRejectedError, InvalidArgumentError
from cleansweep.utils.telemetry import get_logger

R = TypeVar("R")

Work = Callable[[], Any]

logger = get_logger(__name__)


@runtime_checkable
class Dispatcher(Protocol):
    """Runs units of work, possibly concurrently, possibly later.

    Implementations must tolerate work that blocks. They may also offer
    ``submit(work) -> Future`` for native result-bearing submission and
    ``shutdown()`` to stop accepting new work.
    """

    def execute(self, work: Work) -> None:
        """Schedule ``work`` for eventual execution."""
        ...


class ExecutorDispatcher:
    """Adapt a :class:`concurrent.futures.Executor` to the dispatcher protocol."""

    def __init__(self, executor: Executor):
        self.executor = executor

    def execute(self, work: Work) -> None:
        """Submit fire-and-forget work, logging it if it fails.

        Raises:
            DispatcherRejectedError: If the executor has been shut down
        """
        future = self.submit(work)
        future.add_done_callback(_log_failure)

    def submit(self, work: Callable[[], R]) -> "Future[R]":
        try:
            return self.executor.submit(work)
        except RuntimeError as e:
            raise DispatcherRejectedError(work) from e

    def shutdown(self) -> None:
        self.executor.shutdown(wait=False)

    def __repr__(self) -> str:
        return f"ExecutorDispatcher({self.executor!r})"


def _log_failure(future: Future) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.error(
            "Dispatched work failed",
            error=str(error),
            error_type=type(error).__name__,
            exc_info=error,
        )


def as_dispatcher(candidate: Any) -> Any:
    """Normalize an executor or dispatcher into something with ``execute``.

    Raises:
        InvalidArgumentError: If ``candidate`` is None or cannot run work
    """
    if candidate is None:
        raise InvalidArgumentError("dispatcher")
    if isinstance(candidate, Executor):
        return ExecutorDispatcher(candidate)
    if isinstance(candidate, Dispatcher):
        return candidate
    raise InvalidArgumentError(
        "dispatcher",
        f"{type(candidate).__name__} is neither an Executor nor provides execute()",
    )


class ChannelFuture(Generic[R]):
    """Result handle backed by a capacity-one completion channel.

    Used when a dispatcher only offers fire-and-forget submission: the
    wrapped work publishes its outcome into the channel exactly once and
    the handle reads it from there.
    """

    def __init__(self) -> None:
        self._channel: queue.Queue[tuple[Any, BaseException | None]] = queue.Queue(
            maxsize=1
        )
        self._outcome: tuple[Any, BaseException | None] | None = None
        # set only after the outcome is in the channel
        self._published = threading.Event()
        self._lock = threading.Lock()

    def wrap(self, work: Callable[[], R]) -> Work:
        """Return a unit of work that runs ``work`` and publishes its outcome."""

        def run_and_publish() -> None:
            try:
                value = work()
            except BaseException as e:
                self._publish(None, e)
                raise
            self._publish(value, None)

        return run_and_publish

    def _publish(self, value: Any, error: BaseException | None) -> None:
        self._channel.put((value, error))
        self._published.set()

    def done(self) -> bool:
        return self._published.is_set()

    def _take(self, timeout: float | None) -> tuple[Any, BaseException | None]:
        if not self._published.wait(timeout):
            raise concurrent.futures.TimeoutError()
        with self._lock:
            if self._outcome is None:
                self._outcome = self._channel.get_nowait()
            return self._outcome

    def result(self, timeout: float | None = None) -> R:
        """Wait for the outcome.

        Raises:
            concurrent.futures.TimeoutError: If no outcome arrives in time
            BaseException: Whatever the wrapped work raised
        """
        value, error = self._take(timeout)
        if error is not None:
            raise error
        return value

    def exception(self, timeout: float | None = None) -> BaseException | None:
        return self._take(timeout)[1]
