"""Default worker pool for sweeper work.

A small :class:`concurrent.futures.Executor` that builds its threads
through a caller-supplied thread factory, keeps a core of workers
prestarted, grows on demand up to a maximum, and lets surplus workers
retire after sitting idle for ``keep_alive`` seconds.
"""

import itertools
import os
import queue
import sys
import threading
from collections.abc import Callable
from concurrent.futures import Executor, Future
from typing import Any

from cleansweep.utils.errors import DispatcherRejectedError, InvalidArgumentError
from cleansweep.utils.telemetry import get_logger

ThreadFactory = Callable[[Callable[[], None]], threading.Thread]

DEFAULT_THREAD_NAME_PREFIX = "Sweeper Cleanup Thread"

logger = get_logger(__name__)


def default_max_workers() -> int:
    return max(2, os.cpu_count() or 1)


def default_thread_factory(
    name_prefix: str = DEFAULT_THREAD_NAME_PREFIX,
) -> ThreadFactory:
    """Create a factory producing daemon threads with descending hex ids.

    Args:
        name_prefix: Thread name prefix

    Returns:
        Thread factory suitable for :class:`WorkerPool`
    """
    counter = itertools.count(sys.maxsize, -1)
    lock = threading.Lock()

    def new_thread(target: Callable[[], None]) -> threading.Thread:
        with lock:
            number = next(counter)
        return threading.Thread(
            target=target, name=f"{name_prefix} #{number:x}", daemon=True
        )

    return new_thread


class _WorkItem:
    def __init__(self, future: Future, fn: Callable[..., Any], args, kwargs):
        self.future = future
        self.fn = fn
        self.args = args
        self.kwargs = kwargs

    def run(self) -> None:
        if not self.future.set_running_or_notify_cancel():
            return
        try:
            result = self.fn(*self.args, **self.kwargs)
        except BaseException as exc:
            self.future.set_exception(exc)
        else:
            self.future.set_result(result)


class WorkerPool(Executor):
    """Elastic thread pool driven by a thread factory."""

    def __init__(
        self,
        thread_factory: ThreadFactory | None = None,
        core_workers: int = 2,
        max_workers: int | None = None,
        keep_alive: float = 60.0,
        prestart: bool = True,
    ):
        """Initialize worker pool.

        Args:
            thread_factory: Builds worker threads (defaults to daemon threads)
            core_workers: Workers kept alive even when idle
            max_workers: Upper bound on workers (defaults to max(2, cpu_count))
            keep_alive: Seconds a surplus worker may idle before retiring
            prestart: Start all core workers immediately

        Raises:
            InvalidArgumentError: If the sizing is inconsistent
        """
        if max_workers is None:
            max_workers = max(core_workers, default_max_workers())
        if core_workers < 1:
            raise InvalidArgumentError("core_workers", "must be at least 1")
        if max_workers < core_workers:
            raise InvalidArgumentError("max_workers", "must be >= core_workers")
        if keep_alive <= 0:
            raise InvalidArgumentError("keep_alive", "must be positive")

        self._thread_factory = thread_factory or default_thread_factory()
        self._core_workers = core_workers
        self._max_workers = max_workers
        self._keep_alive = keep_alive

        self._work: queue.SimpleQueue[_WorkItem | None] = queue.SimpleQueue()
        self._workers: set[threading.Thread] = set()
        # one permit per worker waiting for work
        self._idle_semaphore = threading.Semaphore(0)
        self._lock = threading.Lock()
        self._shutdown = False

        if prestart:
            with self._lock:
                for _ in range(core_workers):
                    self._spawn_worker()
                    self._idle_semaphore.release()

    @property
    def worker_count(self) -> int:
        with self._lock:
            return len(self._workers)

    @property
    def max_workers(self) -> int:
        return self._max_workers

    def submit(self, fn, /, *args, **kwargs) -> Future:
        with self._lock:
            if self._shutdown:
                raise DispatcherRejectedError(fn)

            future: Future = Future()
            self._work.put(_WorkItem(future, fn, args, kwargs))
            self._adjust_workers()
            return future

    def _adjust_workers(self) -> None:
        if self._idle_semaphore.acquire(blocking=False):
            return
        if len(self._workers) < self._max_workers:
            self._spawn_worker()

    def _spawn_worker(self) -> None:
        thread = self._thread_factory(self._worker)
        self._workers.add(thread)
        thread.start()
        logger.debug("Worker started", worker=thread.name, workers=len(self._workers))

    def _worker(self) -> None:
        while True:
            try:
                item = self._work.get(timeout=self._keep_alive)
            except queue.Empty:
                if self._retire_idle_worker():
                    return
                continue

            if item is None:
                # Wake the next worker so it can exit too
                self._work.put(None)
                self._forget_current_worker()
                return

            item.run()
            del item
            self._idle_semaphore.release()

    def _retire_idle_worker(self) -> bool:
        with self._lock:
            if len(self._workers) <= self._core_workers and not self._shutdown:
                return False
            if not self._idle_semaphore.acquire(blocking=False):
                # A submitter reserved this worker; work is on its way
                return False
            self._workers.discard(threading.current_thread())
            logger.debug("Idle worker retired", workers=len(self._workers))
            return True

    def _forget_current_worker(self) -> None:
        with self._lock:
            self._workers.discard(threading.current_thread())

    def shutdown(self, wait: bool = True, *, cancel_futures: bool = False) -> None:
        """Stop accepting work; already queued work still runs.

        Args:
            wait: Join workers before returning
            cancel_futures: Cancel queued work that has not started
        """
        with self._lock:
            if self._shutdown:
                workers = set(self._workers)
            else:
                self._shutdown = True
                if cancel_futures:
                    self._cancel_queued()
                self._work.put(None)
                workers = set(self._workers)

        if wait:
            current = threading.current_thread()
            for worker in workers:
                if worker is not current:
                    worker.join()

    def _cancel_queued(self) -> None:
        while True:
            try:
                item = self._work.get_nowait()
            except queue.Empty:
                return
            if item is not None:
                item.future.cancel()
