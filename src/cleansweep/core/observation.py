"""Observation queue fed by the garbage collector.

Entries reach the queue only through weak reference callbacks armed by
:meth:`ObservationQueue.track`. CPython runs those callbacks whenever a
key's last strong reference goes away, which can be in the middle of
arbitrary code on any thread, so the backing store is a
:class:`queue.SimpleQueue` whose ``put`` is reentrant.
"""

import queue
import threading
import weakref
from typing import Any

from cleansweep.core.entries import TrackedEntry
from cleansweep.utils.errors import InvalidArgumentError, SweepCancelledError


class CancellationToken:
    """Cooperative cancellation signal for a blocking wait."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SweepCancelledError()


class ObservationQueue:
    """FIFO of entries whose key has been collected.

    Any number of threads may consume concurrently; each entry is pushed
    at most once because a weak reference callback fires at most once.
    """

    def __init__(self) -> None:
        self._queue: queue.SimpleQueue[TrackedEntry] = queue.SimpleQueue()

    def track(self, key: Any, entry: TrackedEntry) -> weakref.ref:
        """Arrange for ``entry`` to be pushed once ``key`` is collected.

        Args:
            key: Object to watch
            entry: Token pushed onto the queue after collection

        Returns:
            The armed weak reference; it must be kept alive for the
            notification to happen

        Raises:
            InvalidArgumentError: If ``key`` cannot be weakly referenced
        """
        try:
            return weakref.ref(key, lambda _ref, entry=entry: self._queue.put(entry))
        except TypeError as e:
            raise InvalidArgumentError(
                "key", f"{type(key).__name__} objects cannot be weakly referenced"
            ) from e

    def get(
        self,
        cancel_token: CancellationToken | None = None,
        poll_interval: float = 0.1,
    ) -> TrackedEntry:
        """Block until an entry is available.

        Args:
            cancel_token: Token checked every ``poll_interval`` seconds
            poll_interval: Upper bound on cancellation latency

        Returns:
            The next observed entry

        Raises:
            SweepCancelledError: If the token is cancelled while waiting
        """
        if cancel_token is None:
            return self._queue.get()

        while True:
            cancel_token.raise_if_cancelled()
            try:
                return self._queue.get(timeout=poll_interval)
            except queue.Empty:
                continue

    def poll(self) -> TrackedEntry | None:
        """Return the next entry without blocking, or ``None`` when empty."""
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None

    def empty(self) -> bool:
        return self._queue.empty()

    def __len__(self) -> int:
        return self._queue.qsize()
