"""Pending registry of entries that are not yet guaranteed processed."""

import threading
from collections.abc import Iterator

from cleansweep.core.entries import TrackedEntry
from cleansweep.utils.telemetry import record_removal


class PendingRegistry:
    """Thread-safe collection of every registered, not yet removed entry.

    Membership means "not yet guaranteed processed": removal and action
    consumption run as independent units of work, so an entry whose
    action already ran may still be present for a short while.
    """

    def __init__(self) -> None:
        # dict keeps insertion order, which makes pop() FIFO
        self._entries: dict[TrackedEntry, None] = {}
        self._lock = threading.Lock()

    def add(self, entry: TrackedEntry) -> None:
        with self._lock:
            self._entries[entry] = None

    def remove(self, entry: TrackedEntry) -> bool:
        """Remove an entry; removing an absent entry is a no-op.

        Returns:
            True if the entry was present
        """
        with self._lock:
            if entry not in self._entries:
                return False
            del self._entries[entry]
        record_removal()
        return True

    def pop(self) -> TrackedEntry | None:
        """Remove and return the oldest entry, or ``None`` when empty."""
        with self._lock:
            if not self._entries:
                return None
            entry = next(iter(self._entries))
            del self._entries[entry]
        record_removal()
        return entry

    def snapshot(self) -> list[TrackedEntry]:
        """Copy of the current contents, oldest first."""
        with self._lock:
            return list(self._entries)

    def __contains__(self, entry: object) -> bool:
        with self._lock:
            return entry in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __iter__(self) -> Iterator[TrackedEntry]:
        return iter(self.snapshot())
