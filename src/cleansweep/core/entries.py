"""Tracked entries pairing a weakly held key with an at-most-once action.

An entry is created for every registration. It holds the key only through
a weak reference armed by the observation queue, and it hands its action
out exactly once no matter how many sweepers race to consume it.
"""

import threading
import weakref
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")

Action = Callable[[], Any]


class Tier(str, Enum):
    """Reachability tier an entry waits for."""

    WEAK = "weak"
    PHANTOM = "phantom"


class SweepAction(ABC, Generic[T]):
    """An action performed when a sweep occurs and the target is known.

    Register a subclass with :meth:`Sweeper.on_weak_gc` to receive the
    tracked key back. The sweeper assigns :attr:`target` right before the
    action runs. After a collection the target is ``None``; when the
    action is run early (shutdown draining) it is the still-live key.
    """

    def __init__(self) -> None:
        self.target: T | None = None

    @abstractmethod
    def run(self) -> None:
        """Perform the clean-up."""

    def __call__(self) -> None:
        self.run()


class TargetAwareAction(SweepAction[T]):
    """Adapt a one-argument callable into a :class:`SweepAction`."""

    def __init__(self, fn: Callable[[T | None], Any]):
        super().__init__()
        self._fn = fn

    def run(self) -> None:
        self._fn(self.target)

    def __repr__(self) -> str:
        return f"TargetAwareAction({self._fn!r})"


class TrackedEntry(ABC):
    """Registration record for one key, one tier and one action.

    Entries compare and hash by identity, which makes them usable as
    removal keys in the pending registry. Calling an entry consumes and
    runs its action, so the list returned by :meth:`Sweeper.shutdown`
    can be executed directly.
    """

    tier: Tier

    def __init__(self, action: Action):
        self._action: Action | None = action
        self._lock = threading.Lock()
        self._ref: weakref.ref | None = None

    def arm(self, ref: weakref.ref) -> None:
        """Attach the weak reference that feeds the observation queue.

        The entry keeps the reference alive; dropping the entry disarms it.
        """
        self._ref = ref

    @property
    def consumed(self) -> bool:
        with self._lock:
            return self._action is None

    def consume_action(self) -> Action | None:
        """Atomically claim the action.

        Returns:
            The action for the single winning caller, ``None`` for everyone else
        """
        with self._lock:
            action, self._action = self._action, None
            if action is not None:
                self._prepare(action)
            return action

    def _prepare(self, action: Action) -> None:
        """Hook run under the claim lock before the action is handed out."""

    @abstractmethod
    def get(self) -> Any:
        """Return the tracked key if the tier allows retrieving it."""

    def run(self) -> bool:
        """Consume and run the action.

        Returns:
            True if this call ran the action
        """
        action = self.consume_action()
        if action is None:
            return False
        action()
        return True

    def __call__(self) -> bool:
        return self.run()

    def __repr__(self) -> str:
        state = "consumed" if self.consumed else "pending"
        return f"<{type(self).__name__} {state} at {id(self):#x}>"


class PhantomEntry(TrackedEntry):
    """Notification token that never exposes its key.

    By the time the token is observable the key has already been
    destroyed, so there is nothing left to resurrect.
    """

    tier = Tier.PHANTOM

    def get(self) -> None:
        return None


class WeakEntry(TrackedEntry):
    """Entry whose key stays retrievable until the collector clears it."""

    tier = Tier.WEAK

    def get(self) -> Any:
        if self._ref is None:
            return None
        return self._ref()

    def _prepare(self, action: Action) -> None:
        if isinstance(action, SweepAction):
            action.target = self.get()
