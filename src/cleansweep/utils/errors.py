"""Structured error types for the sweeper core.

Every error raised by cleansweep derives from :class:`SweeperError`, and the
ones that correspond to a built-in failure category also derive from that
built-in so callers can catch either.
"""

from typing import Any


class SweeperError(Exception):
    """Base exception for sweeper errors."""


class InvalidArgumentError(SweeperError, ValueError):
    """Error raised when a required argument is absent or unusable.

    This occurs when registering a missing key or action, when a key
    cannot be weakly referenced, or when a sweeper is constructed with
    an explicit ``None`` dispatcher or thread factory.
    """

    def __init__(self, argument: str, reason: str = "must not be None"):
        """Initialize invalid argument error.

        Args:
            argument: Name of the offending argument
            reason: Why the argument was rejected
        """
        self.argument = argument
        self.reason = reason
        super().__init__(f"Invalid argument {argument!r}: {reason}")


class DispatcherRejectedError(SweeperError, RuntimeError):
    """Error raised when a dispatcher refuses new work.

    This occurs once the dispatcher has been told to stop accepting
    work, typically through :meth:`Sweeper.shutdown`.
    """

    def __init__(self, work: Any = None):
        """Initialize dispatcher rejection error.

        Args:
            work: The unit of work that was refused (optional)
        """
        self.work = work
        if work is None:
            message = "Dispatcher is shut down and refuses new work"
        else:
            message = f"Dispatcher is shut down and refused {work!r}"
        super().__init__(message)


class SweepCancelledError(SweeperError):
    """Error raised when the background loop's blocking wait is cancelled."""

    def __init__(self, reason: str = "cancelled"):
        self.reason = reason
        super().__init__(f"Background sweep wait {reason}")
