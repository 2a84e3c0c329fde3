"""cleansweep - run clean-up actions when objects are garbage collected.

cleansweep attaches clean-up actions to objects and runs each action
exactly once after its object is collected, using a self-resubmitting
background loop on a worker pool, manual sweeps, or a shutdown drain.
"""

__version__ = "0.1.0"

from .core import (
    LoopState,
    PendingRegistry,
    PhantomEntry,
    Sweeper,
    SweeperConfig,
    SweepAction,
    TargetAwareAction,
    Tier,
    TrackedEntry,
    WeakEntry,
)
from .dispatch import ChannelFuture, Dispatcher, ExecutorDispatcher, WorkerPool
from .utils.errors import (
    DispatcherRejectedError,
    InvalidArgumentError,
    SweepCancelledError,
    SweeperError,
)

__all__ = [
    "ChannelFuture",
    "Dispatcher",
    "DispatcherRejectedError",
    "ExecutorDispatcher",
    "InvalidArgumentError",
    "LoopState",
    "PendingRegistry",
    "PhantomEntry",
    "SweepAction",
    "SweepCancelledError",
    "Sweeper",
    "SweeperConfig",
    "SweeperError",
    "TargetAwareAction",
    "Tier",
    "TrackedEntry",
    "WeakEntry",
    "WorkerPool",
    "__version__",
]
