# Work dispatch: protocol, executor adapter and default worker pool

from .dispatcher import ChannelFuture, Dispatcher, ExecutorDispatcher, as_dispatcher
from .pool import WorkerPool, default_max_workers, default_thread_factory

__all__ = [
    "ChannelFuture",
    "Dispatcher",
    "ExecutorDispatcher",
    "WorkerPool",
    "as_dispatcher",
    "default_max_workers",
    "default_thread_factory",
]
