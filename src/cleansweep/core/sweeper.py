"""Sweeper: runs clean-up actions once tracked objects are collected.

The sweeper owns an observation queue fed by weak reference callbacks, a
pending registry of every entry not yet guaranteed processed, and a
dispatcher that runs removal and action units. Draining happens in one
of four ways:

- a background loop that blocks on the queue and resubmits itself to the
  dispatcher after every drain cycle,
- :meth:`Sweeper.sweep`, which drains and runs actions on the calling thread,
- :meth:`Sweeper.queueing_sweep` and its dispatched variants, which drain on
  the calling thread but hand removal and actions to the dispatcher,
- the shutdown hook, which additionally runs actions for keys that were
  never collected.

Each entry's action is consumed through an atomic claim, so no matter
which of these paths race for an entry its action runs at most once.
"""

import atexit
import time
from collections.abc import Callable
from enum import Enum
from functools import partial
from typing import Any

from pydantic import BaseModel, Field

from cleansweep.core.entries import (
    Action,
    PhantomEntry,
    SweepAction,
    TrackedEntry,
    WeakEntry,
)
from cleansweep.core.observation import CancellationToken, ObservationQueue
from cleansweep.core.registry import PendingRegistry
from cleansweep.dispatch.dispatcher import ChannelFuture, as_dispatcher
from cleansweep.dispatch.pool import (
    DEFAULT_THREAD_NAME_PREFIX,
    ThreadFactory,
    WorkerPool,
    default_max_workers,
    default_thread_factory,
)
from cleansweep.utils.errors import (
    DispatcherRejectedError,
    InvalidArgumentError,
    SweepCancelledError,
)
from cleansweep.utils.telemetry import (
    get_logger,
    record_action,
    record_drain,
    record_registration,
)

logger = get_logger(__name__)

_UNSET: Any = object()


class SweeperConfig(BaseModel):
    """Configuration for a sweeper and its default worker pool."""

    background_sweeping: bool = Field(
        default=True, description="Start the background drain loop on construction"
    )
    core_workers: int = Field(default=2, ge=1)
    max_workers: int = Field(default_factory=default_max_workers, ge=1)
    keep_alive_seconds: float = Field(default=60.0, gt=0.0)
    wait_poll_interval: float = Field(
        default=0.1,
        gt=0.0,
        description="How often the background wait re-checks for cancellation",
    )
    resume_on_error: bool = Field(
        default=False,
        description="Resubmit the background loop after an unexpected failure",
    )
    thread_name_prefix: str = Field(default=DEFAULT_THREAD_NAME_PREFIX)


class LoopState(str, Enum):
    """Background drain loop states."""

    IDLE = "idle"
    WAITING = "waiting"
    DRAINING = "draining"
    RESUBMITTED = "resubmitted"
    STOPPED = "stopped"


class Sweeper:
    """Monitors objects and performs clean-up after they are collected.

    Construct with no arguments for a daemon worker pool, with
    ``thread_factory`` to control how pool threads are made, or with
    ``dispatcher`` (any :class:`concurrent.futures.Executor` or object with
    ``execute``) to run work elsewhere. The dispatcher must tolerate
    blocking work: the background loop occupies one of its workers while
    waiting. Pass ``background_sweeping=False`` to drain manually.

    Actions must not reference their key, otherwise the key stays
    reachable and the action only runs at shutdown.
    """

    def __init__(
        self,
        dispatcher: Any = _UNSET,
        background_sweeping: bool | None = None,
        *,
        thread_factory: ThreadFactory | None = _UNSET,
        config: SweeperConfig | None = None,
    ):
        """Initialize sweeper.

        Args:
            dispatcher: Executor or dispatcher that runs sweeper work
            background_sweeping: Start the background loop (defaults to config)
            thread_factory: Thread factory for the default worker pool
            config: Sweeper configuration

        Raises:
            InvalidArgumentError: If ``dispatcher`` or ``thread_factory`` is
                explicitly None, or both are given
        """
        self.config = config or SweeperConfig()
        if background_sweeping is None:
            background_sweeping = self.config.background_sweeping

        if dispatcher is _UNSET:
            if thread_factory is None:
                raise InvalidArgumentError("thread_factory")
            if thread_factory is _UNSET:
                thread_factory = default_thread_factory(self.config.thread_name_prefix)
            dispatcher = WorkerPool(
                thread_factory=thread_factory,
                core_workers=self.config.core_workers,
                max_workers=max(self.config.core_workers, self.config.max_workers),
                keep_alive=self.config.keep_alive_seconds,
            )
        elif thread_factory is not _UNSET:
            raise InvalidArgumentError(
                "thread_factory", "cannot be combined with an explicit dispatcher"
            )

        self._dispatcher = as_dispatcher(dispatcher)
        self._queue = ObservationQueue()
        self._registry = PendingRegistry()
        self._cancel_token = CancellationToken()
        self._loop_state = LoopState.IDLE
        self._shutdown_hook: Callable[[], int] | None = None

        if background_sweeping:
            logger.info("Starting background sweep loop", dispatcher=repr(dispatcher))
            self._dispatcher.execute(self._background_drain)

    @property
    def dispatcher(self) -> Any:
        return self._dispatcher

    @property
    def background_state(self) -> LoopState:
        return self._loop_state

    @property
    def pending_count(self) -> int:
        """Number of entries not yet removed from the pending registry."""
        return len(self._registry)

    # Registration

    def on_gc(self, key: Any, action: Action) -> TrackedEntry:
        """Register an action to be performed after ``key`` is collected.

        The action never sees the key.

        Raises:
            InvalidArgumentError: If ``key`` or ``action`` is missing, or
                ``key`` cannot be weakly referenced
        """
        return self._register(PhantomEntry, key, action)

    def on_weak_gc(self, key: Any, action: Action | SweepAction) -> TrackedEntry:
        """Register an action to be performed once ``key`` is weakly reachable.

        ``action`` is either a plain zero-argument callable or a
        :class:`SweepAction`, whose ``target`` is set to the key's current
        value (``None`` once collected) right before it runs.

        Raises:
            InvalidArgumentError: If ``key`` or ``action`` is missing, or
                ``key`` cannot be weakly referenced
        """
        return self._register(WeakEntry, key, action)

    def _register(
        self, entry_type: type[TrackedEntry], key: Any, action: Any
    ) -> TrackedEntry:
        if key is None:
            raise InvalidArgumentError("key")
        if action is None:
            raise InvalidArgumentError("action")
        if not callable(action):
            raise InvalidArgumentError("action", "must be callable")

        entry = entry_type(action)
        entry.arm(self._queue.track(key, entry))
        self._registry.add(entry)
        record_registration(entry.tier.value)
        logger.debug(
            "Registered clean-up action",
            tier=entry.tier.value,
            key_type=type(key).__name__,
        )
        return entry

    # Sweeping

    def sweep(self) -> bool:
        """Drain the observation queue and run actions on this thread.

        Returns:
            Whether any entry was found
        """
        drained, _ = self._sweep_locally("sweep")
        return drained > 0

    def queueing_sweep(self) -> bool:
        """Drain the observation queue, dispatching removal and actions.

        Returns:
            Whether this call drained any entry; the dispatched work may
            still be pending
        """
        work_found = False
        while (entry := self._queue.poll()) is not None:
            work_found = True
            record_drain("queueing")
            self._dispatch_entry(entry)
            time.sleep(0)
        return work_found

    def run_sweep(self) -> None:
        """Dispatch a :meth:`queueing_sweep` without waiting for it."""
        self._dispatcher.execute(self.queueing_sweep)

    def enqueue_sweep(self) -> Any:
        """Dispatch a :meth:`queueing_sweep` and return a handle to its result.

        Returns:
            A :class:`concurrent.futures.Future` when the dispatcher supports
            ``submit``, otherwise a :class:`ChannelFuture`
        """
        submit = getattr(self._dispatcher, "submit", None)
        if submit is not None:
            return submit(self.queueing_sweep)

        future: ChannelFuture[bool] = ChannelFuture()
        self._dispatcher.execute(future.wrap(self.queueing_sweep))
        return future

    def _sweep_locally(
        self, path: str, tolerate_failures: bool = False
    ) -> tuple[int, int]:
        """Drain on this thread; returns (entries drained, actions run)."""
        drained = ran = 0
        run = self._run_entry_logged if tolerate_failures else self._run_entry
        while (entry := self._queue.poll()) is not None:
            self._registry.remove(entry)
            record_drain(path)
            drained += 1
            if run(entry):
                ran += 1
            time.sleep(0)
        return drained, ran

    def _dispatch_entry(self, entry: TrackedEntry) -> None:
        # Removal and consumption are independent units; order does not matter
        self._dispatcher.execute(partial(self._registry.remove, entry))
        self._dispatcher.execute(partial(self._run_entry, entry))

    def _run_entry(self, entry: TrackedEntry) -> bool:
        action = entry.consume_action()
        if action is None:
            return False
        try:
            action()
        except Exception:
            record_action(entry.tier.value, failed=True)
            raise
        record_action(entry.tier.value)
        return True

    def _run_entry_logged(self, entry: TrackedEntry) -> bool:
        try:
            return self._run_entry(entry)
        except Exception as e:
            logger.error(
                "Clean-up action failed",
                tier=entry.tier.value,
                error=str(e),
                exc_info=True,
            )
            return False

    # Background loop

    def _background_drain(self) -> None:
        """One cycle of the background loop; resubmits itself when done."""
        held: TrackedEntry | None = None
        try:
            self._loop_state = LoopState.WAITING
            held = self._queue.get(self._cancel_token, self.config.wait_poll_interval)
            self._loop_state = LoopState.DRAINING
            drained = 0
            while held is not None:
                self._cancel_token.raise_if_cancelled()
                self._dispatch_entry(held)
                drained += 1
                held = self._queue.poll()
            record_drain("background", drained)

            self._loop_state = LoopState.RESUBMITTED
            self._dispatcher.execute(self._background_drain)

        except (SweepCancelledError, DispatcherRejectedError) as e:
            self._stop_background(held, reason=str(e))
        except Exception as e:
            if not self.config.resume_on_error:
                self._loop_state = LoopState.STOPPED
                logger.error(
                    "Background sweep loop failed; background sweeping stopped",
                    error=str(e),
                    exc_info=True,
                )
                return
            logger.warning(
                "Background sweep loop failed; resuming",
                error=str(e),
                exc_info=True,
            )
            self._resume_background(held)

    def _resume_background(self, held: TrackedEntry | None) -> None:
        if held is not None:
            self._registry.remove(held)
            self._run_entry_logged(held)
        self._loop_state = LoopState.RESUBMITTED
        try:
            self._dispatcher.execute(self._background_drain)
        except DispatcherRejectedError as e:
            self._stop_background(None, reason=str(e))

    def _stop_background(self, held: TrackedEntry | None, reason: str) -> None:
        self._loop_state = LoopState.STOPPED
        logger.info("Background sweep loop stopped", reason=reason)
        if held is not None:
            self._registry.remove(held)
            self._run_entry_logged(held)

    def cancel_background_sweep(self) -> None:
        """Cancel the background loop's wait; background sweeping stops for good.

        Manual and dispatched sweeps keep working.
        """
        self._cancel_token.cancel()

    # Shutdown

    def register_shutdown_hook(self) -> None:
        """Run clean-up at interpreter exit for everything still pending.

        Clean-up is executed for keys that are still alive too. The usual
        :mod:`atexit` caveats apply: the hook does not run on abnormal
        termination.
        """
        if self._shutdown_hook is not None:
            return
        self._shutdown_hook = self.drain_pending
        atexit.register(self._shutdown_hook)

    def drain_pending(self) -> int:
        """Stop the dispatcher, then run every pending action on this thread.

        Collected keys are swept first; the remaining entries are popped
        from the registry one at a time and run directly, re-sweeping in
        between. Failures are logged and do not stop the drain.

        Returns:
            Number of actions run
        """
        self._stop_dispatcher()
        logger.info("Draining pending clean-up actions", pending=self.pending_count)

        _, ran = self._sweep_locally("shutdown", tolerate_failures=True)
        while (entry := self._registry.pop()) is not None:
            if self._run_entry_logged(entry):
                ran += 1
            time.sleep(0)
            ran += self._sweep_locally("shutdown", tolerate_failures=True)[1]

        logger.info("Pending clean-up actions drained", ran=ran)
        return ran

    def shutdown(self) -> list[TrackedEntry]:
        """Stop processing and return the entries not yet cleaned up.

        Nothing is run or removed. The corresponding keys may still be
        alive; each returned entry runs its action when called, at most once.
        """
        pending = self._registry.snapshot()
        self._stop_dispatcher()
        logger.info("Sweeper shut down", pending=len(pending))
        return pending

    def _stop_dispatcher(self) -> None:
        self._cancel_token.cancel()
        stop = getattr(self._dispatcher, "shutdown", None)
        if stop is not None:
            stop()
