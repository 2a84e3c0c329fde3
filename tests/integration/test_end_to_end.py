"""End-to-end sweeper scenarios on real threads and real collection."""

import gc
import threading
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from functools import partial

import pytest

from cleansweep import Sweeper, TargetAwareAction
from cleansweep.core.sweeper import LoopState, SweeperConfig


class Resource:
    pass


class Tally:
    """Thread-safe per-index execution counts."""

    def __init__(self):
        self.counts: Counter = Counter()
        self._lock = threading.Lock()

    def bump(self, index: int) -> None:
        with self._lock:
            self.counts[index] += 1

    def __len__(self) -> int:
        with self._lock:
            return len(self.counts)


def wait_until(predicate, timeout: float = 10.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.mark.slow
def test_background_loop_runs_each_action_once():
    sweeper = Sweeper()
    tally = Tally()
    try:
        for i in range(1000):
            sweeper.on_gc(Resource(), partial(tally.bump, i))
        gc.collect()

        assert wait_until(lambda: len(tally) == 1000)
        assert wait_until(lambda: sweeper.pending_count == 0)
    finally:
        sweeper.shutdown()

    assert set(tally.counts) == set(range(1000))
    assert set(tally.counts.values()) == {1}


def test_drain_pending_hands_live_key_to_action():
    sweeper = Sweeper(background_sweeping=False)
    key = Resource()
    seen = []
    sweeper.on_weak_gc(key, TargetAwareAction(seen.append))

    assert sweeper.drain_pending() == 1
    assert seen == [key]
    assert sweeper.drain_pending() == 0
    assert seen == [key]


@pytest.mark.slow
def test_concurrent_manual_sweeps_never_double_run():
    """Two threads sweeping while keys are dropped still run each action once."""
    sweeper = Sweeper(background_sweeping=False)
    tally = Tally()
    produced = threading.Event()
    total = 2000

    def produce():
        for i in range(total):
            sweeper.on_gc(Resource(), partial(tally.bump, i))
        produced.set()

    def sweep_until_produced():
        while not produced.is_set():
            sweeper.sweep()
        sweeper.sweep()

    threads = [threading.Thread(target=produce)]
    threads += [threading.Thread(target=sweep_until_produced) for _ in range(2)]
    try:
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        gc.collect()
        sweeper.sweep()
    finally:
        sweeper.shutdown()

    assert len(tally) == total
    assert set(tally.counts.values()) == {1}
    assert sweeper.pending_count == 0


@pytest.mark.slow
def test_every_drain_path_racing_runs_each_action_once():
    """Background loop, manual, queueing and shutdown sweeps share entries."""
    sweeper = Sweeper()
    tally = Tally()
    produced = threading.Event()
    total = 2000

    def produce():
        for i in range(total):
            sweeper.on_gc(Resource(), partial(tally.bump, i))
        produced.set()

    def sweep_until_produced(sweep):
        while not produced.is_set():
            sweep()

    threads = [
        threading.Thread(target=produce),
        threading.Thread(target=sweep_until_produced, args=(sweeper.sweep,)),
        threading.Thread(target=sweep_until_produced, args=(sweeper.queueing_sweep,)),
    ]
    try:
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)
        gc.collect()

        sweeper.drain_pending()
        assert sweeper.pending_count == 0
        # units already handed to workers may still be finishing
        assert wait_until(lambda: len(tally) == total)
    finally:
        sweeper.shutdown()

    assert set(tally.counts) == set(range(total))
    assert set(tally.counts.values()) == {1}


def test_cancelled_loop_leaves_work_to_manual_sweeps():
    executor = ThreadPoolExecutor(max_workers=4)
    sweeper = Sweeper(executor, config=SweeperConfig(wait_poll_interval=0.01))
    calls = []
    try:
        sweeper.cancel_background_sweep()
        assert wait_until(lambda: sweeper.background_state is LoopState.STOPPED)

        sweeper.on_gc(Resource(), lambda: calls.append("swept"))
        time.sleep(0.05)
        assert calls == []

        assert sweeper.sweep() is True
        assert calls == ["swept"]
    finally:
        sweeper.shutdown()
        executor.shutdown(wait=True)


def test_shutdown_returns_callable_leftovers():
    sweeper = Sweeper(background_sweeping=False)
    keys = [Resource() for _ in range(3)]
    calls = []
    for i, key in enumerate(keys):
        sweeper.on_gc(key, partial(calls.append, i))

    leftovers = sweeper.shutdown()

    assert len(leftovers) == 3
    for entry in leftovers:
        entry()
        entry()
    assert sorted(calls) == [0, 1, 2]
