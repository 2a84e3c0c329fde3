"""Unit tests for dispatcher adapters and the completion channel."""

import concurrent.futures
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest
from structlog.testing import capture_logs

from cleansweep.dispatch.dispatcher import (
    ChannelFuture,
    Dispatcher,
    ExecutorDispatcher,
    as_dispatcher,
)
from cleansweep.utils.errors import DispatcherRejectedError, InvalidArgumentError


class ExecuteOnly:
    def __init__(self):
        self.work = []

    def execute(self, work):
        self.work.append(work)


class TestAsDispatcher:
    """Test dispatcher normalization."""

    def test_none_rejected(self):
        with pytest.raises(InvalidArgumentError):
            as_dispatcher(None)

    def test_executor_wrapped(self):
        with ThreadPoolExecutor(max_workers=1) as executor:
            dispatcher = as_dispatcher(executor)

        assert isinstance(dispatcher, ExecutorDispatcher)
        assert dispatcher.executor is executor

    def test_execute_only_passed_through(self):
        dispatcher = ExecuteOnly()

        assert as_dispatcher(dispatcher) is dispatcher
        assert isinstance(dispatcher, Dispatcher)

    def test_object_without_execute_rejected(self):
        with pytest.raises(InvalidArgumentError, match="execute"):
            as_dispatcher(object())


class TestExecutorDispatcher:
    """Test the concurrent.futures adapter."""

    def test_execute_runs_work(self):
        executor = ThreadPoolExecutor(max_workers=2)
        dispatcher = ExecutorDispatcher(executor)
        done = threading.Event()

        dispatcher.execute(done.set)

        assert done.wait(timeout=5)
        executor.shutdown(wait=True)

    def test_submit_returns_future(self):
        with ThreadPoolExecutor(max_workers=1) as executor:
            future = ExecutorDispatcher(executor).submit(lambda: 42)

            assert future.result(timeout=5) == 42

    def test_rejects_after_shutdown(self):
        executor = ThreadPoolExecutor(max_workers=1)
        dispatcher = ExecutorDispatcher(executor)
        dispatcher.shutdown()

        with pytest.raises(DispatcherRejectedError):
            dispatcher.execute(lambda: None)

    def test_failed_work_is_logged(self):
        executor = ThreadPoolExecutor(max_workers=1)
        dispatcher = ExecutorDispatcher(executor)

        def fail():
            raise RuntimeError("cleanup exploded")

        with capture_logs() as logs:
            dispatcher.execute(fail)
            executor.shutdown(wait=True)

        failures = [log for log in logs if log["event"] == "Dispatched work failed"]
        assert len(failures) == 1
        assert failures[0]["error"] == "cleanup exploded"
        assert failures[0]["log_level"] == "error"


class TestChannelFuture:
    """Test the single-slot completion channel."""

    def test_result_published_once(self):
        future = ChannelFuture()
        work = future.wrap(lambda: True)

        assert not future.done()
        work()

        assert future.done()
        assert future.result() is True
        assert future.result() is True
        assert future.exception() is None

    def test_result_times_out(self):
        future = ChannelFuture()

        with pytest.raises(concurrent.futures.TimeoutError):
            future.result(timeout=0.01)

    def test_failure_published_and_reraised(self):
        future = ChannelFuture()

        def fail():
            raise ValueError("bad sweep")

        with pytest.raises(ValueError):
            future.wrap(fail)()

        assert isinstance(future.exception(), ValueError)
        with pytest.raises(ValueError, match="bad sweep"):
            future.result()

    def test_result_from_other_thread(self):
        future = ChannelFuture()
        dispatcher = ExecuteOnly()
        dispatcher.execute(future.wrap(lambda: "swept"))

        thread = threading.Thread(target=dispatcher.work.pop())
        thread.start()

        assert future.result(timeout=5) == "swept"
        thread.join()

    def test_done_does_not_wait_behind_blocked_result(self):
        """done() answers immediately while another thread waits for the result."""
        future = ChannelFuture()
        work = future.wrap(lambda: "late")
        results = []
        waiter = threading.Thread(
            target=lambda: results.append(future.result(timeout=5))
        )
        waiter.start()
        time.sleep(0.05)

        started = time.monotonic()
        assert future.done() is False
        assert time.monotonic() - started < 0.5

        work()
        waiter.join(timeout=5)

        assert results == ["late"]
        assert future.done()

    def test_concurrent_waiters_see_same_outcome(self):
        future = ChannelFuture()
        results = []
        lock = threading.Lock()

        def wait():
            value = future.result(timeout=5)
            with lock:
                results.append(value)

        waiters = [threading.Thread(target=wait) for _ in range(4)]
        for thread in waiters:
            thread.start()
        future.wrap(lambda: 7)()
        for thread in waiters:
            thread.join(timeout=5)

        assert results == [7, 7, 7, 7]

    def test_base_exception_is_published(self):
        """Interrupting work still completes the handle."""
        future = ChannelFuture()

        def interrupt():
            raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            future.wrap(interrupt)()

        assert future.done()
        assert isinstance(future.exception(timeout=1), KeyboardInterrupt)
        with pytest.raises(KeyboardInterrupt):
            future.result(timeout=1)
