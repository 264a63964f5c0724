"""
Single-threaded owning context for all mutable application state.

Every component that touches shared state (track lists, queue, registry) runs
its callbacks on the thread that drives this loop. Blocking network work is
offloaded to a bounded worker pool; results are posted back onto the loop
before anyone looks at them.
"""

import heapq
import itertools
import threading
import time
from collections import deque
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Any, Callable, Optional

from loguru import logger


class TimerHandle:
    """Cancellable handle for a callback scheduled with call_later."""

    __slots__ = ("when", "callback", "args", "cancelled")

    def __init__(self, when: float, callback: Callable[..., Any], args: tuple):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class MainLoop:
    """Cooperative event loop with timers and a worker pool.

    Args:
        max_workers: Size of the worker pool used by submit()
        clock: Monotonic time source in seconds (injectable for tests)
        executor: Custom executor (injectable for tests); owned by the loop
    """

    def __init__(
        self,
        max_workers: int = 4,
        clock: Callable[[], float] = time.monotonic,
        executor: Optional[Executor] = None,
    ):
        self._clock = clock
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="tunemux-worker"
        )
        self._ready: deque[tuple[Callable[..., Any], tuple]] = deque()
        self._wakeup = threading.Condition()
        self._timers: list[tuple[float, int, TimerHandle]] = []
        self._sequence = itertools.count()
        self._stopping = False
        self._closed = False

    def time(self) -> float:
        return self._clock()

    def post(self, callback: Callable[..., Any], *args: Any) -> None:
        """Queue a callback to run on the loop thread. Safe from any thread."""
        with self._wakeup:
            self._ready.append((callback, args))
            self._wakeup.notify()

    def call_later(
        self, delay: float, callback: Callable[..., Any], *args: Any
    ) -> TimerHandle:
        """Schedule callback after delay seconds. Loop thread only."""
        handle = TimerHandle(self._clock() + max(0.0, delay), callback, args)
        heapq.heappush(self._timers, (handle.when, next(self._sequence), handle))
        return handle

    def submit(
        self,
        fn: Callable[..., Any],
        *args: Any,
        on_done: Optional[Callable[[Future], None]] = None,
    ) -> Future:
        """Run fn on the worker pool, then deliver the future to on_done on the loop.

        on_done always runs on the loop thread, never on the worker.
        """
        future = self._executor.submit(fn, *args)
        if on_done is not None:
            future.add_done_callback(lambda f: self.post(on_done, f))
        return future

    def _run_callback(self, callback: Callable[..., Any], args: tuple) -> None:
        try:
            callback(*args)
        except Exception:
            # One failing callback must not take down the loop
            logger.exception(f"Unhandled error in loop callback {callback!r}")

    def run_pending(self) -> int:
        """Run every ready callback and every due timer.

        Callbacks queued while draining are run in the same call, so after
        this returns nothing is runnable until the clock advances or another
        thread posts.

        Returns:
            Number of callbacks executed
        """
        executed = 0
        while True:
            progressed = False

            while True:
                with self._wakeup:
                    if not self._ready:
                        break
                    callback, args = self._ready.popleft()
                self._run_callback(callback, args)
                executed += 1
                progressed = True

            now = self._clock()
            while self._timers and self._timers[0][0] <= now:
                _, _, handle = heapq.heappop(self._timers)
                if handle.cancelled:
                    continue
                self._run_callback(handle.callback, handle.args)
                executed += 1
                progressed = True

            if not progressed:
                return executed

    def _next_timeout(self, default: float) -> float:
        while self._timers and self._timers[0][2].cancelled:
            heapq.heappop(self._timers)
        if not self._timers:
            return default
        return max(0.0, min(default, self._timers[0][0] - self._clock()))

    def _wait_for_work(self, timeout: float) -> None:
        with self._wakeup:
            if not self._ready:
                self._wakeup.wait(timeout)

    def run_until(
        self, predicate: Callable[[], bool], timeout: Optional[float] = None
    ) -> bool:
        """Drive the loop until predicate() is true or timeout elapses.

        Returns:
            True if the predicate became true, False on timeout or stop()
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        self._stopping = False
        while not self._stopping:
            self.run_pending()
            if predicate():
                return True
            wait = 0.1
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                wait = min(wait, remaining)
            self._wait_for_work(self._next_timeout(wait))
        return predicate()

    def run_forever(self) -> None:
        """Drive the loop until stop() is called."""
        self._stopping = False
        while not self._stopping:
            self.run_pending()
            self._wait_for_work(self._next_timeout(0.1))

    def stop(self) -> None:
        """Ask run_forever/run_until to return. Safe from any thread."""
        self._stopping = True
        self.post(lambda: None)

    def close(self) -> None:
        """Shut down the worker pool. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._timers.clear()
        # In-flight requests are not interrupted; their results are dropped
        self._executor.shutdown(wait=False, cancel_futures=True)
        logger.debug("Main loop closed")
