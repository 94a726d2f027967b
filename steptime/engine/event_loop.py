"""
Event loop for the steptime harness.

The loop is the single-threaded run queue that timer-driven code schedules
its callbacks on. It never sleeps and never polls for I/O: a drain pass
runs whatever is due according to the injected ClockSource and returns.

Callbacks are run synchronously, earliest deadline first and in
scheduling order for equal deadlines. If a callback raises, the drain
stops and the error is surfaced to the caller.
"""

import heapq
import itertools
import logging
from collections.abc import Callable
from datetime import timedelta
from typing import Any, Protocol, runtime_checkable

from steptime.engine.clock import ZERO
from steptime.engine.time_source import ClockSource

logger = logging.getLogger(__name__)

Callback = Callable[..., Any]


@runtime_checkable
class EventLoopHandle(Protocol):
    """
    The three operations the time advancer needs from an event loop.
    """

    def is_stopped(self) -> bool: ...

    def reset_for_reuse(self) -> None: ...

    def run_ready_work(self) -> int: ...


class Timer:
    """
    Handle for a scheduled callback.
    """

    def __init__(self, deadline: timedelta, callback: Callback, args: tuple[Any, ...]) -> None:
        self.deadline = deadline
        self.callback = callback
        self.args = args
        self.cancelled = False

    def __repr__(self) -> str:
        state = " cancelled" if self.cancelled else ""
        return f"<Timer deadline={self.deadline!r} callback={self.callback!r}{state}>"

    def cancel(self) -> None:
        self.cancelled = True

    def _run(self) -> None:
        self.callback(*self.args)


class EventLoop:
    """
    Deterministic run queue driven by a ClockSource's steady time.
    """

    def __init__(self, clock_source: ClockSource) -> None:
        self.clock_source = clock_source
        self._queue: list[tuple[timedelta, int, Timer]] = []
        self._sequence = itertools.count()
        self._stopped: bool = False
        self._closed: bool = False

    def call_soon(self, callback: Callback, *args: Any) -> Timer:
        """
        Schedule ``callback`` to run on the next drain pass.
        """
        return self.call_at(self.clock_source.steady_now(), callback, *args)

    def call_later(self, delay: timedelta, callback: Callback, *args: Any) -> Timer:
        """
        Schedule ``callback`` to run once ``delay`` of steady time has passed.
        """
        if delay < ZERO:
            raise ValueError(f"Timer delay must not be negative, got {delay!r}")

        return self.call_at(self.clock_source.steady_now() + delay, callback, *args)

    def call_at(self, deadline: timedelta, callback: Callback, *args: Any) -> Timer:
        """
        Schedule ``callback`` to run once steady time reaches ``deadline``.
        """
        if self._closed:
            raise RuntimeError("Cannot schedule on a closed event loop")

        timer = Timer(deadline, callback, args)
        heapq.heappush(self._queue, (deadline, next(self._sequence), timer))
        return timer

    def stop(self) -> None:
        """
        Stop the loop. Drain passes do nothing until it is reset.
        """
        self._stopped = True

    def is_stopped(self) -> bool:
        return self._stopped

    def reset_for_reuse(self) -> None:
        """
        Make a stopped loop runnable again. Pending work is kept.
        """
        if self._closed:
            raise RuntimeError("Cannot reuse a closed event loop")

        self._stopped = False

    def pending(self) -> int:
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)

    def next_deadline(self) -> timedelta | None:
        self._discard_cancelled()
        if not self._queue:
            return None
        return self._queue[0][0]

    def run_ready_work(self) -> int:
        """
        Run every callback that is due, then return.

        Work that becomes due while draining (for example a callback that
        schedules another for now) runs in the same pass. Returns the
        number of callbacks run.
        """
        ran = 0
        while not self._stopped:
            self._discard_cancelled()
            if not self._queue:
                break

            deadline, _, timer = self._queue[0]
            if deadline > self.clock_source.steady_now():
                break

            heapq.heappop(self._queue)
            ran += 1
            timer._run()

        if ran:
            logger.debug("Drain pass ran %d callback(s), %d pending", ran, self.pending())
        return ran

    def close(self) -> None:
        """
        Discard all pending work and stop the loop for good.

        After closing, no further scheduling is permitted. This provides a
        clear lifecycle boundary between tests.
        """
        self._queue.clear()
        self._stopped = True
        self._closed = True

    def _discard_cancelled(self) -> None:
        while self._queue and self._queue[0][2].cancelled:
            heapq.heappop(self._queue)
