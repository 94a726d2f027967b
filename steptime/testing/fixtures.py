"""
Test fixtures built from independent, scoped pieces.

LoopContext owns an event loop, ClockOverride owns a clock installation,
and TimeContext assembles both with a TimeAdvancer. Each piece sets up on
enter and tears down on every exit path, including failures.
"""

import logging
import os
from contextlib import ExitStack
from datetime import timedelta
from types import TracebackType

import pytest

from steptime.engine.clock import SteadyClock, SystemClock, VirtualClock
from steptime.engine.config import HarnessConfig
from steptime.engine.event_loop import EventLoop
from steptime.engine.time_advancer import TimeAdvancer
from steptime.engine.time_source import ClockSource

logger = logging.getLogger(__name__)


def is_superuser() -> bool:
    """
    Return True when running with an effective uid of 0.

    Platforms without ``os.geteuid`` never count as superuser.
    """
    geteuid = getattr(os, "geteuid", None)
    return geteuid is not None and geteuid() == 0


def skip_if_not_superuser() -> None:
    """
    Skip the calling test unless it runs as superuser.
    """
    if not is_superuser():
        pytest.skip("This test case needs to be run as superuser, skipping")


requires_superuser = pytest.mark.skipif(
    not is_superuser(), reason="This test case needs to be run as superuser"
)


class LoopContext:
    """
    Owns a per-test EventLoop and closes it on exit.
    """

    def __init__(self, clock_source: ClockSource) -> None:
        self.loop = EventLoop(clock_source)

    def __enter__(self) -> EventLoop:
        return self.loop

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        pending = self.loop.pending()
        if pending:
            logger.debug("Discarding %d pending callback(s) at teardown", pending)
        self.loop.close()


class ClockOverride:
    """
    Installs a steady/system clock pair into a ClockSource for its scope.
    """

    def __init__(
        self,
        clock_source: ClockSource,
        steady: VirtualClock,
        system: VirtualClock,
    ) -> None:
        self.clock_source = clock_source
        self.steady = steady
        self.system = system

    def __enter__(self) -> "ClockOverride":
        self.clock_source.set_custom_clocks(self.steady, self.system)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.clock_source.clear_custom_clocks()


class TimeContext:
    """
    Per-test time harness: virtual clocks, an event loop and an advancer.

    Usage::

        with TimeContext() as ctx:
            fired = []
            ctx.loop.call_later(timedelta(milliseconds=5), fired.append, "x")
            ctx.advance_clocks(timedelta(milliseconds=1), 5)
            assert fired == ["x"]
    """

    def __init__(self, config: HarnessConfig | None = None) -> None:
        self.config = config or HarnessConfig()
        self.clock_source = ClockSource()
        self.steady = SteadyClock(self.config.steady_start)
        self.system = SystemClock(self.config.system_start)
        self._loop_context = LoopContext(self.clock_source)
        self.loop = self._loop_context.loop
        self.advancer = TimeAdvancer(self.steady, self.system, self.loop)
        self._stack: ExitStack | None = None

    def __enter__(self) -> "TimeContext":
        with ExitStack() as stack:
            stack.enter_context(self._loop_context)
            stack.enter_context(ClockOverride(self.clock_source, self.steady, self.system))
            self._stack = stack.pop_all()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._stack is not None:
            stack, self._stack = self._stack, None
            stack.close()

    def advance_clocks(
        self,
        tick: timedelta | None = None,
        amount: int | timedelta = 1,
    ) -> None:
        """
        Advance both clocks, draining the loop after every tick.

        ``tick`` defaults to the configured default tick. Exceptions thrown
        by callbacks are propagated and advancing stops.
        """
        if self._stack is None:
            raise RuntimeError("TimeContext must be entered before advancing clocks")

        self.advancer.advance(self.config.default_tick if tick is None else tick, amount)
