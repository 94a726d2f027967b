"""
Stepped time advancement for the steptime harness.

The advancer moves the steady and system clocks forward together, one tick
at a time, and drains the event loop after every tick. Jumping straight to
the final instant would collapse the ordering of callbacks due in between;
stepping lets each of them fire at its own virtual instant.
"""

import logging
from datetime import timedelta

from steptime.engine.clock import ZERO, VirtualClock, format_duration
from steptime.engine.event_loop import EventLoopHandle

logger = logging.getLogger(__name__)


class TimeAdvancer:
    """
    Advances a steady/system clock pair in lockstep while pumping a loop.

    ``pump_count`` and ``elapsed`` accumulate over the advancer's lifetime
    so tests can check how many drain passes a timeline took.
    """

    def __init__(
        self,
        steady: VirtualClock,
        system: VirtualClock,
        loop: EventLoopHandle,
    ) -> None:
        self.steady = steady
        self.system = system
        self.loop = loop
        self.pump_count: int = 0
        self.elapsed: timedelta = ZERO

    def advance(self, tick: timedelta, amount: int | timedelta = 1) -> None:
        """
        Advance both clocks in increments of ``tick``.

        ``amount`` is either a number of ticks or a total duration. With a
        total that is not a multiple of ``tick`` the last increment is
        shorter, so the clocks land exactly on the total.

        After each increment the event loop is drained. Exceptions raised
        by callbacks are propagated to the caller and advancing stops at
        that point.
        """
        if isinstance(amount, bool) or not isinstance(amount, (int, timedelta)):
            raise TypeError(
                f"amount must be a tick count or a timedelta, got {type(amount).__name__}"
            )

        if isinstance(amount, int):
            if amount < 0:
                raise ValueError(f"Tick count must not be negative, got {amount}")
            self._advance_by(tick, tick * amount)
        else:
            self._advance_by(tick, amount)

    def _advance_by(self, tick: timedelta, total: timedelta) -> None:
        if tick <= ZERO:
            raise ValueError(f"Tick must be positive, got {format_duration(tick)}")
        if total < ZERO:
            raise ValueError(f"Total must not be negative, got {format_duration(total)}")

        logger.debug(
            "Advancing clocks by %s in ticks of %s",
            format_duration(total),
            format_duration(tick),
        )

        remaining = total
        while remaining > ZERO:
            step = min(tick, remaining)
            self.steady.advance(step)
            self.system.advance(step)
            remaining -= step
            self.elapsed += step

            self._pump()

    def _pump(self) -> None:
        if self.loop.is_stopped():
            self.loop.reset_for_reuse()

        self.pump_count += 1
        ran = self.loop.run_ready_work()
        logger.debug(
            "Pump %d at steady=%s ran %s callback(s)",
            self.pump_count,
            format_duration(self.steady.now()),
            ran,
        )
