"""
Clock installation hook.

A ClockSource is handed to every component that needs the current time.
By default it reads the real monotonic and wall clocks; a test installs a
pair of virtual clocks for its duration and clears them when it is done.

There is no process-wide override. Each test owns the ClockSource it
installs into, so an override can never leak into the next test.
"""

import logging
import time
from datetime import datetime, timedelta

from steptime.engine.clock import UNIX_EPOCH, VirtualClock

logger = logging.getLogger(__name__)


def _real_steady_now() -> timedelta:
    return timedelta(microseconds=time.monotonic_ns() // 1000)


def _real_system_now() -> timedelta:
    return timedelta(microseconds=time.time_ns() // 1000)


class ClockSource:
    """
    Provider of steady and wall time for code under test.
    """

    def __init__(self) -> None:
        self._steady: VirtualClock | None = None
        self._system: VirtualClock | None = None

    @property
    def is_overridden(self) -> bool:
        return self._steady is not None or self._system is not None

    def steady_now(self) -> timedelta:
        if self._steady is not None:
            return self._steady.now()
        return _real_steady_now()

    def system_now(self) -> timedelta:
        if self._system is not None:
            return self._system.now()
        return _real_system_now()

    def system_now_datetime(self) -> datetime:
        return UNIX_EPOCH + self.system_now()

    def set_custom_clocks(
        self,
        steady: VirtualClock | None,
        system: VirtualClock | None,
    ) -> None:
        """
        Redirect time reads to the given clocks.

        ``None`` for either kind leaves that kind on the real clock.
        """
        self._steady = steady
        self._system = system
        logger.debug("Installed custom clocks steady=%r system=%r", steady, system)

    def clear_custom_clocks(self) -> None:
        """
        Revert both kinds to the real clocks. Safe to call repeatedly.
        """
        if self.is_overridden:
            logger.debug("Cleared custom clocks")
        self._steady = None
        self._system = None
