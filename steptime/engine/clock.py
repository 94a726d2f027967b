"""
Virtual clocks for the steptime harness.

These clocks exist to decouple timer-driven code from wall-clock time.
Tests advance them by exact increments, regardless of how fast or slow the
host system happens to be.

The clocks do not sleep. They do not wait. They merely record and advance
virtual time. Durations are ``datetime.timedelta`` values, which keep whole
microseconds internally, so repeated stepping never accumulates rounding
error.
"""

import re
from datetime import datetime, timedelta, timezone

ZERO = timedelta(0)
UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_DURATION_RE = re.compile(r"^\s*(\d+)\s*(us|ms|s|m|h|d)\s*$")
_UNITS = {
    "us": timedelta(microseconds=1),
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
}


def parse_duration(value: timedelta | int | str) -> timedelta:
    """
    Convert a duration literal into a timedelta.

    Accepts a timedelta (returned as is), an int (whole seconds) or a
    string made of an integer and a unit: ``us``, ``ms``, ``s``, ``m``,
    ``h`` or ``d``. For example ``"10ms"`` or ``"250us"``.
    """
    if isinstance(value, timedelta):
        return value

    if isinstance(value, bool):
        raise TypeError(f"Cannot interpret {value!r} as a duration")

    if isinstance(value, int):
        return timedelta(seconds=value)

    if isinstance(value, str):
        match = _DURATION_RE.match(value)
        if match is None:
            raise ValueError(f"Malformed duration {value!r}")
        amount, unit = match.groups()
        return _UNITS[unit] * int(amount)

    raise TypeError(f"Cannot interpret {value!r} as a duration")


def format_duration(value: timedelta) -> str:
    """
    Render a timedelta in the largest unit that represents it exactly.
    """
    if value == ZERO:
        return "0s"

    sign = "-" if value < ZERO else ""
    magnitude = -value if value < ZERO else value
    for unit in ("d", "h", "m", "s", "ms"):
        count, rest = divmod(magnitude, _UNITS[unit])
        if not rest:
            return f"{sign}{count}{unit}"
    return f"{sign}{magnitude // _UNITS['us']}us"


class VirtualClock:
    """
    A test-controlled clock.

    Time is represented as a timedelta since an arbitrary epoch chosen by
    the subclass. The clock only moves forwards, and only when told to.
    """

    default_start: timedelta = ZERO

    def __init__(self, start: timedelta | None = None) -> None:
        self._current: timedelta = self.default_start if start is None else start

    def __repr__(self) -> str:
        return f"{type(self).__name__}(current={format_duration(self._current)})"

    def now(self) -> timedelta:
        """
        Return the current virtual time.
        """
        return self._current

    def advance(self, delta: timedelta) -> None:
        """
        Move the clock forward by ``delta``.

        A zero or negative step is a test-authoring error and is rejected
        before the clock changes.
        """
        if not isinstance(delta, timedelta):
            raise TypeError(f"Clock step must be a timedelta, got {type(delta).__name__}")

        if delta <= ZERO:
            raise ValueError(
                f"Clock step must be positive, got {format_duration(delta)}"
            )

        self._current += delta

    def set_now(self, target: timedelta) -> None:
        """
        Jump the clock to ``target``.

        The clock may only move forwards. Attempting to move backwards is
        treated as a test-authoring error.
        """
        if target < self._current:
            raise ValueError(
                f"Cannot move clock backwards from {format_duration(self._current)} "
                f"to {format_duration(target)}"
            )

        self._current = target


class SteadyClock(VirtualClock):
    """
    Monotonic elapsed-time clock, starting at zero.
    """


class SystemClock(VirtualClock):
    """
    Wall clock. ``now()`` is the time since the Unix epoch.
    """

    # 2014-11-11T05:35:32Z
    default_start = timedelta(seconds=1415684132)

    def now_datetime(self) -> datetime:
        """
        Return the current virtual wall time as an aware UTC datetime.
        """
        return UNIX_EPOCH + self._current
