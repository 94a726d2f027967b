"""
steptime: deterministic virtual-time harness for timer-driven code.

The engine provides:
- SteadyClock and SystemClock
- ClockSource
- EventLoop
- TimeAdvancer

Test fixtures in ``steptime.testing.fixtures`` assemble these into a
per-test TimeContext.
"""

from steptime.engine.clock import SteadyClock, SystemClock, VirtualClock
from steptime.engine.event_loop import EventLoop, EventLoopHandle
from steptime.engine.time_advancer import TimeAdvancer
from steptime.engine.time_source import ClockSource
