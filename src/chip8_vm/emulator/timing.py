"""
Cycle Pacing for CHIP-8 VM
==========================

Keeps instruction throughput near a target rate and counts elapsed
60 Hz timer ticks against a monotonic clock.

Pacing is deadline based: each cycle's deadline is the previous deadline
plus one period, so short sleeps and scheduler jitter average out instead
of accumulating. If the engine falls more than a few periods behind (a
debugger pause, a slow frame), the schedule is rebased to the current
time rather than bursting to catch up.
"""

import time
from typing import Callable

# Periods of lag tolerated before the schedule is rebased
MAX_LAG_PERIODS = 4


class CycleScheduler:
    """
    Instruction pacing and timer tick accounting.

    Args:
        instructions_per_second: Target rate (0 = never sleep)
        timer_hz: Timer tick frequency
        clock: Monotonic time source in seconds
        sleep: Sleep function in seconds

    Example:
        >>> scheduler = CycleScheduler(700)
        >>> scheduler.wait_for_next_cycle()
        >>> ticks = scheduler.due_timer_ticks()
    """

    def __init__(
        self,
        instructions_per_second: int,
        timer_hz: int = 60,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._clock = clock
        self._sleep = sleep
        self._cycle_period = 1.0 / instructions_per_second if instructions_per_second else 0.0
        self._tick_period = 1.0 / timer_hz
        self.reset()

    @property
    def throttled(self) -> bool:
        return self._cycle_period > 0

    def reset(self) -> None:
        """Restart both schedules from the current time."""
        now = self._clock()
        self._next_cycle = now
        self._next_tick = now + self._tick_period

    def wait_for_next_cycle(self) -> None:
        """Sleep until the next instruction is due."""
        if not self.throttled:
            return

        now = self._clock()
        self._next_cycle += self._cycle_period

        if now - self._next_cycle > MAX_LAG_PERIODS * self._cycle_period:
            self._next_cycle = now
            return

        delay = self._next_cycle - now
        if delay > 0:
            self._sleep(delay)

    def due_timer_ticks(self) -> int:
        """
        Number of timer ticks that elapsed since the last call.

        Returns:
            0 or more; each tick should decrement DT and ST once
        """
        now = self._clock()
        if now < self._next_tick:
            return 0
        ticks = int((now - self._next_tick) / self._tick_period) + 1
        self._next_tick += ticks * self._tick_period
        return ticks
