"""
Delay/sound timers and the 60Hz wall-clock tick source.
"""

import time
from typing import Callable, Optional

from .constants import TIMER_HZ


class Timers:
    """Two 8-bit down-counters decremented once per tick while nonzero"""

    def __init__(self):
        self.delay = 0
        self.sound = 0

    def reset(self):
        self.delay = 0
        self.sound = 0

    def set_delay(self, value: int):
        self.delay = max(0, min(255, int(value)))

    def set_sound(self, value: int):
        self.sound = max(0, min(255, int(value)))

    def tick(self):
        if self.delay > 0:
            self.delay -= 1
        if self.sound > 0:
            self.sound -= 1

    @property
    def sound_active(self) -> bool:
        return self.sound > 0


class TimerClock:
    """
    Converts elapsed wall-clock time into a number of due timer ticks.

    The host polls this once per frame and ticks the timers as many times
    as reported, so timer speed stays at 60Hz no matter how many
    instructions ran in between (including none, when paused).
    """

    def __init__(self, hz: int = TIMER_HZ, clock: Optional[Callable[[], float]] = None):
        self.hz = hz
        self.clock = clock or time.monotonic
        self.last_time = self.clock()
        self.accumulated = 0.0

    def restart(self):
        self.last_time = self.clock()
        self.accumulated = 0.0

    def due_ticks(self) -> int:
        now = self.clock()
        self.accumulated += max(0.0, now - self.last_time)
        self.last_time = now

        # Epsilon absorbs float error on exact tick boundaries
        ticks = int(self.accumulated * self.hz + 1e-9)
        self.accumulated = max(0.0, self.accumulated - ticks / self.hz)
        return ticks
