"""
Elapsed playback time for a single song.

Elapsed time only grows while the song is playing. Pausing commits the
running total into ``last_elapsed``; resuming restarts the clock from
``last_resume``. Reading ``elapsed()`` never changes the timer.
"""

import time
from typing import Callable

Clock = Callable[[], float]


class SongTimer:
    """Cumulative elapsed time across pause/resume cycles.

    Starts running at construction time.
    """

    def __init__(self, clock: Clock = time.monotonic):
        self._clock = clock
        self.last_elapsed = 0.0
        self.last_resume = clock()
        self.paused = False

    def elapsed(self) -> float:
        """Seconds played so far."""
        if self.paused:
            return self.last_elapsed
        return self.last_elapsed + max(0.0, self._clock() - self.last_resume)

    def pause(self) -> None:
        if self.paused:
            return
        self.last_elapsed = self.elapsed()
        self.paused = True

    def resume(self) -> None:
        if not self.paused:
            return
        self.last_resume = self._clock()
        self.paused = False

    def __repr__(self) -> str:
        state = "paused" if self.paused else "running"
        return f"SongTimer({self.elapsed():.1f}s, {state})"
