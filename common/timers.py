"""
Cancellable one-shot and repeating timers driven by the owning loop.

Nothing here runs on its own thread: the session calls Scheduler.run_due()
once per tick and callbacks execute inline, so they may touch game state.
"""

import time


class Timer:
    """Handle for a scheduled callback."""

    __slots__ = ('deadline', 'interval', 'callback', 'cancelled')

    def __init__(self, deadline: float, callback, interval: float = None):
        self.deadline = deadline
        self.interval = interval      # None for one-shot timers
        self.callback = callback
        self.cancelled = False

    @property
    def repeating(self) -> bool:
        return self.interval is not None

    def cancel(self):
        self.cancelled = True


class Scheduler:
    """Holds the timers belonging to one session."""

    def __init__(self, clock=time.perf_counter):
        self.clock = clock
        self.timers = []

    def call_later(self, delay: float, callback) -> Timer:
        """Run callback once, delay seconds from now."""
        timer = Timer(self.clock() + delay, callback)
        self.timers.append(timer)
        return timer

    def call_every(self, interval: float, callback) -> Timer:
        """Run callback every interval seconds, first one interval from now."""
        if interval <= 0:
            raise ValueError(f"Interval must be positive, got {interval}")
        timer = Timer(self.clock() + interval, callback, interval)
        self.timers.append(timer)
        return timer

    def run_due(self, now: float = None) -> int:
        """Fire every timer whose deadline has passed. Returns the count fired."""
        if now is None:
            now = self.clock()

        due = sorted((t for t in self.timers
                      if not t.cancelled and t.deadline <= now),
                     key=lambda t: t.deadline)
        fired = 0
        for timer in due:
            # An earlier callback in this batch may have cancelled it
            if timer.cancelled:
                continue
            if timer.repeating:
                timer.deadline += timer.interval
                if timer.deadline <= now:
                    # Fell behind: skip the missed periods
                    timer.deadline = now + timer.interval
            else:
                timer.cancelled = True
            timer.callback()
            fired += 1

        self.timers = [t for t in self.timers if not t.cancelled]
        return fired

    def cancel_all(self):
        for timer in self.timers:
            timer.cancel()
        self.timers = []

    @property
    def pending(self) -> int:
        return sum(1 for t in self.timers if not t.cancelled)
