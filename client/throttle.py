"""
Rate limiting for outbound paddle INPUT messages.
"""

from common.config import INPUT_INTERVAL


class InputThrottle:
    """
    Lets at most one paddle value through per interval. Values arriving
    inside the window replace each other; the newest one is released by
    flush() once the window has passed.
    """

    def __init__(self, interval: float = INPUT_INTERVAL):
        self.interval = interval
        self.last_sent = None
        self.pending = None

    def submit(self, y: float, now: float):
        """Offer a new value. Returns it if it may be sent now, else None."""
        if self.last_sent is None or now - self.last_sent >= self.interval:
            self.last_sent = now
            self.pending = None
            return y
        self.pending = y
        return None

    def flush(self, now: float):
        """Release the held value once the window has elapsed."""
        if self.pending is None:
            return None
        if now - self.last_sent < self.interval:
            return None
        y, self.pending = self.pending, None
        self.last_sent = now
        return y
