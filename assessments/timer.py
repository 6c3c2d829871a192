"""
Countdown arithmetic for timed tests.

Remaining time is never carried forward as a bare counter. Every persisted
value is a pair (remaining_seconds, measured_at) and is re-derived against the
wall clock, so time that passed while the page was closed, the tab was
throttled or the network was down is always charged to the candidate.
"""
import math
import time
from datetime import datetime, timedelta, timezone


def utcnow():
    return datetime.now(timezone.utc)


def elapsed_seconds(since, now):
    """Whole seconds between two instants; a clock that went backwards counts as zero."""
    if since is None:
        return 0
    return max(0, math.floor((now - since).total_seconds()))


def remaining_seconds(remaining, measured_at, now, started=True):
    """
    Remaining budget as of `now`.

    For a lobby session (not started) the persisted value is returned as is.
    For a running session the time elapsed since `measured_at` is subtracted
    and the result clamped at zero.
    """
    remaining = max(0, int(remaining))
    if not started:
        return remaining
    return max(0, remaining - elapsed_seconds(measured_at, now))


def deadline(remaining, measured_at):
    return measured_at + timedelta(seconds=max(0, int(remaining)))


class Countdown:
    """
    Display-side countdown. tick() is expected about once per second, but the
    value it returns comes from the deadline, not from the number of ticks.
    """

    def __init__(self, remaining, measured_at=None, clock=utcnow):
        self.clock = clock
        measured_at = measured_at or clock()
        self.deadline = deadline(remaining, measured_at)
        self._expired_seen = False

    @property
    def remaining(self):
        now = self.clock()
        if now >= self.deadline:
            return 0
        return math.ceil((self.deadline - now).total_seconds())

    @property
    def expired(self):
        return self.remaining == 0

    def tick(self):
        """
        Returns (remaining, just_expired). just_expired is True exactly once,
        on the first tick that observes zero.
        """
        left = self.remaining
        just_expired = left == 0 and not self._expired_seen
        if just_expired:
            self._expired_seen = True
        return left, just_expired


def monotonic_ticker(interval=1.0, sleep=time.sleep):
    """Yields forever, roughly every `interval` seconds."""
    while True:
        yield
        sleep(interval)
