"""Virtual clock: the simulation's only source of time.

A real scheduler reads a hardware timer to decide when to preempt a
process.  The simulator instead keeps an integer counter of elapsed
virtual nanoseconds that only moves when the driver says so.  One tick
of CPU work is one nanosecond.

Each simulation owns its own clock, so two runs never share time.  The
counter is guarded by a lock so the clock stays consistent if it is
ever read from more than one thread; the driver itself is
single-threaded.
"""

from threading import Lock

TICK_NS = 1


class VirtualClock:
    """A manually advanced counter of virtual nanoseconds."""

    def __init__(self, *, start: int = 0) -> None:
        """Create a clock reading *start* nanoseconds.

        Args:
            start: Initial reading (must not be negative).

        """
        if start < 0:
            msg = f"Clock time must not be negative, got {start}"
            raise ValueError(msg)
        self._now_ns = start
        self._lock = Lock()

    def now(self) -> int:
        """Return the current virtual time in nanoseconds."""
        with self._lock:
            return self._now_ns

    def set(self, time: int) -> None:
        """Jump the clock to *time*.

        Raises:
            ValueError: If *time* is negative.

        """
        if time < 0:
            msg = f"Clock time must not be negative, got {time}"
            raise ValueError(msg)
        with self._lock:
            self._now_ns = time

    def reset(self) -> None:
        """Set the clock back to zero."""
        self.set(0)

    def advance(self, delta: int = TICK_NS) -> int:
        """Move the clock forward by *delta* and return the new time.

        Raises:
            ValueError: If *delta* is negative.

        """
        if delta < 0:
            msg = f"Cannot advance the clock by a negative delta ({delta})"
            raise ValueError(msg)
        with self._lock:
            self._now_ns += delta
            return self._now_ns

    def elapsed_since(self, start: int) -> int:
        """Return the nanoseconds elapsed since *start*.

        Raises:
            ValueError: If *start* lies in the future.

        """
        now = self.now()
        if start > now:
            msg = f"Start time {start} is after the current time {now}"
            raise ValueError(msg)
        return now - start

    def __repr__(self) -> str:
        """Return a debug-friendly representation."""
        return f"VirtualClock(now={self.now()})"
