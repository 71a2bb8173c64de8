"""Simulation event log.

The driver records every scheduling event as a tick-stamped entry:

- **LogLevel**: severities, ordered so a minimum level can be applied.
- **LogEntry**: one immutable event (level, message, source, tick).
- **Logger**: the append-only event log of one run.

INFO entries are the event log the command line prints
(``Scheduled Process: 1``, ``Process 1 executed``, ``Process 1 Finished``).
DEBUG entries add the driver's own decisions: idle ticks, grants,
requeues and preemptions.  Because every entry carries the virtual tick
it happened on, the log can be cut to a window of ticks or regrouped
into a per-tick timeline.
"""

from dataclasses import dataclass
from enum import IntEnum


class LogLevel(IntEnum):
    """Event severities; higher is more severe."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


@dataclass(frozen=True)
class LogEntry:
    """One recorded simulation event.

    Attributes:
        level: The severity of this event.
        message: The event text, as printed in the plain event log.
        source: The component that recorded it ("cpu" or "scheduler").
        tick: Virtual clock reading when the event was recorded.

    """

    level: LogLevel
    message: str
    source: str
    tick: int = 0

    def __str__(self) -> str:
        """Format as ``[LEVEL] t=tick source: message``."""
        return f"[{self.level.name}] t={self.tick} {self.source}: {self.message}"


class Logger:
    """Append-only event log of one simulation run."""

    def __init__(self) -> None:
        """Create an empty log."""
        self._entries: list[LogEntry] = []

    @property
    def entries(self) -> list[LogEntry]:
        """Return every entry in the order it was recorded."""
        return list(self._entries)

    def log(
        self,
        level: LogLevel,
        message: str,
        *,
        source: str,
        tick: int = 0,
    ) -> None:
        """Record an event.

        Args:
            level: Severity of the event.
            message: Event text.
            source: Component recording the event.
            tick: Virtual time of the event.

        """
        self._entries.append(LogEntry(level=level, message=message, source=source, tick=tick))

    def filter(
        self,
        *,
        min_level: LogLevel | None = None,
        source: str | None = None,
        since: int | None = None,
        until: int | None = None,
    ) -> list[LogEntry]:
        """Return the entries matching every given criterion.

        Args:
            min_level: Keep entries at or above this level.
            source: Keep entries from this component only.
            since: Keep entries stamped on or after this tick.
            until: Keep entries stamped before this tick.

        Returns:
            The matching entries, in recorded order.

        """
        return [
            e
            for e in self._entries
            if (min_level is None or e.level >= min_level)
            and (source is None or e.source == source)
            and (since is None or e.tick >= since)
            and (until is None or e.tick < until)
        ]

    def messages(self, *, min_level: LogLevel = LogLevel.INFO) -> list[str]:
        """Return the bare messages of entries at or above *min_level*."""
        return [e.message for e in self.filter(min_level=min_level)]

    def timeline(self, *, min_level: LogLevel = LogLevel.INFO) -> dict[int, list[str]]:
        """Group messages by the tick they were recorded on.

        Ticks with no matching entry are absent.  Within a tick, messages
        keep their recorded order.
        """
        grouped: dict[int, list[str]] = {}
        for entry in self.filter(min_level=min_level):
            grouped.setdefault(entry.tick, []).append(entry.message)
        return grouped

    def render(self, *, verbose: bool = False) -> list[str]:
        """Return the log as printable lines.

        The plain form is the INFO messages alone.  The verbose form adds
        DEBUG entries and prefixes each line with its level, tick and
        source.
        """
        if verbose:
            return [str(e) for e in self.filter(min_level=LogLevel.DEBUG)]
        return self.messages()

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()
