"""Process Control Block (PCB) and process states.

The PCB is the handle the simulation driver passes to a scheduling
policy.  Unlike a kernel PCB it owns nothing: the job table's ``Job``
remains the source of truth for remaining work.  A fresh copy is made
(via ``dataclasses.replace``) every time a process is admitted,
requeued, or dispatched, so a policy can never corrupt the driver's
view of a process by holding on to an old one.

State machine (tracked on the ``Job``)::

    NEW → WAITING ⇄ RUNNING → FINISHED
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class ProcessState(StrEnum):
    """Lifecycle states of a simulated process.

    - NEW: described in the input but not yet arrived.
    - WAITING: admitted and queued, waiting for the CPU.
    - RUNNING: currently executing on the CPU.
    - FINISHED: its burst reached zero; terminal.
    """

    NEW = "new"
    WAITING = "waiting"
    RUNNING = "running"
    FINISHED = "finished"


@dataclass(frozen=True)
class PCB:
    """Scheduler-visible view of one process.

    Attributes:
        id: Process id from the input record.
        priority: Priority from the input record (never changed).
        level: Queue level a multi-level policy last placed it on.
        time_added: Virtual time it was last queued.
        time_scheduled: Virtual time it was last dispatched.

    """

    id: int
    priority: int = 0
    level: int = 0
    time_added: int | None = None
    time_scheduled: int | None = None
